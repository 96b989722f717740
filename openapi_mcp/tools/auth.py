"""
Authentication Injector.

Adds credentials to a request descriptor, scoped to the security schemes an
operation actually references.

Rules:
    - Effective credentials: per-call override > configured > none
    - Security requirements are alternatives; the first non-empty one whose
      schemes can all be satisfied is applied
    - apiKey goes to its declared location and name (X-API-Key by default)
    - http bearer, oauth2 and openIdConnect send "Authorization: Bearer"
    - http basic sends "Authorization: Basic base64(user:pass)"
    - custom headers are merged last and win over auth headers

Operations that declare no security receive no credentials.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

from openapi_mcp.config.schemas import Credentials
from openapi_mcp.errors import SpecError
from openapi_mcp.spec.loader import RefResolver
from openapi_mcp.spec.models import (
    ApiKeyScheme,
    HttpScheme,
    OAuth2Scheme,
    OpenIdConnectScheme,
    Operation,
    SecurityScheme,
    SecuritySchemeType,
)
from openapi_mcp.tools.marshal import RequestDescriptor

logger = logging.getLogger(__name__)

DEFAULT_API_KEY_HEADER = "X-API-Key"


def parse_security_schemes(document: dict[str, Any], *, strict: bool = False) -> dict[str, SecurityScheme]:
    """
    Parse components.securitySchemes into typed variants.

    Raises:
        SpecError: In strict mode, for unknown scheme types
    """
    resolver = RefResolver(document)
    raw_schemes = resolver.resolve((document.get("components") or {}).get("securitySchemes") or {})

    schemes: dict[str, SecurityScheme] = {}
    for name, raw in raw_schemes.items():
        if not isinstance(raw, dict):
            continue
        try:
            scheme_type = SecuritySchemeType(raw.get("type"))
        except ValueError:
            if strict:
                raise SpecError(f"Security scheme '{name}' has unknown type '{raw.get('type')}'") from None
            logger.warning(f"[auth] Skipping security scheme '{name}' of unknown type '{raw.get('type')}'")
            continue

        if scheme_type == SecuritySchemeType.API_KEY:
            schemes[name] = ApiKeyScheme(
                name=raw.get("name") or DEFAULT_API_KEY_HEADER,
                location=raw.get("in") or "header",
            )
        elif scheme_type == SecuritySchemeType.HTTP:
            schemes[name] = HttpScheme(scheme=str(raw.get("scheme") or "bearer").lower())
        elif scheme_type == SecuritySchemeType.OAUTH2:
            schemes[name] = OAuth2Scheme(flows=tuple((raw.get("flows") or {}).keys()))
        elif scheme_type == SecuritySchemeType.OPEN_ID_CONNECT:
            schemes[name] = OpenIdConnectScheme(url=raw.get("openIdConnectUrl") or "")

    return schemes


class AuthInjector:
    """
    Applies credentials to outbound requests.

    Example:
        injector = AuthInjector(document)
        injector.apply(descriptor, operation, settings.credentials, override=per_call)
    """

    def __init__(self, document: dict[str, Any], *, strict: bool = False):
        self._schemes = parse_security_schemes(document, strict=strict)

    @property
    def schemes(self) -> dict[str, SecurityScheme]:
        return dict(self._schemes)

    def apply(
        self,
        descriptor: RequestDescriptor,
        operation: Operation,
        credentials: Credentials | None,
        override: Credentials | None = None,
    ) -> RequestDescriptor:
        """
        Inject credentials into the descriptor in place.

        Args:
            descriptor: Request being built
            operation: Operation being invoked
            credentials: Configured credentials
            override: Per-call credentials (win field by field)

        Returns:
            The same descriptor, for chaining
        """
        effective = (credentials or Credentials()).merged_with(override)

        requirement = self._select_requirement(operation, effective)
        if requirement:
            for scheme_name in requirement:
                self._apply_scheme(descriptor, self._schemes[scheme_name], effective)
            logger.debug(
                f"[auth:{operation.operation_id}] Applied security schemes: {sorted(requirement)}"
            )
        elif operation.security:
            logger.debug(
                f"[auth:{operation.operation_id}] No credentials satisfy the declared security"
            )

        # Custom headers go last and are never overridden
        descriptor.headers.update(effective.headers)
        return descriptor

    def _select_requirement(self, operation: Operation, credentials: Credentials) -> dict[str, Any] | None:
        for requirement in operation.security:
            if not requirement:
                continue
            if all(
                name in self._schemes and self._can_satisfy(self._schemes[name], credentials)
                for name in requirement
            ):
                return requirement
        return None

    @staticmethod
    def _can_satisfy(scheme: SecurityScheme, credentials: Credentials) -> bool:
        if isinstance(scheme, ApiKeyScheme):
            return bool(credentials.api_key_value)
        if isinstance(scheme, HttpScheme):
            if scheme.scheme == "basic":
                return bool(credentials.basic_auth_value)
            return bool(credentials.bearer_token_value)
        if isinstance(scheme, (OAuth2Scheme, OpenIdConnectScheme)):
            return bool(credentials.bearer_token_value)
        return False

    @staticmethod
    def _apply_scheme(
        descriptor: RequestDescriptor, scheme: SecurityScheme, credentials: Credentials
    ) -> None:
        if isinstance(scheme, ApiKeyScheme):
            key = credentials.api_key_value
            if scheme.location == "query":
                descriptor.query = [(k, v) for k, v in descriptor.query if k != scheme.name]
                descriptor.query.append((scheme.name, key))
            elif scheme.location == "cookie":
                descriptor.cookies[scheme.name] = key
            else:
                descriptor.headers[scheme.name] = key
        elif isinstance(scheme, HttpScheme) and scheme.scheme == "basic":
            encoded = base64.b64encode(credentials.basic_auth_value.encode()).decode()
            descriptor.headers["Authorization"] = f"Basic {encoded}"
        else:
            descriptor.headers["Authorization"] = f"Bearer {credentials.bearer_token_value}"
