"""
Configuration Schemas for openapi-mcp.

Pydantic models for engine settings and credentials.

Security:
    Sensitive fields use SecretStr to prevent accidental logging
    of credentials. Access the value with `.get_secret_value()`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, SecretStr


def _secret(value: SecretStr | None) -> str:
    return value.get_secret_value() if value is not None else ""


class Credentials(BaseModel):
    """
    Credentials available for authentication injection.

    Only schemes referenced by an operation's security requirements are
    applied; custom headers are always sent.
    """

    model_config = ConfigDict(frozen=True)

    api_key: SecretStr | None = Field(None, description="API key for apiKey schemes")
    bearer_token: SecretStr | None = Field(None, description="Token for bearer/OAuth2 schemes")
    basic_auth: SecretStr | None = Field(None, description="'user:password' for basic auth")
    headers: dict[str, str] = Field(default_factory=dict, description="Custom static headers")

    @property
    def api_key_value(self) -> str:
        return _secret(self.api_key)

    @property
    def bearer_token_value(self) -> str:
        return _secret(self.bearer_token)

    @property
    def basic_auth_value(self) -> str:
        return _secret(self.basic_auth)

    def merged_with(self, override: Credentials | None) -> Credentials:
        """
        Combine with per-call credentials.

        Each field of ``override`` that is set wins over this instance.
        Headers are merged key by key.
        """
        if override is None:
            return self
        return Credentials(
            api_key=override.api_key if override.api_key_value else self.api_key,
            bearer_token=override.bearer_token if override.bearer_token_value else self.bearer_token,
            basic_auth=override.basic_auth if override.basic_auth_value else self.basic_auth,
            headers={**self.headers, **override.headers},
        )

    def is_empty(self) -> bool:
        return not (
            self.api_key_value or self.bearer_token_value or self.basic_auth_value or self.headers
        )


class EngineSettings(BaseModel):
    """
    Engine settings.

    Loaded once at startup (see load_settings) and passed explicitly to the
    registry and its collaborators.

    Security:
        Credentials use SecretStr to prevent accidental logging.
    """

    # Service identity
    service_name: str = "openapi-mcp"
    debug: bool = False

    # Spec
    spec_path: str | None = Field(None, description="Path to the OpenAPI document")
    strict: bool = Field(False, description="Fail on malformed operations instead of repairing")

    # Request construction
    base_url: str | None = Field(None, description="Base URL override for every call")
    credentials: Credentials = Field(default_factory=Credentials)
    timeout: float = Field(30.0, gt=0, description="Per-request timeout in seconds")
    log_http: bool = Field(False, description="Log redacted HTTP requests and responses")

    # Tool generation
    include_description_regex: str | None = None
    exclude_description_regex: str | None = None
    tags: list[str] = Field(default_factory=list)
    tool_name_format: str | None = Field(None, description="lower, upper, snake, or camel")
    confirm_dangerous_actions: bool = True


def parse_header_lines(raw: str) -> dict[str, str]:
    """
    Parse custom header definitions.

    Accepts 'Name: value' entries separated by newlines or semicolons.
    Malformed entries are ignored.
    """
    headers: dict[str, str] = {}
    for line in raw.replace(";", "\n").splitlines():
        name, sep, value = line.partition(":")
        if sep and name.strip():
            headers[name.strip()] = value.strip()
    return headers


def _flag(env: Mapping[str, str], key: str, default: bool = False) -> bool:
    value = env.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _optional(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key, "").strip()
    return value or None


def load_settings(env: Mapping[str, str] | None = None) -> EngineSettings:
    """
    Build settings from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        EngineSettings populated from OPENAPI_SPEC, OPENAPI_BASE_URL, API_KEY,
        BEARER_TOKEN, BASIC_AUTH, EXTRA_HEADERS, INCLUDE_DESC_REGEX,
        EXCLUDE_DESC_REGEX, OPENAPI_TAGS, TOOL_NAME_FORMAT,
        NO_CONFIRM_DANGEROUS, HTTP_TIMEOUT, MCP_LOG_HTTP, OPENAPI_STRICT
    """
    env = os.environ if env is None else env

    api_key = _optional(env, "API_KEY")
    bearer = _optional(env, "BEARER_TOKEN")
    basic = _optional(env, "BASIC_AUTH")

    return EngineSettings(
        service_name=env.get("OPENAPI_MCP_SERVICE_NAME", "openapi-mcp"),
        debug=_flag(env, "OPENAPI_MCP_DEBUG"),
        spec_path=_optional(env, "OPENAPI_SPEC"),
        strict=_flag(env, "OPENAPI_STRICT"),
        base_url=_optional(env, "OPENAPI_BASE_URL"),
        credentials=Credentials(
            api_key=SecretStr(api_key) if api_key else None,
            bearer_token=SecretStr(bearer) if bearer else None,
            basic_auth=SecretStr(basic) if basic else None,
            headers=parse_header_lines(env.get("EXTRA_HEADERS", "")),
        ),
        timeout=float(env.get("HTTP_TIMEOUT", "30") or 30),
        log_http=_flag(env, "MCP_LOG_HTTP"),
        include_description_regex=_optional(env, "INCLUDE_DESC_REGEX"),
        exclude_description_regex=_optional(env, "EXCLUDE_DESC_REGEX"),
        tags=[t.strip() for t in env.get("OPENAPI_TAGS", "").split(",") if t.strip()],
        tool_name_format=_optional(env, "TOOL_NAME_FORMAT"),
        confirm_dangerous_actions=not _flag(env, "NO_CONFIRM_DANGEROUS"),
    )
