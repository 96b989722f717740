"""
Tests for authentication injection.

Tests cover:
- apiKey placement (header, query, cookie)
- Bearer, basic, OAuth2
- Scoping to the schemes an operation references
- Per-call override precedence and custom headers
"""

import base64

import pytest

from openapi_mcp.config.schemas import Credentials
from openapi_mcp.errors import SpecError
from openapi_mcp.spec.extractor import extract_operations
from openapi_mcp.spec.models import ApiKeyScheme, HttpScheme, OAuth2Scheme
from openapi_mcp.tools.auth import AuthInjector, parse_security_schemes
from openapi_mcp.tools.marshal import marshal


@pytest.fixture
def ops(secured_spec):
    return {op.operation_id: op for op in extract_operations(secured_spec)}


@pytest.fixture
def injector(secured_spec):
    return AuthInjector(secured_spec)


def _apply(injector, op, credentials, override=None, arguments=None):
    descriptor = marshal(op, arguments or {})
    return injector.apply(descriptor, op, credentials, override=override)


# =============================================================================
# Scheme Parsing
# =============================================================================


class TestParseSecuritySchemes:
    """Tests for parse_security_schemes."""

    def test_parses_all_types(self, secured_spec):
        """Test every declared scheme becomes a typed variant."""
        schemes = parse_security_schemes(secured_spec)

        assert schemes["headerKey"] == ApiKeyScheme(name="X-Secret", location="header")
        assert schemes["queryKey"] == ApiKeyScheme(name="api_key", location="query")
        assert schemes["bearerAuth"] == HttpScheme(scheme="bearer")
        assert schemes["basicAuth"] == HttpScheme(scheme="basic")
        assert schemes["oauth"] == OAuth2Scheme(flows=("clientCredentials",))

    def test_unknown_type_strict(self):
        """Test strict mode rejects unknown scheme types."""
        document = {"components": {"securitySchemes": {"weird": {"type": "mutualTLS2"}}}}

        with pytest.raises(SpecError):
            parse_security_schemes(document, strict=True)

    def test_unknown_type_lenient(self):
        """Test lenient mode skips unknown scheme types."""
        document = {"components": {"securitySchemes": {"weird": {"type": "mutualTLS2"}}}}

        assert parse_security_schemes(document) == {}

    def test_api_key_default_name(self):
        """Test apiKey schemes without a name use X-API-Key."""
        document = {"components": {"securitySchemes": {"key": {"type": "apiKey", "in": "header"}}}}

        assert parse_security_schemes(document)["key"].name == "X-API-Key"


# =============================================================================
# Injection
# =============================================================================


class TestAuthInjector:
    """Tests for AuthInjector.apply."""

    def test_api_key_header(self, injector, ops):
        """Test inherited apiKey header security."""
        descriptor = _apply(injector, ops["inherited"], Credentials(api_key="k-123"))

        assert descriptor.headers["X-Secret"] == "k-123"

    def test_api_key_query(self, injector, ops):
        descriptor = _apply(injector, ops["queryKey"], Credentials(api_key="k-123"))

        assert descriptor.query == [("api_key", "k-123")]
        assert "X-Secret" not in descriptor.headers

    def test_api_key_cookie(self, injector, ops):
        descriptor = _apply(injector, ops["cookieKey"], Credentials(api_key="k-123"))

        assert descriptor.cookies == {"session": "k-123"}

    def test_bearer(self, injector, ops):
        descriptor = _apply(injector, ops["bearerOnly"], Credentials(bearer_token="tok"))

        assert descriptor.headers["Authorization"] == "Bearer tok"

    def test_basic(self, injector, ops):
        """Test basic auth is base64 encoded."""
        descriptor = _apply(injector, ops["basicOnly"], Credentials(basic_auth="user:pass"))

        expected = base64.b64encode(b"user:pass").decode()
        assert descriptor.headers["Authorization"] == f"Basic {expected}"

    def test_oauth_uses_bearer(self, injector, ops):
        descriptor = _apply(injector, ops["oauthOnly"], Credentials(bearer_token="tok"))

        assert descriptor.headers["Authorization"] == "Bearer tok"

    def test_public_operation_gets_no_credentials(self, injector, ops):
        """Test operations with security: [] receive no credentials."""
        credentials = Credentials(api_key="k", bearer_token="t", basic_auth="u:p")

        descriptor = _apply(injector, ops["public"], credentials)

        assert descriptor.headers == {}
        assert descriptor.query == []
        assert descriptor.cookies == {}

    def test_only_referenced_schemes_applied(self, injector, ops):
        """Test unreferenced credentials are not sent."""
        credentials = Credentials(api_key="k", bearer_token="t")

        descriptor = _apply(injector, ops["bearerOnly"], credentials)

        assert descriptor.headers == {"Authorization": "Bearer t"}

    def test_first_satisfiable_alternative(self, injector, ops):
        """Test the first alternative with available credentials is used."""
        descriptor = _apply(injector, ops["either"], Credentials(basic_auth="u:p"))

        assert descriptor.headers["Authorization"].startswith("Basic ")

    def test_unsatisfiable_requirement_sends_nothing(self, injector, ops):
        descriptor = _apply(injector, ops["bearerOnly"], Credentials(api_key="k"))

        assert "Authorization" not in descriptor.headers

    def test_override_wins(self, injector, ops):
        """Test per-call credentials take precedence over configured ones."""
        descriptor = _apply(
            injector,
            ops["bearerOnly"],
            Credentials(bearer_token="configured"),
            override=Credentials(bearer_token="per-call"),
        )

        assert descriptor.headers["Authorization"] == "Bearer per-call"

    def test_override_falls_back_field_by_field(self, injector, ops):
        """Test unset override fields fall back to configured values."""
        descriptor = _apply(
            injector,
            ops["bearerOnly"],
            Credentials(bearer_token="configured"),
            override=Credentials(api_key="other"),
        )

        assert descriptor.headers["Authorization"] == "Bearer configured"

    def test_custom_headers_applied_last(self, injector, ops):
        """Test custom headers override auth headers."""
        credentials = Credentials(bearer_token="tok", headers={"Authorization": "Custom xyz", "X-Tenant": "t1"})

        descriptor = _apply(injector, ops["bearerOnly"], credentials)

        assert descriptor.headers["Authorization"] == "Custom xyz"
        assert descriptor.headers["X-Tenant"] == "t1"

    def test_custom_headers_sent_without_security(self, injector, ops):
        descriptor = _apply(injector, ops["public"], Credentials(headers={"X-Tenant": "t1"}))

        assert descriptor.headers == {"X-Tenant": "t1"}

    def test_query_key_replaces_argument(self, secured_spec):
        """Test an injected query key replaces an existing pair with the same name."""
        secured_spec["paths"]["/query"]["get"]["parameters"] = [
            {"name": "api_key", "in": "query", "schema": {"type": "string"}}
        ]
        op = {o.operation_id: o for o in extract_operations(secured_spec)}["queryKey"]

        descriptor = _apply(AuthInjector(secured_spec), op, Credentials(api_key="real"), arguments={"api_key": "fake"})

        assert descriptor.query == [("api_key", "real")]

    def test_no_credentials(self, injector, ops):
        descriptor = _apply(injector, ops["inherited"], None)

        assert descriptor.headers == {}
