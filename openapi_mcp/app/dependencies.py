"""
Dependency Injection for the openapi-mcp HTTP surface.

Provides the singleton settings, the tool registry built at startup, and
per-request credential overrides taken from incoming headers.
"""

from __future__ import annotations

import base64
import binascii
import logging
from functools import lru_cache

import httpx
from fastapi import HTTPException, Request
from pydantic import SecretStr

from openapi_mcp.config import Credentials, EngineSettings, load_settings
from openapi_mcp.spec import load_spec
from openapi_mcp.tools import OpenAPIOperationTool, ToolRegistry, summarize_operations

logger = logging.getLogger(__name__)

# Global instances (initialized on startup)
_registry: ToolRegistry | None = None
_http_client: httpx.AsyncClient | None = None


@lru_cache()
def get_settings() -> EngineSettings:
    """
    Get engine settings from environment.

    Uses lru_cache for singleton pattern.
    """
    return load_settings()


def get_registry() -> ToolRegistry:
    """Registry dependency; fails with 503 until startup has completed."""
    if _registry is None:
        raise HTTPException(status_code=503, detail="Tool registry not initialized")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


def get_request_credentials(request: Request) -> Credentials | None:
    """
    Per-call credential overrides from incoming headers.

    Recognized: X-API-Key / Api-Key, Authorization: Bearer <token>,
    Authorization: Basic <base64(user:pass)>.
    """
    api_key = request.headers.get("x-api-key") or request.headers.get("api-key")
    bearer = None
    basic = None

    authorization = request.headers.get("authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value:
        bearer = value.strip()
    elif scheme.lower() == "basic" and value:
        basic = _decode_basic(value.strip())

    if not (api_key or bearer or basic):
        return None

    return Credentials(
        api_key=SecretStr(api_key) if api_key else None,
        bearer_token=SecretStr(bearer) if bearer else None,
        basic_auth=SecretStr(basic) if basic else None,
    )


def _decode_basic(value: str) -> str | None:
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        logger.warning("Ignoring malformed Basic authorization header")
        return None


async def initialize_services() -> None:
    """
    Initialize the registry on startup.

    Loads the OpenAPI document named by settings.spec_path and registers
    its operations with a shared HTTP client.
    """
    global _http_client

    settings = get_settings()
    if not settings.spec_path:
        raise RuntimeError("OPENAPI_SPEC is not set; point it at an OpenAPI 3.x document")

    document = load_spec(settings.spec_path)
    _http_client = httpx.AsyncClient(timeout=settings.timeout)

    registry = ToolRegistry.from_document(document, settings=settings, http_client=_http_client)
    set_registry(registry)

    operations = [t.operation for t in registry.list_tools() if isinstance(t, OpenAPIOperationTool)]
    summary = summarize_operations(operations)
    logger.info(f"Registered {summary['total']} operation tools by tag: {summary['tags']}")


async def shutdown_services() -> None:
    """Close the shared HTTP client and drop the registry."""
    global _http_client

    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
    set_registry(None)
