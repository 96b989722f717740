"""
Error taxonomy for the OpenAPI tool engine.

Two families of errors exist:
- Startup errors (SpecError, DuplicateToolName) abort tool registration.
- Per-call errors (InvalidArgument, NoServerAvailable, NetworkError,
  UpstreamError) are captured into result envelopes by the response mapper
  and never escape a tool call.

Every error carries an ``error_code`` used as the ``code`` field of error
envelopes.
"""

from __future__ import annotations

from typing import Any


class OpenAPIMCPError(Exception):
    """Base class for all engine errors."""

    error_code = "internal_error"


# =============================================================================
# Startup Errors
# =============================================================================


class SpecError(OpenAPIMCPError):
    """Malformed or unsupported OpenAPI document."""

    error_code = "spec_error"


class SpecLoadError(SpecError):
    """The OpenAPI document could not be read or parsed."""

    error_code = "spec_load_error"


class MissingOperationID(SpecError):
    """An operation has no operationId and strict mode is enabled."""

    error_code = "missing_operation_id"

    def __init__(self, method: str, path: str):
        self.method = method
        self.path = path
        super().__init__(f"Operation {method.upper()} {path} has no operationId")


class DuplicateOperationID(SpecError):
    """Two operations share one operationId and strict mode is enabled."""

    error_code = "duplicate_operation_id"

    def __init__(self, operation_id: str, method: str, path: str):
        self.operation_id = operation_id
        self.method = method
        self.path = path
        super().__init__(
            f"Duplicate operationId '{operation_id}' at {method.upper()} {path}"
        )


class ToolRegistryError(OpenAPIMCPError):
    """Error in tool registry operations."""

    error_code = "tool_registry_error"


class DuplicateToolName(ToolRegistryError):
    """Two tools would be registered under the same name."""

    error_code = "duplicate_tool_name"

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Tool '{name}' already registered. Use a unique name or a different name format."
        )


# =============================================================================
# Per-call Errors
# =============================================================================


class InvalidArgument(OpenAPIMCPError):
    """
    Supplied arguments do not satisfy the tool's input schema.

    Attributes:
        errors: One human-readable message per offending field
        missing: Names of required arguments that were absent
    """

    error_code = "invalid_argument"

    def __init__(
        self,
        message: str,
        *,
        errors: list[str] | None = None,
        missing: list[str] | None = None,
    ):
        self.errors = errors or []
        self.missing = missing or []
        super().__init__(message)


class MissingPathParameter(InvalidArgument):
    """A path placeholder has no corresponding argument."""

    error_code = "missing_path_parameter"


class NoServerAvailable(OpenAPIMCPError):
    """No override and no servers declared, so no base URL can be chosen."""

    error_code = "no_server_available"


class NetworkError(OpenAPIMCPError):
    """
    Transport-level failure (timeout, DNS, TLS, connection refused).

    Carries no HTTP status because no response was received.
    """

    error_code = "network_error"

    def __init__(self, message: str, *, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class UpstreamError(OpenAPIMCPError):
    """The upstream API answered with a status code of 400 or above."""

    error_code = "upstream_error"

    def __init__(self, status: int, message: str, *, raw_body: Any = None):
        self.status = status
        self.raw_body = raw_body
        super().__init__(message)
