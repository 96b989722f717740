"""
Response Mapper.

Turns the outcome of a tool call into exactly one result envelope.

State machine (per call, no state kept between calls):

    RECEIVED ──(mutating, confirmation enabled, flag absent)──> CONFIRM
        │
        ├──(transport failure / invalid arguments / no server)──> ERROR
        ├──(status >= 400)──────────────────────────────────────> ERROR
        └──(status < 400)───────────────────────────────────────> SUCCESS

Envelopes:
    success:  {"type": "success", "httpStatus", "outputType", "outputFormat",
               "data" | "text" | "file", "pagination"?, "metadata"?}
    error:    {"type": "error", "error": {"code", "message", "httpStatus"?,
               "rawBody"?, "details"?, "suggestions"?, ...}}
    confirm:  {"type": "confirmation_request", "confirmation_required": true,
               "message", "action", "confirmation_flag", "arguments"}

Binary payloads are returned as {"bytes": base64, "mimeType",
"suggestedFileName"}.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from openapi_mcp.errors import InvalidArgument, NetworkError, OpenAPIMCPError, UpstreamError
from openapi_mcp.spec.models import Operation, is_json_media_type
from openapi_mcp.tools.base import ContentBlock, ToolResult
from openapi_mcp.tools.executor import RawResponse
from openapi_mcp.tools.schema import CONFIRMATION_FLAG, build_example_arguments

logger = logging.getLogger(__name__)

MAX_RAW_BODY = 2000
DEFAULT_FILE_NAME = "file"

_FILENAME = re.compile(r"filename\*?=(?:UTF-8'')?\"?([^\";]+)\"?", re.IGNORECASE)

_TEXT_MEDIA_TYPES = frozenset(
    {
        "application/xml",
        "application/javascript",
        "application/x-www-form-urlencoded",
        "application/yaml",
        "application/x-yaml",
        "application/graphql",
    }
)


class ResponseState(str, Enum):
    RECEIVED = "received"
    CONFIRM = "confirm"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class MappedResponse:
    """Terminal state plus the envelope produced for it."""

    state: ResponseState
    envelope: dict[str, Any]
    file_bytes: bytes | None = None

    def to_tool_result(self) -> ToolResult:
        extra = None
        if self.file_bytes is not None:
            file_info = self.envelope.get("file", {})
            extra = (
                ContentBlock.from_blob(
                    self.file_bytes,
                    mime_type=file_info.get("mimeType") or "application/octet-stream",
                    name=file_info.get("suggestedFileName"),
                ),
            )
        return ToolResult.from_envelope(self.envelope, additional_content=extra)


def is_confirmed(arguments: dict[str, Any]) -> bool:
    """True when the caller set the confirmation flag."""
    value = arguments.get(CONFIRMATION_FLAG)
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return value is True


def is_binary_media_type(mime_type: str) -> bool:
    if not mime_type:
        return False
    if is_json_media_type(mime_type) or mime_type.startswith("text/"):
        return False
    if mime_type in _TEXT_MEDIA_TYPES or mime_type.endswith("+xml"):
        return False
    return True


def suggested_file_name(raw: RawResponse) -> str:
    disposition = raw.headers.get("content-disposition", "")
    match = _FILENAME.search(disposition)
    if match:
        return match.group(1).strip()
    return DEFAULT_FILE_NAME


class ResponseMapper:
    """
    Maps call outcomes to envelopes for one tool.

    Example:
        mapper = ResponseMapper("deleteItem", operation, input_schema)
        if mapper.needs_confirmation(arguments):
            return mapper.confirm(arguments).to_tool_result()
        ...
        return mapper.from_response(raw).to_tool_result()
    """

    def __init__(
        self,
        tool_name: str,
        operation: Operation,
        input_schema: dict[str, Any],
        *,
        confirm_dangerous_actions: bool = True,
    ):
        self._tool_name = tool_name
        self._operation = operation
        self._input_schema = input_schema
        self._confirm = confirm_dangerous_actions

    def needs_confirmation(self, arguments: dict[str, Any]) -> bool:
        return self._confirm and self._operation.is_mutating and not is_confirmed(arguments)

    # -------------------------------------------------------------------------
    # CONFIRM
    # -------------------------------------------------------------------------

    def confirm(self, arguments: dict[str, Any]) -> MappedResponse:
        """Build the confirmation request; no HTTP call is made."""
        method = self._operation.method.upper()
        retry_args = {**arguments, CONFIRMATION_FLAG: True}
        message = (
            f"CONFIRMATION REQUIRED\n\n"
            f"Action: {self._tool_name} ({method} {self._operation.path})\n"
            f"This action may modify or delete data.\n\n"
            f"To confirm, retry the call with {{\"{CONFIRMATION_FLAG}\": true}} added to your arguments."
        )
        logger.info(f"[openapi_tool:{self._tool_name}] Confirmation required for {method}")
        return MappedResponse(
            state=ResponseState.CONFIRM,
            envelope={
                "type": "confirmation_request",
                "confirmation_required": True,
                "message": message,
                "action": self._tool_name,
                "confirmation_flag": CONFIRMATION_FLAG,
                "arguments": retry_args,
            },
        )

    # -------------------------------------------------------------------------
    # SUCCESS / ERROR from a response
    # -------------------------------------------------------------------------

    def from_response(
        self,
        raw: RawResponse,
        *,
        ignored_arguments: list[str] | None = None,
    ) -> MappedResponse:
        if raw.status >= 400:
            return self._upstream_error(raw)

        envelope: dict[str, Any] = {"type": "success", "httpStatus": raw.status}
        file_bytes = None
        mime_type = raw.mime_type

        if raw.body and is_json_media_type(mime_type):
            try:
                envelope["data"] = json.loads(raw.body)
                envelope["outputType"] = "json"
                envelope["outputFormat"] = "structured"
            except ValueError:
                logger.warning(
                    f"[openapi_tool:{self._tool_name}] Response declared JSON but did not parse"
                )
                envelope.update(self._text_payload(raw))
        elif raw.body and (is_binary_media_type(mime_type) or not _decodes(raw.body)):
            file_bytes = raw.body
            envelope["file"] = {
                "bytes": base64.b64encode(raw.body).decode("ascii"),
                "mimeType": mime_type or "application/octet-stream",
                "suggestedFileName": suggested_file_name(raw),
            }
            envelope["outputType"] = "file"
            envelope["outputFormat"] = "structured"
        else:
            envelope.update(self._text_payload(raw))

        pagination = {rel: url for rel, url in raw.links.items() if rel in ("next", "prev", "first", "last")}
        if pagination:
            envelope["pagination"] = pagination

        if ignored_arguments:
            envelope["metadata"] = {"ignoredArguments": list(ignored_arguments)}

        return MappedResponse(state=ResponseState.SUCCESS, envelope=envelope, file_bytes=file_bytes)

    @staticmethod
    def _text_payload(raw: RawResponse) -> dict[str, Any]:
        return {"text": raw.text, "outputType": "text", "outputFormat": "unstructured"}

    def _upstream_error(self, raw: RawResponse) -> MappedResponse:
        message = f"HTTP {raw.status} {raw.reason}".strip()
        error: dict[str, Any] = {
            "code": UpstreamError.error_code,
            "httpStatus": raw.status,
            "message": message,
            "operation": {
                "name": self._tool_name,
                "method": self._operation.method.upper(),
                "path": self._operation.path,
            },
        }

        if raw.body and is_binary_media_type(raw.mime_type):
            error["rawBody"] = base64.b64encode(raw.body).decode("ascii")
            error["rawBodyEncoding"] = "base64"
        else:
            text = raw.text
            error["rawBody"] = text[:MAX_RAW_BODY]
            if is_json_media_type(raw.mime_type):
                try:
                    error["details"] = json.loads(raw.body)
                except ValueError:
                    pass

        suggestions = self._status_suggestions(raw.status)
        if suggestions:
            error["suggestions"] = suggestions

        logger.warning(f"[openapi_tool:{self._tool_name}] Error {raw.status}: {raw.text[:200]}")
        return MappedResponse(state=ResponseState.ERROR, envelope={"type": "error", "error": error})

    def _status_suggestions(self, status: int) -> list[str]:
        path_params = [p.property_name for p in self._operation.parameters if p.location.value == "path"]
        required = list(self._input_schema.get("required") or [])
        example = json.dumps(build_example_arguments(self._input_schema))

        if status == 400:
            suggestions = ["Check that every argument matches its declared type and format."]
            if required:
                suggestions.append(f"Required arguments: {', '.join(required)}.")
            suggestions.append(f"Example: call {self._tool_name} {example}")
            return suggestions
        if status in (401, 403):
            return [
                "Verify that credentials are configured (API_KEY, BEARER_TOKEN, or BASIC_AUTH).",
                "Check that the credentials grant access to this operation.",
            ]
        if status == 404:
            suggestions = ["The requested resource was not found."]
            if path_params:
                suggestions.append(f"Verify the values of: {', '.join(path_params)}.")
            suggestions.append("Use a list operation to discover valid identifiers.")
            return suggestions
        if status == 429:
            return ["The API is rate limiting requests. Wait before calling again."]
        if status >= 500:
            return [
                "The upstream server failed. The request may succeed if retried later.",
                "If the error persists, contact the API provider.",
            ]
        return []

    # -------------------------------------------------------------------------
    # ERROR from an exception
    # -------------------------------------------------------------------------

    def from_error(self, exc: OpenAPIMCPError) -> MappedResponse:
        error: dict[str, Any] = {"code": exc.error_code, "message": str(exc)}

        if isinstance(exc, InvalidArgument):
            if exc.errors:
                error["details"] = list(exc.errors)
            example = build_example_arguments(self._input_schema)
            error["suggestions"] = [f"Try again with: call {self._tool_name} {json.dumps(example)}"]
            error["inputSchema"] = self._input_schema
        elif isinstance(exc, NetworkError):
            if exc.cause is not None:
                error["details"] = type(exc.cause).__name__
            error["suggestions"] = ["Check network connectivity and the configured server URL."]

        logger.warning(f"[openapi_tool:{self._tool_name}] {exc.error_code}: {exc}")
        return MappedResponse(state=ResponseState.ERROR, envelope={"type": "error", "error": error})


def _decodes(body: bytes) -> bool:
    try:
        body.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True
