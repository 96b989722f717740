"""
Tests for the response mapper.

Tests cover:
- Confirmation requests for mutating operations
- Success envelopes (JSON, text, binary file)
- Error envelopes from statuses and from exceptions
"""

import base64

import httpx
import pytest

from openapi_mcp.errors import InvalidArgument, NetworkError, NoServerAvailable, UpstreamError
from openapi_mcp.spec.extractor import extract_operations
from openapi_mcp.tools.base import ContentType
from openapi_mcp.tools.executor import RawResponse
from openapi_mcp.tools.responses import (
    ResponseMapper,
    ResponseState,
    is_binary_media_type,
    is_confirmed,
    suggested_file_name,
)
from openapi_mcp.tools.schema import build_operation_schema


@pytest.fixture
def ops(simple_spec):
    return {op.operation_id: op for op in extract_operations(simple_spec)}


def _mapper(ops, name, **kwargs):
    op = ops[name]
    return ResponseMapper(name, op, build_operation_schema(op), **kwargs)


def _raw(status=200, body=b"", headers=None, reason=""):
    return RawResponse(status=status, reason=reason, headers=httpx.Headers(headers or {}), body=body)


# =============================================================================
# Confirmation
# =============================================================================


class TestConfirmation:
    """Tests for the confirmation gate."""

    def test_mutating_needs_confirmation(self, ops):
        assert _mapper(ops, "deleteItem").needs_confirmation({"item_id": "1"}) is True

    def test_read_never_needs_confirmation(self, ops):
        assert _mapper(ops, "getItem").needs_confirmation({"item_id": "1"}) is False

    def test_flag_skips_confirmation(self, ops):
        assert _mapper(ops, "deleteItem").needs_confirmation({"item_id": "1", "__confirmed": True}) is False

    def test_disabled_gate(self, ops):
        mapper = _mapper(ops, "deleteItem", confirm_dangerous_actions=False)

        assert mapper.needs_confirmation({"item_id": "1"}) is False

    def test_confirmation_envelope(self, ops):
        """Test the envelope names the action and the retry arguments."""
        mapped = _mapper(ops, "deleteItem").confirm({"item_id": "1"})

        assert mapped.state == ResponseState.CONFIRM
        envelope = mapped.envelope
        assert envelope["type"] == "confirmation_request"
        assert envelope["confirmation_required"] is True
        assert envelope["confirmation_flag"] == "__confirmed"
        assert envelope["arguments"] == {"item_id": "1", "__confirmed": True}
        assert "DELETE /items/{item_id}" in envelope["message"]

    def test_confirmation_is_not_error(self, ops):
        result = _mapper(ops, "deleteItem").confirm({"item_id": "1"}).to_tool_result()

        assert result.is_error is False

    @pytest.mark.parametrize(
        "value,expected",
        [(True, True), ("true", True), ("YES", True), (False, False), ("no", False), (1, False)],
    )
    def test_is_confirmed(self, value, expected):
        assert is_confirmed({"__confirmed": value}) is expected


# =============================================================================
# Success
# =============================================================================


class TestSuccess:
    """Tests for success envelopes."""

    def test_json(self, ops):
        mapped = _mapper(ops, "getItem").from_response(
            _raw(body=b'{"id": "1"}', headers={"Content-Type": "application/json"})
        )

        assert mapped.state == ResponseState.SUCCESS
        assert mapped.envelope == {
            "type": "success",
            "httpStatus": 200,
            "data": {"id": "1"},
            "outputType": "json",
            "outputFormat": "structured",
        }

    def test_problem_json(self, ops):
        """Test +json media types are parsed."""
        mapped = _mapper(ops, "getItem").from_response(
            _raw(body=b'{"a": 1}', headers={"Content-Type": "application/vnd.api+json"})
        )

        assert mapped.envelope["data"] == {"a": 1}

    def test_invalid_json_falls_back_to_text(self, ops):
        mapped = _mapper(ops, "getItem").from_response(
            _raw(body=b"not json", headers={"Content-Type": "application/json"})
        )

        assert mapped.envelope["text"] == "not json"
        assert mapped.envelope["outputType"] == "text"

    def test_text(self, ops):
        mapped = _mapper(ops, "getItem").from_response(
            _raw(body=b"hello", headers={"Content-Type": "text/plain"})
        )

        assert mapped.envelope["text"] == "hello"
        assert mapped.envelope["outputFormat"] == "unstructured"

    def test_empty_body(self, ops):
        """Test 204 responses give an empty text payload."""
        mapped = _mapper(ops, "deleteItem").from_response(_raw(status=204))

        assert mapped.envelope["httpStatus"] == 204
        assert mapped.envelope["text"] == ""

    def test_binary_file(self, ops):
        """Test binary payloads become base64 file envelopes."""
        pdf = b"%PDF-1.4\x00\xff\xfe"
        mapped = _mapper(ops, "downloadFile").from_response(
            _raw(
                body=pdf,
                headers={
                    "Content-Type": "application/pdf",
                    "Content-Disposition": 'attachment; filename="report.pdf"',
                },
            )
        )

        file_info = mapped.envelope["file"]
        assert base64.b64decode(file_info["bytes"]) == pdf
        assert file_info["mimeType"] == "application/pdf"
        assert file_info["suggestedFileName"] == "report.pdf"
        assert mapped.envelope["outputType"] == "file"

    def test_binary_tool_result_embeds_blob(self, ops):
        """Test the tool result carries the file as an embedded resource."""
        mapped = _mapper(ops, "downloadFile").from_response(
            _raw(body=b"\x89PNG\x00", headers={"Content-Type": "image/png"})
        )

        result = mapped.to_tool_result()

        assert result.content[1].type == ContentType.RESOURCE
        assert result.content[1].data == b"\x89PNG\x00"
        assert result.content[1].name == "file"

    def test_undeclared_binary_detected(self, ops):
        """Test undecodable bodies without a content type become files."""
        mapped = _mapper(ops, "downloadFile").from_response(_raw(body=b"\xff\xfe\x00"))

        assert mapped.envelope["file"]["mimeType"] == "application/octet-stream"

    def test_pagination(self, ops):
        mapped = _mapper(ops, "listItems").from_response(
            _raw(
                body=b"[]",
                headers={
                    "Content-Type": "application/json",
                    "Link": '<https://api.example.com/items?page=2>; rel="next"',
                },
            )
        )

        assert mapped.envelope["pagination"] == {"next": "https://api.example.com/items?page=2"}

    def test_ignored_arguments_metadata(self, ops):
        mapped = _mapper(ops, "listItems").from_response(_raw(body=b"ok"), ignored_arguments=["bogus"])

        assert mapped.envelope["metadata"] == {"ignoredArguments": ["bogus"]}


class TestHelpers:
    """Tests for media type and file name helpers."""

    @pytest.mark.parametrize(
        "mime_type,expected",
        [
            ("application/pdf", True),
            ("image/png", True),
            ("application/octet-stream", True),
            ("application/json", False),
            ("text/csv", False),
            ("application/xml", False),
            ("application/atom+xml", False),
            ("", False),
        ],
    )
    def test_is_binary_media_type(self, mime_type, expected):
        assert is_binary_media_type(mime_type) is expected

    def test_suggested_file_name_rfc5987(self):
        raw = _raw(headers={"Content-Disposition": "attachment; filename*=UTF-8''data.csv"})

        assert suggested_file_name(raw) == "data.csv"

    def test_suggested_file_name_default(self):
        assert suggested_file_name(_raw()) == "file"


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    """Tests for error envelopes."""

    def test_not_found(self, ops):
        """Test 404 envelopes carry the status in the message."""
        mapped = _mapper(ops, "getItem").from_response(
            _raw(status=404, reason="Not Found", body=b'{"detail": "missing"}', headers={"Content-Type": "application/json"})
        )

        assert mapped.state == ResponseState.ERROR
        error = mapped.envelope["error"]
        assert mapped.envelope["type"] == "error"
        assert error["code"] == UpstreamError.error_code == "upstream_error"
        assert error["httpStatus"] == 404
        assert "404" in error["message"]
        assert error["details"] == {"detail": "missing"}
        assert error["operation"] == {"name": "getItem", "method": "GET", "path": "/items/{item_id}"}
        assert any("item_id" in s for s in error["suggestions"])

    def test_error_tool_result_flagged(self, ops):
        result = _mapper(ops, "getItem").from_response(_raw(status=500, reason="Internal Server Error")).to_tool_result()

        assert result.is_error is True
        assert "500" in result.text

    @pytest.mark.parametrize("status", [400, 401, 403, 429, 502])
    def test_status_suggestions(self, ops, status):
        mapped = _mapper(ops, "createItem").from_response(_raw(status=status))

        assert mapped.envelope["error"]["suggestions"]

    def test_binary_error_body_base64(self, ops):
        mapped = _mapper(ops, "getItem").from_response(
            _raw(status=500, body=b"\x00\x01", headers={"Content-Type": "application/octet-stream"})
        )

        error = mapped.envelope["error"]
        assert error["rawBodyEncoding"] == "base64"
        assert base64.b64decode(error["rawBody"]) == b"\x00\x01"

    def test_raw_body_truncated(self, ops):
        mapped = _mapper(ops, "getItem").from_response(_raw(status=500, body=b"x" * 5000))

        assert len(mapped.envelope["error"]["rawBody"]) == 2000

    def test_invalid_argument(self, ops):
        """Test validation errors include details, an example and the schema."""
        exc = InvalidArgument("bad", errors=["Missing required parameter 'item_id'"], missing=["item_id"])

        error = _mapper(ops, "getItem").from_error(exc).envelope["error"]

        assert error["code"] == "invalid_argument"
        assert error["details"] == ["Missing required parameter 'item_id'"]
        assert error["suggestions"] == ['Try again with: call getItem {"item_id": "example_string"}']
        assert error["inputSchema"]["required"] == ["item_id"]

    def test_network_error(self, ops):
        exc = NetworkError("Connection failed", cause=httpx.ConnectError("refused"))

        error = _mapper(ops, "getItem").from_error(exc).envelope["error"]

        assert error["code"] == "network_error"
        assert error["details"] == "ConnectError"
        assert "httpStatus" not in error

    def test_no_server(self, ops):
        error = _mapper(ops, "getItem").from_error(NoServerAvailable("none")).envelope["error"]

        assert error == {"code": "no_server_available", "message": "none"}
