"""
Tool Base Classes (MCP-Aligned).

This module defines the core abstractions shared by every tool:
- Tool: Base class for all tools
- ToolResult: Result from tool execution, carrying a result envelope
- ToolAnnotations: Behavioral hints for tools
- ContentBlock: Content blocks in tool results

MCP Alignment:
    This interface follows Model Context Protocol standards:
    - Tool has name, description, input_schema
    - ToolResult has content blocks, is_error flag, and structured content
    - Annotations are advisory hints only

Envelopes:
    Every OpenAPI tool call produces exactly one envelope dict, tagged by
    "type": "success", "error", or "confirmation_request". The envelope is
    stored as structured_content and rendered as JSON in the text block.

Usage:
    class PingTool(Tool):
        @property
        def name(self) -> str:
            return "ping"

        @property
        def description(self) -> str:
            return "Check that the server answers"

        @property
        def input_schema(self) -> dict:
            return {"type": "object", "properties": {}, "required": []}

        async def execute(self, arguments: dict) -> ToolResult:
            return ToolResult.from_envelope({"type": "success", "text": "pong"})
"""

from __future__ import annotations

import base64
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ContentType(Enum):
    """Type of content in a tool result (MCP-aligned)."""

    TEXT = "text"
    RESOURCE = "resource"


@dataclass(frozen=True, slots=True)
class ContentBlock:
    """
    Content block in tool result (MCP-aligned).

    Supports:
    - TEXT: Plain text result
    - RESOURCE: Embedded binary resource (downloaded file)

    Example:
        ContentBlock.from_text('{"type": "success", ...}')
        ContentBlock.from_blob(pdf_bytes, mime_type="application/pdf", name="report.pdf")
    """

    type: ContentType
    text_content: str | None = None
    data: bytes | None = None  # For embedded resources
    mime_type: str | None = None
    name: str | None = None
    annotations: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(
        cls,
        content: str,
        *,
        annotations: dict[str, Any] | None = None,
    ) -> ContentBlock:
        """Create a text content block."""
        return cls(
            type=ContentType.TEXT,
            text_content=content,
            annotations=annotations or {},
        )

    @classmethod
    def from_blob(
        cls,
        data: bytes,
        *,
        mime_type: str = "application/octet-stream",
        name: str | None = None,
    ) -> ContentBlock:
        """Create an embedded resource block for binary payloads."""
        return cls(
            type=ContentType.RESOURCE,
            data=data,
            mime_type=mime_type,
            name=name,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {"type": self.type.value}

        if self.text_content is not None:
            result["text"] = self.text_content
        if self.data is not None:
            result["resource"] = {
                "blob": base64.b64encode(self.data).decode(),
                "mimeType": self.mime_type,
                "name": self.name,
            }
        if self.annotations:
            result["annotations"] = self.annotations

        return result


@dataclass(frozen=True, slots=True)
class ToolAnnotations:
    """
    Behavioral hints for tools (MCP-aligned).

    These are ADVISORY only - they do not enforce behavior and should
    not be relied upon for security decisions. The confirmation gate,
    not these hints, is what protects mutating operations.

    Attributes:
        title: Human-readable title for display
        read_only_hint: If True, tool does not modify environment
        destructive_hint: For non-read-only tools, may destroy data
        idempotent_hint: Repeated calls with same args have no additional effect
        open_world_hint: Tool interacts with external entities
    """

    title: str | None = None
    read_only_hint: bool = False
    destructive_hint: bool = True
    idempotent_hint: bool = False
    open_world_hint: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {}

        if self.title is not None:
            result["title"] = self.title
        if self.read_only_hint:
            result["readOnlyHint"] = True
        if not self.destructive_hint:
            result["destructiveHint"] = False
        if self.idempotent_hint:
            result["idempotentHint"] = True
        if self.open_world_hint:
            result["openWorldHint"] = True

        return result


@dataclass(frozen=True, slots=True)
class ToolResult:
    """
    Result from tool execution (MCP-aligned).

    Every tool execution returns a ToolResult containing:
    - content: Array of content blocks (text, embedded resources)
    - is_error: Whether the execution failed
    - structured_content: The result envelope

    Error Handling:
        Tool execution errors are reported IN the result, not as
        exceptions. A confirmation request is not an error.

    Example:
        ToolResult.from_envelope({"type": "success", "data": {...}, ...})
        ToolResult.from_envelope({"type": "error", "error": {...}})
    """

    content: tuple[ContentBlock, ...]
    is_error: bool = False
    structured_content: dict[str, Any] | None = None

    @classmethod
    def from_envelope(
        cls,
        envelope: dict[str, Any],
        *,
        additional_content: tuple[ContentBlock, ...] | None = None,
    ) -> ToolResult:
        """
        Wrap a result envelope.

        Args:
            envelope: Envelope dict tagged by "type"
            additional_content: Extra blocks (e.g. an embedded file)

        Returns:
            ToolResult with is_error set for error envelopes only
        """
        content = [ContentBlock.from_text(json.dumps(envelope, indent=2, default=str))]
        if additional_content:
            content.extend(additional_content)

        return cls(
            content=tuple(content),
            is_error=envelope.get("type") == "error",
            structured_content=envelope,
        )

    @classmethod
    def error(
        cls,
        code: str,
        message: str,
        **extra: Any,
    ) -> ToolResult:
        """
        Create an error result.

        Args:
            code: Machine-readable error code
            message: Error description
            **extra: Additional fields for the error payload (details, suggestions, ...)

        Returns:
            ToolResult with is_error=True
        """
        payload: dict[str, Any] = {"code": code, "message": message}
        payload.update({k: v for k, v in extra.items() if v is not None})
        return cls.from_envelope({"type": "error", "error": payload})

    @property
    def envelope(self) -> dict[str, Any]:
        return self.structured_content or {}

    @property
    def text(self) -> str:
        """Get the primary text content (convenience accessor)."""
        for block in self.content:
            if block.type == ContentType.TEXT and block.text_content:
                return block.text_content
        return ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {
            "content": [block.to_dict() for block in self.content],
        }

        if self.is_error:
            result["isError"] = True
        if self.structured_content is not None:
            result["structuredContent"] = self.structured_content

        return result


class Tool(ABC):
    """
    Base class for all tools (MCP-aligned).

    Contract:
        - name: Unique identifier
        - description: Clear description for the calling agent
        - input_schema: JSON Schema for arguments
        - execute: Async method that performs the action

    Tools do NOT know who calls them; the registry only
    looks them up by name and forwards arguments.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for the tool."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """
        JSON Schema defining expected input arguments.

        Must be a JSON Schema object with:
        - type: "object"
        - properties: dict of parameter definitions
        - required: list of required parameter names
        """
        ...

    @property
    def output_schema(self) -> dict[str, Any] | None:
        """Optional JSON Schema for structured output."""
        return None

    @property
    def annotations(self) -> ToolAnnotations:
        """Behavioral hints for the tool."""
        return ToolAnnotations()

    @property
    def tags(self) -> tuple[str, ...]:
        return ()

    @abstractmethod
    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        """
        Execute the tool with the given arguments.

        Args:
            arguments: Dict matching input_schema

        Returns:
            ToolResult with execution outcome

        Important:
            - Report errors in the result envelope, don't raise exceptions
            - Exceptions should only be raised for unexpected failures
        """
        ...

    def to_mcp_schema(self) -> dict[str, Any]:
        """
        Convert to MCP tool schema.

        Includes annotations and optional output schema.
        """
        schema: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

        if self.output_schema:
            schema["outputSchema"] = self.output_schema

        annotations = self.annotations.to_dict()
        if annotations:
            schema["annotations"] = annotations

        return schema

    def __repr__(self) -> str:
        return f"<Tool {self.name}>"
