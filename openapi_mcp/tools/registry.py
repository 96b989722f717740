"""
Tool Registry.

The registry binds operations to named tools and serves them:
- Registration with validation and duplicate detection
- Listing and describing tools
- Calling tools by name, always returning an envelope

Tools are registered once at startup and only read while serving calls.

Usage:
    registry = ToolRegistry.from_document(document, settings=settings)

    registry.list_tool_summaries()
    registry.describe("getItem")
    result = await registry.call("getItem", {"item_id": "42"})

    # Preview what would be generated, without binding anything
    entries = preview_operations(operations, ToolGenOptions(name_format="snake"))
"""

from __future__ import annotations

import copy
import logging
import random
import re
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Literal

import httpx
from pydantic import BaseModel, Field

from openapi_mcp.config.schemas import Credentials, EngineSettings
from openapi_mcp.errors import DuplicateToolName, ToolRegistryError
from openapi_mcp.spec.extractor import extract_filtered_operations
from openapi_mcp.spec.models import Operation
from openapi_mcp.tools.auth import AuthInjector
from openapi_mcp.tools.base import Tool, ToolAnnotations, ToolResult
from openapi_mcp.tools.executor import HttpExecutor
from openapi_mcp.tools.openapi import (
    DescribeTool,
    ExternalDocsTool,
    InfoTool,
    OpenAPIOperationTool,
    operation_annotations,
)
from openapi_mcp.tools.schema import (
    build_example_arguments,
    build_operation_schema,
    build_tool_description,
    format_tool_name,
)
from openapi_mcp.tools.servers import ServerSelector

logger = logging.getLogger(__name__)

_VALID_NAME = re.compile(r"^[A-Za-z0-9_.\-]{1,128}$")


# =============================================================================
# Options and Entries
# =============================================================================


class ToolGenOptions(BaseModel):
    """
    Options controlling how operations become tools.

    Attributes:
        name_format: Naming convention applied to operation ids
        tag_filter: Only operations carrying one of these tags
        confirm_dangerous_actions: Gate PUT/POST/DELETE/PATCH behind confirmation
        version: Shown in annotation titles ("OpenAPI <version> | Tags: ...")
        dry_run: Build entries without binding executable tools
        post_process_schema: Hook (tool_name, schema) -> schema applied to
            every generated input schema
    """

    name_format: Literal["lower", "upper", "snake", "camel"] | None = None
    tag_filter: list[str] = Field(default_factory=list)
    confirm_dangerous_actions: bool = True
    version: str | None = None
    dry_run: bool = False
    post_process_schema: Callable[[str, dict[str, Any]], dict[str, Any]] | None = None

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> ToolGenOptions:
        return cls(
            name_format=settings.tool_name_format,
            tag_filter=list(settings.tags),
            confirm_dangerous_actions=settings.confirm_dangerous_actions,
        )


@dataclass(frozen=True, slots=True)
class ToolEntry:
    """
    A registered (or previewed) tool.

    ``tool`` is None for dry-run previews.
    """

    name: str
    description: str
    input_schema: dict[str, Any]
    annotations: ToolAnnotations
    tags: tuple[str, ...] = ()
    operation: Operation | None = None
    example: dict[str, Any] | None = None
    tool: Tool | None = None

    def to_description(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": copy.deepcopy(self.input_schema),
            "annotations": self.annotations.to_dict(),
            "tags": list(self.tags),
        }
        if self.operation is not None:
            result["method"] = self.operation.method.upper()
            result["path"] = self.operation.path
        if self.example is not None:
            result["examples"] = [copy.deepcopy(self.example)]
            result["example_call"] = {"tool": self.name, "arguments": copy.deepcopy(self.example)}
        return result


def build_tool_entries(
    operations: Iterable[Operation],
    options: ToolGenOptions | None = None,
) -> list[ToolEntry]:
    """
    Derive tool entries (name, schema, description, annotations, example).

    Both registration and dry-run previews use this function, so the
    schemas shown in a preview are the schemas validated at call time.

    Raises:
        DuplicateToolName: Two operations map to the same tool name
    """
    options = options or ToolGenOptions()
    tag_filter = set(options.tag_filter)
    entries: list[ToolEntry] = []
    seen: set[str] = set()

    for op in operations:
        if tag_filter and not tag_filter.intersection(op.tags):
            continue

        name = format_tool_name(options.name_format, op.operation_id)
        if name in seen:
            raise DuplicateToolName(name)
        seen.add(name)

        schema = build_operation_schema(op)
        if options.post_process_schema is not None:
            schema = options.post_process_schema(name, schema)

        entries.append(
            ToolEntry(
                name=name,
                description=build_tool_description(
                    op,
                    schema,
                    tool_name=name,
                    confirm_dangerous_actions=options.confirm_dangerous_actions,
                ),
                input_schema=schema,
                annotations=operation_annotations(op, version=options.version),
                tags=op.tags,
                operation=op,
                example=build_example_arguments(schema),
            )
        )

    return entries


def preview_operations(
    operations: Iterable[Operation],
    options: ToolGenOptions | None = None,
) -> list[ToolEntry]:
    """Dry run: entries that would be registered, without executables."""
    entries = build_tool_entries(operations, options)
    logger.info(f"[tool_registry] Dry run: {len(entries)} tools would be registered")
    return entries


def summarize_operations(operations: Iterable[Operation]) -> dict[str, Any]:
    """
    Count operations in total and per tag.

    Untagged operations are counted under "untagged".
    """
    total = 0
    by_tag: Counter[str] = Counter()
    for op in operations:
        total += 1
        for tag in op.tags or ("untagged",):
            by_tag[tag] += 1
    return {"total": total, "tags": dict(sorted(by_tag.items()))}


# =============================================================================
# Registry
# =============================================================================


class ToolRegistry:
    """
    Registry of callable tools.

    Example:
        registry = ToolRegistry()
        registry.register_operations(operations, document, settings=settings)

        result = await registry.call("deleteItem", {"item_id": "1"})
        # -> confirmation_request envelope
        result = await registry.call("deleteItem", {"item_id": "1", "__confirmed": True})
        # -> success or error envelope
    """

    def __init__(self) -> None:
        self._entries: dict[str, ToolEntry] = {}

    @classmethod
    def from_document(
        cls,
        document: dict[str, Any],
        *,
        options: ToolGenOptions | None = None,
        settings: EngineSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        rng: random.Random | None = None,
    ) -> ToolRegistry:
        """
        Extract operations and register them.

        Description filters and strict mode come from settings.
        """
        settings = settings or EngineSettings()
        operations = extract_filtered_operations(
            document,
            settings.include_description_regex,
            settings.exclude_description_regex,
            strict=settings.strict,
        )
        registry = cls()
        registry.register_operations(
            operations,
            document,
            options=options,
            settings=settings,
            http_client=http_client,
            rng=rng,
        )
        return registry

    def register(self, tool: Tool) -> None:
        """
        Register a tool.

        Args:
            tool: Tool instance to register

        Raises:
            DuplicateToolName: If tool name already registered
            ToolRegistryError: If the tool is malformed
        """
        if tool.name in self._entries:
            raise DuplicateToolName(tool.name)

        self._validate_tool(tool)

        operation = tool.operation if isinstance(tool, OpenAPIOperationTool) else None
        self._entries[tool.name] = ToolEntry(
            name=tool.name,
            description=tool.description,
            input_schema=tool.input_schema,
            annotations=tool.annotations,
            tags=tool.tags,
            operation=operation,
            example=build_example_arguments(tool.input_schema) if operation is not None else None,
            tool=tool,
        )
        logger.debug(f"[tool_registry] Registered tool: {tool.name}")

    def register_operations(
        self,
        operations: Iterable[Operation],
        document: dict[str, Any],
        *,
        options: ToolGenOptions | None = None,
        settings: EngineSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        rng: random.Random | None = None,
    ) -> list[ToolEntry]:
        """
        Bind operations to tools and add the synthesized tools.

        Args:
            operations: Extracted operations
            document: Document the operations came from
            options: Tool generation options (derived from settings when omitted)
            settings: Engine settings (credentials, timeout, base URL override)
            http_client: Optional shared HTTP client
            rng: Random source for server selection

        Returns:
            Registered entries (or previewed entries in dry-run mode)

        Raises:
            DuplicateToolName: On any name collision; nothing is registered
        """
        settings = settings or EngineSettings()
        options = options or ToolGenOptions.from_settings(settings)

        entries = build_tool_entries(operations, options)
        if options.dry_run:
            logger.info(f"[tool_registry] Dry run: {len(entries)} tools would be registered")
            return entries

        synthesized_names = ["info", "describe"]
        if document.get("externalDocs"):
            synthesized_names.append("externalDocs")

        entry_names = {e.name for e in entries}
        for name in [*entry_names, *synthesized_names]:
            if name in self._entries:
                raise DuplicateToolName(name)
        for name in synthesized_names:
            if name in entry_names:
                raise DuplicateToolName(name)

        selector = ServerSelector(settings.base_url, rng=rng)
        auth = AuthInjector(document, strict=settings.strict)
        executor = HttpExecutor(settings.timeout, http_client=http_client, log_http=settings.log_http)

        for entry, operation in ((e, e.operation) for e in entries if e.operation is not None):
            self.register(
                OpenAPIOperationTool(
                    operation,
                    document,
                    name=entry.name,
                    input_schema=entry.input_schema,
                    description=entry.description,
                    annotations=entry.annotations,
                    selector=selector,
                    auth=auth,
                    executor=executor,
                    credentials=settings.credentials,
                    confirm_dangerous_actions=options.confirm_dangerous_actions,
                )
            )

        self.register(InfoTool(document))
        if document.get("externalDocs"):
            self.register(ExternalDocsTool(document["externalDocs"]))
        self.register(DescribeTool(self))

        logger.info(
            f"[tool_registry] Registered {len(entries)} operation tools "
            f"({len(self._entries)} tools total)"
        )
        return [self._entries[e.name] for e in entries]

    def unregister(self, name: str) -> bool:
        if name in self._entries:
            del self._entries[name]
            logger.info(f"[tool_registry] Unregistered tool: {name}")
            return True
        return False

    def get(self, name: str) -> Tool | None:
        entry = self._entries.get(name)
        return entry.tool if entry else None

    def get_required(self, name: str) -> Tool:
        """
        Get a tool by name, raising if not found.

        Raises:
            ToolRegistryError: If tool not found
        """
        tool = self.get(name)
        if tool is None:
            raise ToolRegistryError(f"Tool '{name}' not found. Available tools: {self.list_names()}")
        return tool

    def list_tools(self) -> list[Tool]:
        return [e.tool for e in self._entries.values() if e.tool is not None]

    def list_names(self) -> list[str]:
        return list(self._entries.keys())

    def list_tool_summaries(self) -> list[dict[str, Any]]:
        """Name, description and tags of every tool, in registration order."""
        return [
            {"name": e.name, "description": e.description, "tags": list(e.tags)}
            for e in self._entries.values()
        ]

    def describe(self, name: str | None = None) -> dict[str, Any]:
        """
        Full descriptions of all tools, or of one tool.

        Raises:
            ToolRegistryError: If ``name`` is given and not registered
        """
        if name is not None:
            if name not in self._entries:
                raise ToolRegistryError(f"Tool '{name}' not found")
            entries = [self._entries[name]]
        else:
            entries = list(self._entries.values())
        return {"type": "tool_descriptions", "tools": [e.to_description() for e in entries]}

    def to_mcp_schemas(self) -> list[dict[str, Any]]:
        return [tool.to_mcp_schema() for tool in self.list_tools()]

    async def call(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        credentials: Credentials | None = None,
    ) -> ToolResult:
        """
        Call a tool by name.

        Per-call failures never raise; they come back as error envelopes.

        Args:
            name: Tool name
            arguments: Tool arguments
            credentials: Per-call credentials overriding configured ones

        Returns:
            ToolResult carrying the envelope
        """
        tool = self.get(name)
        if tool is None:
            return ToolResult.error(
                "unknown_tool",
                f"Tool '{name}' not found",
                suggestions=["Call 'describe' to list available tools."],
            )

        try:
            if isinstance(tool, OpenAPIOperationTool):
                return await tool.execute(arguments or {}, credentials=credentials)
            return await tool.execute(arguments or {})
        except Exception as e:
            logger.error(f"[tool_registry] Tool '{name}' failed unexpectedly: {e}", exc_info=True)
            return ToolResult.error("internal_error", f"Tool '{name}' failed: {e}")

    def _validate_tool(self, tool: Tool) -> None:
        """
        Validate tool has required properties.

        Raises:
            ToolRegistryError: If tool is invalid
        """
        if not tool.name or not isinstance(tool.name, str) or not _VALID_NAME.match(tool.name):
            raise ToolRegistryError(f"Tool must have a valid name: {tool!r}")

        if not tool.description or not isinstance(tool.description, str):
            raise ToolRegistryError(f"Tool '{tool.name}' must have a description")

        schema = tool.input_schema
        if not isinstance(schema, dict):
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must be a dict")

        if schema.get("type") != "object":
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must have type: 'object'")

        if "properties" not in schema:
            raise ToolRegistryError(f"Tool '{tool.name}' input_schema must have 'properties'")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __repr__(self) -> str:
        return f"<ToolRegistry tools={self.list_names()}>"
