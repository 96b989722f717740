"""
OpenAPI Tools.

Each OpenAPI operation becomes one OpenAPIOperationTool. A call flows
through the engine's components in a fixed order:

    arguments
      └── marshal (validation + encoding)       -> InvalidArgument
            └── confirmation gate (mutating)    -> confirmation_request
                  └── server selection          -> NoServerAvailable
                        └── auth injection
                              └── HTTP executor -> NetworkError
                                    └── response mapper -> envelope

Validation happens before the gate, so a confirmation request is only
issued for a call that would actually be sent.

Synthesized tools describe the API itself:
    info          title, version, description, terms of service
    externalDocs  documentation URL (only when the document declares one)
    describe      every tool with schema, annotations and examples

Usage:
    tool = OpenAPIOperationTool(
        operation,
        document,
        input_schema=build_operation_schema(operation),
        executor=HttpExecutor(timeout=10.0),
    )
    result = await tool.execute({"item_id": "42"})
    result.structured_content["type"]  # -> "success"
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from openapi_mcp.config.schemas import Credentials
from openapi_mcp.errors import InvalidArgument, NetworkError, NoServerAvailable
from openapi_mcp.spec.models import Operation
from openapi_mcp.tools.auth import AuthInjector
from openapi_mcp.tools.base import Tool, ToolAnnotations, ToolResult
from openapi_mcp.tools.executor import HttpExecutor
from openapi_mcp.tools.marshal import marshal
from openapi_mcp.tools.responses import ResponseMapper
from openapi_mcp.tools.schema import build_operation_schema, build_tool_description
from openapi_mcp.tools.servers import ServerSelector

if TYPE_CHECKING:
    from openapi_mcp.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}, "required": []}


def operation_annotations(operation: Operation, *, version: str | None = None) -> ToolAnnotations:
    """Annotations derived from the HTTP method."""
    method = operation.method.upper()
    if version:
        title = f"OpenAPI {version}"
        if operation.tags:
            title += f" | Tags: {', '.join(operation.tags)}"
    else:
        title = operation.summary or operation.operation_id
    return ToolAnnotations(
        title=title,
        read_only_hint=method in ("GET", "HEAD", "OPTIONS"),
        destructive_hint=method == "DELETE",
        idempotent_hint=method in ("GET", "HEAD", "OPTIONS", "PUT", "DELETE"),
        open_world_hint=True,
    )


# =============================================================================
# OpenAPI Operation Tool
# =============================================================================


class OpenAPIOperationTool(Tool):
    """
    A Tool generated from a single OpenAPI operation.

    The tool owns no mutable state; every call starts from scratch, which
    makes the confirmation flow stateless: the caller resends the same
    arguments with the confirmation flag set.

    HTTP Client Lifecycle:
        Managed by the HttpExecutor. Pass an executor built around a shared
        httpx.AsyncClient for connection pooling.
    """

    def __init__(
        self,
        operation: Operation,
        document: dict[str, Any],
        *,
        name: str | None = None,
        input_schema: dict[str, Any] | None = None,
        description: str | None = None,
        annotations: ToolAnnotations | None = None,
        selector: ServerSelector | None = None,
        auth: AuthInjector | None = None,
        executor: HttpExecutor | None = None,
        credentials: Credentials | None = None,
        confirm_dangerous_actions: bool = True,
    ):
        """
        Initialize the tool.

        Args:
            operation: Extracted operation
            document: OpenAPI document the operation came from
            name: Tool name (defaults to the operation id)
            input_schema: Precomputed input schema (built when omitted)
            description: Precomputed description (built when omitted)
            annotations: Precomputed annotations (derived when omitted)
            selector: Base URL selector
            auth: Authentication injector for the document's schemes
            executor: HTTP executor
            credentials: Configured credentials
            confirm_dangerous_actions: Gate mutating methods behind confirmation
        """
        self._operation = operation
        self._document = document
        self._name = name or operation.operation_id
        self._input_schema = input_schema if input_schema is not None else build_operation_schema(operation)
        self._description = description or build_tool_description(
            operation,
            self._input_schema,
            tool_name=self._name,
            confirm_dangerous_actions=confirm_dangerous_actions,
        )
        self._annotations = annotations or operation_annotations(operation)
        self._selector = selector or ServerSelector()
        self._auth = auth or AuthInjector(document)
        self._executor = executor or HttpExecutor()
        self._credentials = credentials or Credentials()
        self._mapper = ResponseMapper(
            self._name,
            operation,
            self._input_schema,
            confirm_dangerous_actions=confirm_dangerous_actions,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def input_schema(self) -> dict[str, Any]:
        return self._input_schema

    @property
    def annotations(self) -> ToolAnnotations:
        return self._annotations

    @property
    def tags(self) -> tuple[str, ...]:
        return self._operation.tags

    @property
    def operation(self) -> Operation:
        return self._operation

    async def execute(
        self,
        arguments: dict[str, Any],
        *,
        credentials: Credentials | None = None,
    ) -> ToolResult:
        """
        Execute the API call.

        Args:
            arguments: Dict matching input_schema, optionally with the
                confirmation flag
            credentials: Per-call credentials overriding configured ones

        Returns:
            ToolResult carrying a success, error, or confirmation envelope
        """
        arguments = dict(arguments or {})

        try:
            descriptor = marshal(self._operation, arguments, self._input_schema)
        except InvalidArgument as e:
            return self._mapper.from_error(e).to_tool_result()

        if self._mapper.needs_confirmation(arguments):
            return self._mapper.confirm(arguments).to_tool_result()

        try:
            descriptor.base_url = self._selector.select_base_url(self._document, self._operation)
        except NoServerAvailable as e:
            return self._mapper.from_error(e).to_tool_result()

        self._auth.apply(descriptor, self._operation, self._credentials, override=credentials)

        logger.info(f"[openapi_tool:{self.name}] {descriptor.method} {descriptor.base_url}{descriptor.path}")

        try:
            raw = await self._executor.execute(descriptor)
        except NetworkError as e:
            return self._mapper.from_error(e).to_tool_result()

        return self._mapper.from_response(
            raw, ignored_arguments=descriptor.ignored_arguments
        ).to_tool_result()


# =============================================================================
# Synthesized Tools
# =============================================================================


def _success(data: Any) -> ToolResult:
    return ToolResult.from_envelope(
        {"type": "success", "data": data, "outputType": "json", "outputFormat": "structured"}
    )


class InfoTool(Tool):
    """Reports the API's info section."""

    def __init__(self, document: dict[str, Any]):
        self._info = document.get("info") or {}

    @property
    def name(self) -> str:
        return "info"

    @property
    def description(self) -> str:
        title = self._info.get("title") or "this API"
        return f"Get information about {title}: title, version, description and terms of service."

    @property
    def input_schema(self) -> dict[str, Any]:
        return dict(_EMPTY_SCHEMA)

    @property
    def annotations(self) -> ToolAnnotations:
        return ToolAnnotations(title="API information", read_only_hint=True, destructive_hint=False, idempotent_hint=True)

    def info(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self._info.get("title", ""),
            "version": self._info.get("version", ""),
        }
        for key in ("description", "termsOfService", "contact", "license"):
            if self._info.get(key):
                data[key] = self._info[key]
        return data

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        return _success(self.info())


class ExternalDocsTool(Tool):
    """Reports the document's external documentation link."""

    def __init__(self, external_docs: dict[str, Any]):
        self._docs = external_docs

    @property
    def name(self) -> str:
        return "externalDocs"

    @property
    def description(self) -> str:
        return "Get the URL and description of the API's external documentation."

    @property
    def input_schema(self) -> dict[str, Any]:
        return dict(_EMPTY_SCHEMA)

    @property
    def annotations(self) -> ToolAnnotations:
        return ToolAnnotations(title="External documentation", read_only_hint=True, destructive_hint=False, idempotent_hint=True)

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        data = {"url": self._docs.get("url", "")}
        if self._docs.get("description"):
            data["description"] = self._docs["description"]
        return _success(data)


class DescribeTool(Tool):
    """Describes every registered tool."""

    def __init__(self, registry: ToolRegistry):
        self._registry = registry

    @property
    def name(self) -> str:
        return "describe"

    @property
    def description(self) -> str:
        return (
            "Describe all available tools: names, descriptions, input schemas, "
            "annotations and example calls. Pass 'name' to describe a single tool."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Describe only this tool."},
            },
            "required": [],
        }

    @property
    def annotations(self) -> ToolAnnotations:
        return ToolAnnotations(title="Describe tools", read_only_hint=True, destructive_hint=False, idempotent_hint=True)

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        name = (arguments or {}).get("name")
        if name and name not in self._registry:
            return ToolResult.error(
                "unknown_tool",
                f"Tool '{name}' not found",
                suggestions=[f"Available tools: {', '.join(self._registry.list_names())}"],
            )
        return _success(self._registry.describe(name))
