"""
openapi-mcp Tools

Turns OpenAPI operations into callable tools.

Components:
    - schema: input schemas, descriptions, examples
    - marshal: arguments -> request descriptor
    - servers: base URL selection
    - auth: credential injection
    - executor: HTTP execution
    - responses: envelope mapping and the confirmation gate
    - registry: tool registration, listing, description, calls

Usage:
    from openapi_mcp.tools import ToolRegistry

    registry = ToolRegistry.from_document(document, settings=settings)
    result = await registry.call("listItems", {"limit": 10})
"""

from .auth import AuthInjector, parse_security_schemes
from .base import ContentBlock, ContentType, Tool, ToolAnnotations, ToolResult
from .executor import HttpExecutor, RawResponse
from .marshal import RequestDescriptor, marshal, validate_arguments
from .openapi import DescribeTool, ExternalDocsTool, InfoTool, OpenAPIOperationTool
from .registry import (
    ToolEntry,
    ToolGenOptions,
    ToolRegistry,
    build_tool_entries,
    preview_operations,
    summarize_operations,
)
from .responses import MappedResponse, ResponseMapper, ResponseState
from .schema import (
    CONFIRMATION_FLAG,
    build_input_schema,
    build_operation_schema,
    build_tool_description,
    format_tool_name,
    generate_example_value,
)
from .servers import ServerSelector

__all__ = [
    # Base
    "Tool",
    "ToolResult",
    "ToolAnnotations",
    "ContentBlock",
    "ContentType",
    # Schema
    "CONFIRMATION_FLAG",
    "build_input_schema",
    "build_operation_schema",
    "build_tool_description",
    "format_tool_name",
    "generate_example_value",
    # Request construction
    "RequestDescriptor",
    "marshal",
    "validate_arguments",
    "ServerSelector",
    "AuthInjector",
    "parse_security_schemes",
    # Execution
    "HttpExecutor",
    "RawResponse",
    "ResponseMapper",
    "ResponseState",
    "MappedResponse",
    # Tools
    "OpenAPIOperationTool",
    "InfoTool",
    "ExternalDocsTool",
    "DescribeTool",
    # Registry
    "ToolRegistry",
    "ToolEntry",
    "ToolGenOptions",
    "build_tool_entries",
    "preview_operations",
    "summarize_operations",
]
