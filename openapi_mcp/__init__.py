"""
openapi-mcp - OpenAPI operations as callable tools.

Point it at an OpenAPI 3.x document and every operation becomes a tool
with a validated input schema, request construction, authentication,
and structured result envelopes.
"""

from openapi_mcp.config import Credentials, EngineSettings, load_settings
from openapi_mcp.spec import extract_operations, load_spec
from openapi_mcp.tools import ToolGenOptions, ToolRegistry, ToolResult

__version__ = "0.1.0"

__all__ = [
    "Credentials",
    "EngineSettings",
    "load_settings",
    "load_spec",
    "extract_operations",
    "ToolRegistry",
    "ToolGenOptions",
    "ToolResult",
    "__version__",
]
