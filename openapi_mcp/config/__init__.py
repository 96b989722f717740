"""
openapi-mcp Configuration

Environment-driven settings, passed explicitly to the engine.
"""

from .schemas import Credentials, EngineSettings, load_settings, parse_header_lines

__all__ = [
    "Credentials",
    "EngineSettings",
    "load_settings",
    "parse_header_lines",
]
