"""openapi-mcp HTTP application."""
