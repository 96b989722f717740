"""
Pytest configuration and fixtures for openapi-mcp tests.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest

# Add the repository root to path for imports
# This allows `from openapi_mcp.tools import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))


# =============================================================================
# Sample OpenAPI Specs
# =============================================================================


@pytest.fixture
def simple_spec():
    """Items API with reads, writes, a binary download and array parameters."""
    return {
        "openapi": "3.0.0",
        "info": {
            "title": "Simple API",
            "version": "1.0.0",
            "description": "A simple items API",
            "termsOfService": "https://example.com/terms",
        },
        "externalDocs": {
            "url": "https://docs.example.com",
            "description": "Full documentation",
        },
        "servers": [{"url": "https://api.example.com"}],
        "paths": {
            "/items": {
                "get": {
                    "operationId": "listItems",
                    "summary": "List all items",
                    "tags": ["items"],
                    "parameters": [
                        {
                            "name": "limit",
                            "in": "query",
                            "schema": {"type": "integer", "default": 10},
                            "description": "Maximum items to return",
                        },
                        {
                            "name": "tag",
                            "in": "query",
                            "schema": {"type": "array", "items": {"type": "string"}},
                            "explode": True,
                        },
                    ],
                    "responses": {"200": {"description": "List of items"}},
                },
                "post": {
                    "operationId": "createItem",
                    "summary": "Create an item",
                    "tags": ["items"],
                    "requestBody": {
                        "required": True,
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "object",
                                    "properties": {
                                        "name": {"type": "string", "description": "Item name"},
                                        "price": {"type": "number", "description": "Item price"},
                                    },
                                    "required": ["name"],
                                }
                            }
                        },
                    },
                    "responses": {"201": {"description": "Created item"}},
                },
            },
            "/items/{item_id}": {
                "get": {
                    "operationId": "getItem",
                    "summary": "Get an item by ID",
                    "tags": ["items"],
                    "parameters": [
                        {
                            "name": "item_id",
                            "in": "path",
                            "required": True,
                            "schema": {"type": "string"},
                            "description": "Item ID",
                        }
                    ],
                    "responses": {"200": {"description": "Item details"}},
                },
                "delete": {
                    "operationId": "deleteItem",
                    "summary": "Delete an item",
                    "tags": ["items"],
                    "parameters": [
                        {
                            "name": "item_id",
                            "in": "path",
                            "required": True,
                            "schema": {"type": "string"},
                        }
                    ],
                    "responses": {"204": {"description": "Item deleted"}},
                },
            },
            "/files/{file_id}": {
                "get": {
                    "operationId": "downloadFile",
                    "summary": "Download a file",
                    "tags": ["files"],
                    "parameters": [
                        {
                            "name": "file_id",
                            "in": "path",
                            "required": True,
                            "schema": {"type": "string"},
                        }
                    ],
                    "responses": {"200": {"description": "File contents"}},
                }
            },
        },
    }


@pytest.fixture
def secured_spec():
    """Spec with every supported security scheme type."""
    return {
        "openapi": "3.0.3",
        "info": {"title": "Secured API", "version": "2.0.0"},
        "servers": [{"url": "https://secure.example.com"}],
        "security": [{"headerKey": []}],
        "components": {
            "securitySchemes": {
                "headerKey": {"type": "apiKey", "in": "header", "name": "X-Secret"},
                "queryKey": {"type": "apiKey", "in": "query", "name": "api_key"},
                "cookieKey": {"type": "apiKey", "in": "cookie", "name": "session"},
                "bearerAuth": {"type": "http", "scheme": "bearer"},
                "basicAuth": {"type": "http", "scheme": "basic"},
                "oauth": {
                    "type": "oauth2",
                    "flows": {"clientCredentials": {"tokenUrl": "https://auth.example.com/token", "scopes": {}}},
                },
            }
        },
        "paths": {
            "/inherited": {
                "get": {"operationId": "inherited", "summary": "Uses document security"},
            },
            "/public": {
                "get": {"operationId": "public", "summary": "No auth", "security": []},
            },
            "/bearer": {
                "get": {"operationId": "bearerOnly", "summary": "Bearer", "security": [{"bearerAuth": []}]},
            },
            "/basic": {
                "get": {"operationId": "basicOnly", "summary": "Basic", "security": [{"basicAuth": []}]},
            },
            "/query": {
                "get": {"operationId": "queryKey", "summary": "Query key", "security": [{"queryKey": []}]},
            },
            "/cookie": {
                "get": {"operationId": "cookieKey", "summary": "Cookie key", "security": [{"cookieKey": []}]},
            },
            "/oauth": {
                "get": {"operationId": "oauthOnly", "summary": "OAuth", "security": [{"oauth": ["read"]}]},
            },
            "/either": {
                "get": {
                    "operationId": "either",
                    "summary": "Bearer or basic",
                    "security": [{"bearerAuth": []}, {"basicAuth": []}],
                },
            },
        },
    }


@pytest.fixture
def spec_with_refs():
    """Spec using $ref for parameters, request bodies and schemas."""
    return {
        "openapi": "3.0.0",
        "info": {"title": "Refs API", "version": "1.0.0"},
        "servers": [{"url": "https://refs.example.com"}],
        "paths": {
            "/workspaces/{slug}/tasks": {
                "parameters": [{"$ref": "#/components/parameters/WorkspaceSlug"}],
                "post": {
                    "operationId": "createTask",
                    "summary": "Create a task",
                    "requestBody": {"$ref": "#/components/requestBodies/TaskBody"},
                },
            }
        },
        "components": {
            "parameters": {
                "WorkspaceSlug": {
                    "name": "slug",
                    "in": "path",
                    "required": True,
                    "schema": {"type": "string"},
                    "description": "Workspace slug",
                }
            },
            "requestBodies": {
                "TaskBody": {
                    "required": True,
                    "content": {
                        "application/json": {"schema": {"$ref": "#/components/schemas/Task"}}
                    },
                }
            },
            "schemas": {
                "Task": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "priority": {"$ref": "#/components/schemas/Priority"},
                    },
                    "required": ["name"],
                },
                "Priority": {"type": "string", "enum": ["low", "medium", "high"]},
            },
        },
    }


# =============================================================================
# HTTP Helpers
# =============================================================================


@pytest.fixture
def mock_client():
    """AsyncMock HTTP client answering 200 with a JSON body."""
    client = AsyncMock()
    client.request = AsyncMock(return_value=httpx.Response(200, json={"ok": True}))
    return client
