"""
openapi-mcp - OpenAPI operations as callable tools

FastAPI application entry point.

Routes:
    GET  /health                 liveness and tool count
    GET  /tools                  tool summaries (name, description, tags)
    GET  /tools/describe         full descriptions of every tool
    GET  /tools/{name}           full description of one tool
    POST /tools/{name}/call      call a tool; JSON body = arguments

Incoming X-API-Key / Api-Key and Authorization headers are forwarded to the
tool as per-call credentials.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse

from openapi_mcp import __version__
from openapi_mcp.app.dependencies import (
    get_registry,
    get_request_credentials,
    get_settings,
    initialize_services,
    shutdown_services,
)
from openapi_mcp.config import Credentials
from openapi_mcp.errors import ToolRegistryError
from openapi_mcp.tools import ToolRegistry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Loads the OpenAPI document and builds the registry on startup.
    """
    logger.info("Starting openapi-mcp...")
    try:
        await initialize_services()
        logger.info("openapi-mcp initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down openapi-mcp...")
    await shutdown_services()


settings = get_settings()

app = FastAPI(
    title="openapi-mcp",
    description="Expose OpenAPI operations as callable tools",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint with service info."""
    return {
        "service": settings.service_name,
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
async def health(registry: ToolRegistry = Depends(get_registry)) -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "healthy", "tools": len(registry)}


@app.get("/tools", tags=["tools"])
async def list_tools(registry: ToolRegistry = Depends(get_registry)) -> list[dict[str, Any]]:
    return registry.list_tool_summaries()


@app.get("/tools/describe", tags=["tools"])
async def describe_tools(registry: ToolRegistry = Depends(get_registry)) -> dict[str, Any]:
    return registry.describe()


@app.get("/tools/{name}", tags=["tools"])
async def describe_tool(name: str, registry: ToolRegistry = Depends(get_registry)) -> dict[str, Any]:
    try:
        return registry.describe(name)
    except ToolRegistryError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@app.post("/tools/{name}/call", tags=["tools"])
async def call_tool(
    name: str,
    arguments: dict[str, Any] | None = Body(None),
    registry: ToolRegistry = Depends(get_registry),
    credentials: Credentials | None = Depends(get_request_credentials),
) -> JSONResponse:
    """
    Call a tool.

    Always answers with the tool result; HTTP 404 only for unknown tools.
    """
    result = await registry.call(name, arguments or {}, credentials=credentials)
    status_code = 404 if name not in registry else 200
    return JSONResponse(content=result.to_dict(), status_code=status_code)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "openapi_mcp.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
