"""MCP server exposing the GUI feedback tools."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import anyio
from mcp.server.fastmcp import FastMCP

from uifeedback.automation.engine import BrowserEngine
from uifeedback.mcp.tools import TOOL_NAMES, ToolHandlers
from uifeedback.session.registry import SessionRegistry

logger = logging.getLogger(__name__)


def create_server(
    registry: SessionRegistry | None = None,
    engine: BrowserEngine | None = None,
) -> FastMCP:
    """Build a FastMCP server whose tools share one registry and one engine.

    Every session still open when the server stops is destroyed, then the
    Playwright driver is shut down.
    """
    if registry is None:
        registry = SessionRegistry()
    if engine is None:
        engine = BrowserEngine()
    handlers = ToolHandlers(registry, engine)

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[None]:
        try:
            yield
        finally:
            with anyio.CancelScope(shield=True):
                logger.info("Shutting down: cleaning up all sessions")
                await registry.destroy_all()
                await engine.stop()

    mcp = FastMCP("uifeedback", lifespan=lifespan)
    for name in TOOL_NAMES:
        mcp.tool(name=name, structured_output=False)(getattr(handlers, name))
    return mcp
