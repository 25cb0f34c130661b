"""Client for the external MCP tool server (SuzieQ).

The server is either spawned as a subprocess speaking stdio or reached over
the network (SSE or streamable HTTP). It is optional: when it cannot be
reached the turn carries on with the in-process tools only, so nothing in
this module raises past its public methods.
"""

from contextlib import AsyncExitStack
from typing import Any, Optional

import structlog
from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from cybertrace.ai.tools.catalogue import CatalogueEntry
from cybertrace.config import Settings
from cybertrace.errors import ToolExecutionError, ToolServerUnavailable

logger = structlog.get_logger()


class ExternalToolClient:
    """Connection to one tool server, scoped to a single conversation turn.

    Use as an async context manager; the connection is released exactly once
    on exit whatever happened inside the block.
    """

    def __init__(self, settings: Settings):
        self.transport = settings.tool_server_transport
        self.command = settings.tool_server_command
        self.args = settings.tool_server_args
        self.url = settings.tool_server_url
        self.error: Optional[ToolServerUnavailable] = None
        self._session: Optional[ClientSession] = None
        self._stack = AsyncExitStack()
        self._closed = False

    async def __aenter__(self) -> "ExternalToolClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def available(self) -> bool:
        return self._session is not None

    async def connect(self) -> bool:
        """Open the transport and initialize the MCP session.

        Returns:
            True when connected. On failure the reason is kept in ``error``
            and the client behaves as a server with no tools.
        """
        try:
            read, write = await self._open_transport()
            session = await self._stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except Exception as e:
            self.error = (
                e if isinstance(e, ToolServerUnavailable) else ToolServerUnavailable(str(e))
            )
            logger.warning(
                "tool_server_unavailable", transport=self.transport, error=str(self.error)
            )
            await self._release()
            return False

        self._session = session
        logger.info("tool_server_connected", transport=self.transport)
        return True

    async def _open_transport(self):
        if self.transport == "stdio":
            if not self.command:
                raise ToolServerUnavailable("TOOL_SERVER_COMMAND is not configured")
            params = StdioServerParameters(command=self.command, args=self.args)
            return await self._stack.enter_async_context(stdio_client(params))

        if self.transport in ("sse", "http"):
            if not self.url:
                raise ToolServerUnavailable("TOOL_SERVER_URL is not configured")
            if self.transport == "sse":
                return await self._stack.enter_async_context(sse_client(self.url))
            read, write, _ = await self._stack.enter_async_context(
                streamablehttp_client(self.url)
            )
            return read, write

        raise ToolServerUnavailable(f"Unknown tool server transport: {self.transport}")

    async def list_tools(self) -> list[dict[str, Any]]:
        """Get the server's tool catalogue as name/description/input_schema dicts."""
        if self._session is None:
            return []
        try:
            response = await self._session.list_tools()
        except Exception as e:
            logger.warning("tool_listing_failed", error=str(e))
            return []

        return [
            {
                "name": tool.name,
                "description": tool.description or "",
                "input_schema": tool.inputSchema or {"type": "object", "properties": {}},
            }
            for tool in response.tools
        ]

    async def call_tool(self, name: str, args: dict[str, Any]) -> str:
        """Call a server tool and return its text output (or an error string)."""
        if self._session is None:
            return str(ToolExecutionError(name, "tool server is not connected"))
        try:
            result = await self._session.call_tool(name, args or {})
        except Exception as e:
            logger.warning("tool_call_failed", tool=name, error=str(e))
            return str(ToolExecutionError(name, str(e)))

        text = _content_to_text(result.content)
        if result.isError:
            logger.warning("tool_returned_error", tool=name)
            return str(ToolExecutionError(name, text or "tool reported an error"))
        return text

    async def catalogue(self) -> dict[str, CatalogueEntry]:
        """Server tools as catalogue entries that delegate back to this client."""
        entries: dict[str, CatalogueEntry] = {}
        for tool in await self.list_tools():
            name = tool["name"]

            async def executor(args: dict[str, Any], _name: str = name) -> str:
                return await self.call_tool(_name, args)

            entries[name] = CatalogueEntry(
                name=name,
                description=tool["description"],
                input_schema=tool["input_schema"],
                source="external",
                executor=executor,
            )
        logger.info("external_tools_discovered", count=len(entries))
        return entries

    async def close(self) -> None:
        """Release the connection. Later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        self._session = None
        await self._release()
        logger.debug("tool_server_closed", transport=self.transport)

    async def _release(self) -> None:
        try:
            await self._stack.aclose()
        except Exception as e:
            logger.warning("tool_server_close_failed", error=str(e))
        self._stack = AsyncExitStack()


def _content_to_text(content: list) -> str:
    chunks = []
    for item in content:
        text = getattr(item, "text", None)
        if text is not None:
            chunks.append(text)
        else:
            chunks.append(f"[{getattr(item, 'type', 'unknown')} content]")
    return "\n".join(chunks)
