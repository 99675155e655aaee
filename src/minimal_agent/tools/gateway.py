"""
Remote tool gateway: a bridge to one MCP server.

Each configured server gets its own :class:`RemoteToolGateway`.  The gateway owns the transport and
the ``ClientSession`` through an ``AsyncExitStack`` so that everything it opened is released by
:meth:`RemoteToolGateway.close`, whatever state the connection is in.

Tools discovered on the server are wrapped as :class:`RemoteTool` entries named
``"<server>:<tool>"`` so they never collide with local tools or with other servers.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from mcp import ClientSession
from mcp import types as mcp_types

from minimal_agent.core.schema import MCPServerConfig
from minimal_agent.errors import (
    GatewayConnectionError,
    NotConnectedError,
    ToolInvocationError,
)
from minimal_agent.tools import (
    ToolContext,
    build_spec,
    open_object_schema,
)

TOOL_NAME_SEPARATOR = ":"
"""Joins a server name and a remote tool name into the registered name."""

DEFAULT_INIT_TIMEOUT = 30.0
"""Seconds to wait for the MCP ``initialize`` handshake."""

CLIENT_INFO = mcp_types.Implementation(name="minimal-agent", version="0.1.0")


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------
class RemoteToolGateway:
    """Session with a single MCP server: ``connect`` -> ``list_tools`` / ``call_tool`` -> ``close``."""

    def __init__(
        self,
        config: MCPServerConfig,
        logger: Optional[logging.Logger] = None,
        init_timeout: float = DEFAULT_INIT_TIMEOUT,
    ):
        self.config = config
        self.init_timeout = init_timeout
        self._logger = logger or logging.getLogger(f"{__name__}.{config.name}")
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[Any] = None

    @property
    def name(self) -> str:
        """The configured server name."""
        return self.config.name

    @property
    def connected(self) -> bool:
        """True once :meth:`connect` has succeeded and until :meth:`close`."""
        return self._session is not None

    async def __aenter__(self) -> "RemoteToolGateway":
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------ #
    # Connection lifecycle
    # ------------------------------------------------------------------ #
    async def _open_transport(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        """Enter the transport selected by the config and return ``(read, write)`` streams."""
        cfg = self.config
        # pylint: disable=import-outside-toplevel
        if cfg.transport == "websocket":
            from mcp.client.websocket import websocket_client

            if cfg.headers:
                self._logger.warning(
                    "Headers are not supported by the websocket transport; ignoring %s",
                    sorted(cfg.headers),
                )
            streams = await stack.enter_async_context(websocket_client(cfg.url))
        elif cfg.transport == "sse":
            from mcp.client.sse import sse_client

            streams = await stack.enter_async_context(sse_client(cfg.url, headers=cfg.headers or None))
        else:
            from mcp.client.streamable_http import streamablehttp_client

            streams = await stack.enter_async_context(
                streamablehttp_client(cfg.url, headers=cfg.headers or None)
            )
        return streams[0], streams[1]

    async def _open_session(self, stack: AsyncExitStack, timeout: float) -> Any:
        """Open the transport, start a ``ClientSession`` and run the handshake within *timeout*."""
        read_stream, write_stream = await self._open_transport(stack)
        session = await stack.enter_async_context(
            ClientSession(read_stream, write_stream, client_info=CLIENT_INFO)
        )
        await asyncio.wait_for(session.initialize(), timeout=timeout)
        return session

    async def connect(self, timeout: Optional[float] = None) -> None:
        """
        Establish the session.

        The transport and session are entered in the calling task, which must also be the task
        that calls :meth:`close`: anyio task groups cannot be exited from another task.

        Parameters
        ----------
        timeout:
            Upper bound for the ``initialize`` handshake; ``init_timeout`` applies when it is
            smaller or *timeout* is omitted.

        Raises
        ------
        GatewayConnectionError
            If the transport cannot be opened or the handshake fails.
        """
        if self.connected:
            return
        handshake = self.init_timeout if timeout is None else min(self.init_timeout, timeout)
        stack = AsyncExitStack()
        await stack.__aenter__()
        try:
            self._session = await self._open_session(stack, handshake)
        except asyncio.CancelledError:
            await stack.aclose()
            raise
        except Exception as exc:  # pylint: disable=broad-except
            await stack.aclose()
            self._logger.error("Failed to connect to MCP server %s: %s", self.config.name, exc)
            raise GatewayConnectionError(
                f"Failed to connect to MCP server '{self.config.name}' at {self.config.url}: {exc}",
                original=exc,
            ) from exc
        self._stack = stack
        self._logger.debug("connected to %s", self.config.url)

    async def close(self) -> None:
        """Release the session and transport.  Safe to call more than once."""
        stack, self._stack = self._stack, None
        self._session = None
        if stack is not None:
            await stack.aclose()
            self._logger.debug("disconnected from %s", self.config.url)

    def _require_session(self) -> Any:
        if self._session is None:
            raise NotConnectedError(f"MCP server '{self.config.name}' is not connected")
        return self._session

    # ------------------------------------------------------------------ #
    # Tool operations
    # ------------------------------------------------------------------ #
    async def list_tools(self) -> List[mcp_types.Tool]:
        """Return the tools advertised by the server (possibly none)."""
        session = self._require_session()
        result = await session.list_tools()
        tools = list(getattr(result, "tools", None) or [])
        self._logger.debug("server advertised %d tools", len(tools))
        return tools

    async def call_tool(self, name: str, arguments: Any) -> Any:
        """
        Invoke the remote tool *name*.

        Returns the structured content when the server supplies it, the joined text when the result
        is text only, and otherwise the JSON-compatible dump of the whole result.

        Raises
        ------
        NotConnectedError
            If called before :meth:`connect`.
        ToolInvocationError
            If the server flags the result as an error or the call fails in transit.
        """
        session = self._require_session()
        args = arguments if isinstance(arguments, dict) else {"_raw": arguments}
        try:
            result = await session.call_tool(name, args)
        except Exception as exc:  # pylint: disable=broad-except
            raise ToolInvocationError(
                f"MCP tool '{name}' on '{self.config.name}' failed: {exc}", original=exc
            ) from exc
        if result is None:
            return None
        if getattr(result, "isError", False):
            raise ToolInvocationError(_content_text(result) or f"MCP tool '{name}' reported an error")
        structured = getattr(result, "structuredContent", None)
        if structured is not None:
            return structured
        content = list(getattr(result, "content", None) or [])
        if content and all(isinstance(item, mcp_types.TextContent) for item in content):
            return "\n".join(item.text for item in content)
        return result.model_dump(mode="json", exclude_none=True)


def _content_text(result: Any) -> str:
    """Join the text parts of an MCP result."""
    parts: List[str] = []
    for item in getattr(result, "content", None) or []:
        text = getattr(item, "text", None)
        parts.append(text if isinstance(text, str) else str(item))
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Registry adapter
# ---------------------------------------------------------------------------
class RemoteTool:
    """Registry entry whose ``invoke`` delegates to the originating gateway."""

    def __init__(self, gateway: RemoteToolGateway, remote: mcp_types.Tool):
        self.gateway = gateway
        self.remote_name = remote.name
        self.name = f"{gateway.name}{TOOL_NAME_SEPARATOR}{remote.name}"
        self.description = remote.description or f"MCP tool {remote.name} from {gateway.name}"
        self.parameters: Optional[Dict[str, Any]] = remote.inputSchema or open_object_schema()

    def spec(self) -> Dict[str, Any]:
        return build_spec(self.name, self.description, self.parameters)

    async def invoke(self, args: Any, ctx: ToolContext) -> Any:
        ctx.log(f"forwarding to {self.gateway.name}")
        return await self.gateway.call_tool(self.remote_name, args)

    def __repr__(self) -> str:
        return f"RemoteTool({self.name!r})"
