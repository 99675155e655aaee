"""Tests for the MCP gateway.  Most tests fake the session; payloads use the real ``mcp.types`` models."""

# mock-ok: MCP servers need a live transport; unit tests replace the session

import asyncio
import contextlib
from contextlib import AsyncExitStack
from typing import (
    Any,
    List,
    Optional,
)

import pytest
from fakes import (
    ScriptedModel,
    assistant,
    remote_tool,
    tool_call,
)
from mcp import types as mcp_types
from mcp.server.fastmcp import FastMCP
from mcp.shared.memory import create_client_server_memory_streams

from minimal_agent.agent.agent_loop import Agent
from minimal_agent.core.schema import MCPServerConfig
from minimal_agent.errors import (
    GatewayConnectionError,
    NotConnectedError,
    ToolInvocationError,
)
from minimal_agent.tools import (
    OPEN_OBJECT_SCHEMA,
    ToolContext,
)
from minimal_agent.tools.gateway import (
    DEFAULT_INIT_TIMEOUT,
    RemoteTool,
    RemoteToolGateway,
)


def text_result(*texts: str, is_error: bool = False) -> mcp_types.CallToolResult:
    return mcp_types.CallToolResult(
        content=[mcp_types.TextContent(type="text", text=t) for t in texts], isError=is_error
    )


class FakeSession:
    def __init__(self, tools: Optional[List[mcp_types.Tool]] = None, result: Any = None):
        self.tools = tools or []
        self.result = result
        self.calls: List[tuple] = []

    async def list_tools(self) -> mcp_types.ListToolsResult:
        return mcp_types.ListToolsResult(tools=self.tools)

    async def call_tool(self, name: str, arguments: Any) -> Any:
        self.calls.append((name, arguments))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class StubGateway(RemoteToolGateway):
    """Gateway whose session is a FakeSession; records when its resources are released."""

    def __init__(self, session: Optional[FakeSession] = None, error: Optional[Exception] = None):
        super().__init__(MCPServerConfig(name="files", url="http://localhost:9000/mcp"))
        self.fake_session = session or FakeSession()
        self.error = error
        self.released = 0
        self.handshake_timeout: Optional[float] = None

    async def _open_session(self, stack: AsyncExitStack, timeout: float) -> Any:
        self.handshake_timeout = timeout
        stack.push_async_callback(self._release)
        if self.error is not None:
            raise self.error
        return self.fake_session

    async def _release(self) -> None:
        self.released += 1


@pytest.mark.asyncio
async def test_operations_require_connect() -> None:
    gateway = StubGateway()
    with pytest.raises(NotConnectedError):
        await gateway.list_tools()
    with pytest.raises(NotConnectedError):
        await gateway.call_tool("read", {})


@pytest.mark.asyncio
async def test_connect_failure_is_wrapped_and_cleaned_up() -> None:
    gateway = StubGateway(error=OSError("connection refused"))
    with pytest.raises(GatewayConnectionError) as info:
        await gateway.connect()

    assert isinstance(info.value, ConnectionError)
    assert isinstance(info.value.original, OSError)
    assert not gateway.connected
    assert gateway.released == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "timeout, expected",
    [(None, DEFAULT_INIT_TIMEOUT), (5.0, 5.0), (DEFAULT_INIT_TIMEOUT + 10, DEFAULT_INIT_TIMEOUT)],
)
async def test_connect_bounds_the_handshake(timeout: Optional[float], expected: float) -> None:
    gateway = StubGateway()
    await gateway.connect(timeout=timeout)
    await gateway.close()
    assert gateway.handshake_timeout == expected


@pytest.mark.asyncio
async def test_list_tools() -> None:
    session = FakeSession(tools=[remote_tool("read"), remote_tool("write")])
    async with StubGateway(session) as gateway:
        tools = await gateway.list_tools()
    assert [t.name for t in tools] == ["read", "write"]
    assert gateway.released == 1


@pytest.mark.asyncio
async def test_list_tools_empty() -> None:
    async with StubGateway() as gateway:
        assert await gateway.list_tools() == []


@pytest.mark.asyncio
async def test_call_tool_text_result() -> None:
    session = FakeSession(result=text_result("line 1", "line 2"))
    async with StubGateway(session) as gateway:
        assert await gateway.call_tool("read", {"path": "a.txt"}) == "line 1\nline 2"
    assert session.calls == [("read", {"path": "a.txt"})]


@pytest.mark.asyncio
async def test_call_tool_structured_result() -> None:
    result = mcp_types.CallToolResult(
        content=[mcp_types.TextContent(type="text", text='{"size": 3}')],
        structuredContent={"size": 3},
    )
    async with StubGateway(FakeSession(result=result)) as gateway:
        assert await gateway.call_tool("stat", {}) == {"size": 3}


@pytest.mark.asyncio
async def test_call_tool_mixed_content_is_dumped() -> None:
    result = mcp_types.CallToolResult(
        content=[
            mcp_types.TextContent(type="text", text="caption"),
            mcp_types.ImageContent(type="image", data="AAAA", mimeType="image/png"),
        ]
    )
    async with StubGateway(FakeSession(result=result)) as gateway:
        dumped = await gateway.call_tool("snap", {})
    assert dumped["content"][0] == {"type": "text", "text": "caption"}
    assert dumped["content"][1]["mimeType"] == "image/png"


@pytest.mark.asyncio
async def test_call_tool_error_result() -> None:
    session = FakeSession(result=text_result("file not found", is_error=True))
    async with StubGateway(session) as gateway:
        with pytest.raises(ToolInvocationError, match="file not found"):
            await gateway.call_tool("read", {})


@pytest.mark.asyncio
async def test_call_tool_transport_failure() -> None:
    session = FakeSession(result=RuntimeError("stream closed"))
    async with StubGateway(session) as gateway:
        with pytest.raises(ToolInvocationError, match="stream closed"):
            await gateway.call_tool("read", {})


@pytest.mark.asyncio
async def test_close_is_idempotent() -> None:
    gateway = StubGateway()
    await gateway.connect()
    await gateway.close()
    await gateway.close()
    assert gateway.released == 1
    with pytest.raises(NotConnectedError):
        await gateway.list_tools()


@pytest.mark.asyncio
async def test_remote_tool_delegates_under_composite_name() -> None:
    session = FakeSession(result=text_result("contents"))
    async with StubGateway(session) as gateway:
        wrapped = RemoteTool(gateway, remote_tool("read", "Read a file", {"type": "object"}))
        result = await wrapped.invoke({"path": "x"}, ToolContext(tool_name=wrapped.name))

    assert wrapped.name == "files:read"
    assert wrapped.spec()["function"]["description"] == "Read a file"
    assert result == "contents"
    assert session.calls == [("read", {"path": "x"})]


def test_remote_tool_defaults() -> None:
    wrapped = RemoteTool(StubGateway(), mcp_types.Tool(name="ping", inputSchema={}))
    assert wrapped.description == "MCP tool ping from files"
    assert wrapped.parameters == OPEN_OBJECT_SCHEMA


@pytest.mark.parametrize(
    "url, transport",
    [
        ("ws://localhost:9000", "websocket"),
        ("wss://tools.example", "websocket"),
        ("http://localhost:9000/mcp", "streamable-http"),
        ("https://tools.example/mcp", "streamable-http"),
    ],
)
def test_transport_inferred_from_url(url: str, transport: str) -> None:
    assert MCPServerConfig(name="s", url=url).transport == transport


def test_explicit_transport_kept() -> None:
    cfg = MCPServerConfig(name="s", url="http://x/sse", transport="sse", headers={"X-Key": "1"})
    assert cfg.transport == "sse"
    assert cfg.headers == {"X-Key": "1"}


# ---------------------------------------------------------------------------
# Real ClientSession over in-memory streams
# ---------------------------------------------------------------------------
files_server = FastMCP("files")


@files_server.tool()
def read(path: str) -> str:
    """Read a file."""
    return f"contents of {path}"


class MemoryGateway(RemoteToolGateway):
    """Gateway whose transport is a pair of memory streams to an in-process MCP server."""

    async def _open_transport(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        client_streams, server_streams = await stack.enter_async_context(
            create_client_server_memory_streams()
        )
        server = files_server._mcp_server  # pylint: disable=protected-access
        task = asyncio.create_task(
            server.run(server_streams[0], server_streams[1], server.create_initialization_options())
        )

        async def stop() -> None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        stack.push_async_callback(stop)
        return client_streams[0], client_streams[1]


@pytest.mark.asyncio
@pytest.mark.parametrize("timeout", [None, 30.0])
async def test_agent_run_over_mcp_session(timeout: Optional[float]) -> None:
    model = ScriptedModel(
        assistant(tool_calls=[tool_call("c1", "files:read", '{"path": "a.txt"}')]),
        assistant("done"),
    )
    agent = Agent(
        model="m",
        api_key="k",
        model_client=model,
        mcp_servers=[MCPServerConfig(name="files", url="http://memory/mcp")],
        gateway_factory=MemoryGateway,
    )

    result = await agent.run("hi", return_messages=True, timeout=timeout)

    assert result.text == "done"
    assert [spec["function"]["name"] for spec in model.calls[0]["tools"]] == ["files:read"]
    (reply,) = [m for m in result.messages if m["role"] == "tool"]
    assert reply["tool_call_id"] == "c1"
    assert "contents of a.txt" in reply["content"]
    assert not agent.registry.resolve("files:read").gateway.connected
