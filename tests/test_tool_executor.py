"""
Basic sanity tests for the tool executor.

Run with:
$ pytest -q
"""

import json
from typing import (
    Any,
    Dict,
)

import pytest

from minimal_agent.agent.tool_executor import (
    ERROR_PREFIX,
    execute_tool_call,
    parse_arguments,
    serialize_result,
)
from minimal_agent.core.schema import (
    RunResult,
    ToolCallRequest,
)
from minimal_agent.tools import (
    ToolContext,
    ToolRegistry,
    tool,
)


# This is a stub tool for testing purposes.
@tool(name="add")
def _add(a: int, b: int) -> int:
    """Return the sum of two integers (used only for tests)."""

    return a + b


def make_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(_add)
    return registry


@pytest.mark.asyncio
async def test_execute_tool_success() -> None:
    """Executor should carry the tool's value into a correlated tool message."""

    call = ToolCallRequest(id="c1", name="add", raw_arguments='{"a": 2, "b": 3}')
    msg = await execute_tool_call(make_registry(), call)
    assert msg == {"role": "tool", "tool_call_id": "c1", "content": "5"}


@pytest.mark.asyncio
async def test_execute_tool_missing() -> None:
    """Executor should report an unknown tool instead of raising."""

    call = ToolCallRequest(id="c2", name="not_a_tool", raw_arguments="{}")
    msg = await execute_tool_call(make_registry(), call)
    assert msg["tool_call_id"] == "c2"
    assert msg["content"] == "Tool not_a_tool not found."


@pytest.mark.asyncio
async def test_execute_tool_bad_args() -> None:
    """Executor should turn a handler failure (missing 'b') into an error-marked message."""

    call = ToolCallRequest(id="c3", name="add", raw_arguments='{"a": 2}')
    msg = await execute_tool_call(make_registry(), call)
    assert msg["tool_call_id"] == "c3"
    assert msg["content"].startswith(ERROR_PREFIX)
    assert "b" in msg["content"]


@pytest.mark.asyncio
async def test_handler_gets_logging_context() -> None:
    seen: list[ToolContext] = []

    def handler(args: Any, ctx: ToolContext) -> str:
        seen.append(ctx)
        ctx.log("working")
        return "done"

    registry = ToolRegistry()
    registry.register({"name": "work", "handler": handler})
    msg = await execute_tool_call(registry, ToolCallRequest(id="w", name="work"))

    assert msg["content"] == "done"
    assert seen[0].tool_name == "work"


@pytest.mark.parametrize(
    "raw, value, ok",
    [
        (None, {}, True),
        ("", {}, True),
        ('{"x": 1}', {"x": 1}, True),
        ("[1, 2]", [1, 2], True),
        ("{oops", {"_raw": "{oops"}, False),
    ],
)
def test_parse_arguments(raw: Any, value: Any, ok: bool) -> None:
    parsed = parse_arguments(raw)
    assert parsed.value == value
    assert parsed.ok is ok


def test_serialize_result() -> None:
    assert serialize_result("plain text") == "plain text"
    assert serialize_result(None) == "null"
    assert json.loads(serialize_result({"a": [1, "b"]})) == {"a": [1, "b"]}
    assert json.loads(serialize_result(RunResult(text="t"))) == {"text": "t", "messages": None}


def test_request_from_message_entry() -> None:
    entry = {"id": "abc", "function": {"name": "add", "arguments": {"a": 1}}}
    call = ToolCallRequest.from_message_entry(entry)
    assert (call.id, call.name) == ("abc", "add")
    assert json.loads(call.raw_arguments) == {"a": 1}


@pytest.mark.parametrize(
    "entry, expected",
    [
        ({"id": 7, "function": {"name": "add", "arguments": "{}"}}, ("7", "add", "{}")),
        ({"id": "c1", "function": "add"}, ("c1", "", None)),
        ({"id": None, "function": {"name": 3}}, ("", "3", None)),
        ({}, ("", "", None)),
    ],
)
def test_request_from_malformed_entry(entry: Dict[str, Any], expected: tuple) -> None:
    call = ToolCallRequest.from_message_entry(entry)
    assert (call.id, call.name, call.raw_arguments) == expected
