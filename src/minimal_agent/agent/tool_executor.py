"""Dispatches model tool calls to the registry and folds every outcome into a ``tool`` message."""

import json
import logging
from typing import (
    Any,
    Dict,
    Optional,
)

from pydantic import BaseModel

from minimal_agent.core.schema import (
    ParsedArguments,
    ToolCallRequest,
)
from minimal_agent.tools import (
    ToolContext,
    ToolRegistry,
)

logger = logging.getLogger(__name__)

ERROR_PREFIX = "__error__: "
"""Marks tool-message content produced by a failing handler."""

RAW_ARGUMENTS_KEY = "_raw"
"""Key of the sentinel object used when the model's arguments are not valid JSON."""


def parse_arguments(raw: Optional[str]) -> ParsedArguments:
    """
    Parse the model-supplied argument string.

    Never raises: empty input yields ``{}``, and anything that is not valid JSON yields the
    sentinel ``{"_raw": raw}`` with ``ok=False``.
    """
    if raw is None or raw == "":
        return ParsedArguments(value={}, ok=True)
    try:
        return ParsedArguments(value=json.loads(raw), ok=True)
    except (TypeError, ValueError):
        return ParsedArguments(value={RAW_ARGUMENTS_KEY: raw}, ok=False, raw=raw)


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset)):
        return list(value)
    return str(value)


def serialize_result(result: Any) -> str:
    """Strings pass through verbatim; everything else becomes JSON text."""
    if isinstance(result, str):
        return result
    return json.dumps(result, default=_json_default, ensure_ascii=False)


def tool_message(call_id: str, content: str) -> Dict[str, Any]:
    """Build a ``tool`` role message correlated to *call_id*."""
    return {"role": "tool", "tool_call_id": call_id, "content": content}


async def execute_tool_call(
    registry: ToolRegistry,
    call: ToolCallRequest,
    log: Optional[logging.Logger] = None,
    level: int = logging.DEBUG,
) -> Dict[str, Any]:
    """
    Run one requested tool call and return exactly one ``tool`` message.

    Parameters
    ----------
    registry:
        The run's tool registry.
    call:
        The request emitted by the model.
    log, level:
        Where and at which level the dispatch trace is written.

    Returns
    -------
    dict
        ``{"role": "tool", "tool_call_id": ..., "content": ...}``.  Unknown tools and failing
        handlers are reported in the content instead of raising.
    """
    log = log or logger
    log.log(level, "Executing tool: %s", call.name)

    args = parse_arguments(call.raw_arguments)
    if not args.ok:
        log.warning("Tool %s received unparseable arguments; passing them raw.", call.name)

    target = registry.resolve(call.name)
    if target is None:
        log.log(level, "Tool %s not found.", call.name)
        return tool_message(call.id, f"Tool {call.name} not found.")

    ctx = ToolContext(tool_name=call.name, logger=log, level=level)
    try:
        result = await target.invoke(args.value, ctx)
        content = serialize_result(result)
    except Exception as exc:  # pylint: disable=broad-except
        log.warning("Error in tool %s: %s", call.name, exc)
        return tool_message(call.id, f"{ERROR_PREFIX}{str(exc) or type(exc).__name__}")

    log.log(level, "Tool %s completed.", call.name)
    return tool_message(call.id, content)
