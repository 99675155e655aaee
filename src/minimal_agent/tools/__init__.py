"""
Tool registry for minimal_agent.

A tool is anything that exposes a name, a description, a JSON-schema for its parameters and an
``invoke(args, ctx)`` coroutine.  Two variants exist: :class:`FunctionTool` wraps a locally supplied
handler, and :class:`~minimal_agent.tools.gateway.RemoteTool` delegates to a remote MCP server.
The control loop only ever talks to the :class:`Tool` protocol.

Local tools can be declared with the :func:`tool` decorator:

    @tool()
    def add(a: int, b: int) -> int:
        \"\"\"Return the sum of two integers.\"\"\"
        return a + b

which derives the parameter schema from the function signature.
"""

import copy
import inspect
import logging
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    runtime_checkable,
)

from minimal_agent.errors import (
    DuplicateToolError,
    InvalidToolError,
)

MAX_TOOL_NAME_LENGTH = 64
"""Longest tool name the completion API accepts."""

MAX_TOOL_DESCRIPTION_LENGTH = 1024
"""Longest tool description surfaced to the model."""

OPEN_OBJECT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {},
    "additionalProperties": True,
}
"""Parameter schema used when a tool declares none."""

_JSON_TYPES: Dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    dict: "object",
}


def open_object_schema() -> Dict[str, Any]:
    """Return a fresh copy of :data:`OPEN_OBJECT_SCHEMA`."""
    return copy.deepcopy(OPEN_OBJECT_SCHEMA)


@dataclass
class ToolContext:
    """Logging-only context handed to tool handlers."""

    tool_name: str
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    level: int = logging.DEBUG

    def log(self, msg: str) -> None:
        """Write *msg* to the run's logger, tagged with the tool name."""
        self.logger.log(self.level, "[tool:%s] %s", self.tool_name, msg)


@runtime_checkable
class Tool(Protocol):
    """Capability interface shared by local and remote tools."""

    name: str
    description: str
    parameters: Optional[Mapping[str, Any]]

    def spec(self) -> Dict[str, Any]:
        """Return the function-calling spec presented to the model."""

    async def invoke(self, args: Any, ctx: ToolContext) -> Any:
        """Run the tool and return its result; raise on failure."""


def build_spec(name: str, description: Optional[str], parameters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Render a tool as an OpenAI ``{"type": "function", ...}`` spec, applying the length caps."""
    return {
        "type": "function",
        "function": {
            "name": name[:MAX_TOOL_NAME_LENGTH],
            "description": (description or "")[:MAX_TOOL_DESCRIPTION_LENGTH],
            "parameters": dict(parameters) if parameters else open_object_schema(),
        },
    }


Handler = Callable[[Any, ToolContext], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class FunctionTool:
    """A locally supplied tool: ``handler(args, ctx)`` may be sync or async."""

    name: str
    handler: Handler
    description: str = ""
    parameters: Optional[Mapping[str, Any]] = None

    def spec(self) -> Dict[str, Any]:
        return build_spec(self.name, self.description, self.parameters)

    async def invoke(self, args: Any, ctx: ToolContext) -> Any:
        result = self.handler(args, ctx)
        if inspect.isawaitable(result):
            result = await result
        return result


def _json_type(annotation: Any) -> Dict[str, Any]:
    """Best-effort mapping of a Python annotation to a JSON-schema fragment."""
    origin = get_origin(annotation)
    if origin is Union:
        members = [a for a in get_args(annotation) if a is not type(None)]
        if len(members) == 1:
            return _json_type(members[0])
        return {}
    if origin is not None:
        annotation = origin
    json_type = _JSON_TYPES.get(annotation)
    return {"type": json_type} if json_type else {}


def schema_from_signature(fn: Callable) -> Dict[str, Any]:
    """Extract a JSON-schema object describing *fn*'s keyword parameters."""
    sig = inspect.signature(fn)
    type_hints = get_type_hints(fn)
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for param_name, param in sig.parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        properties[param_name] = _json_type(type_hints.get(param_name, Any))
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def tool(
    name: Optional[str] = None,
    description: Optional[str] = None,
    parameters: Optional[Mapping[str, Any]] = None,
) -> Callable[[Callable], FunctionTool]:
    """
    Turn a plain function into a :class:`FunctionTool`.

    The decorated function is called with the model's arguments as keyword arguments; if it declares
    a ``ctx`` parameter the :class:`ToolContext` is passed too.  Coroutine functions are supported.

    Parameters
    ----------
    name:
        Tool name (defaults to the function name).
    description:
        Tool description (defaults to the function docstring).
    parameters:
        Explicit JSON schema; derived from the signature and type hints when omitted.
    """

    def wrapper(fn: Callable) -> FunctionTool:
        wants_ctx = "ctx" in inspect.signature(fn).parameters

        async def handler(args: Any, ctx: ToolContext) -> Any:
            kwargs = dict(args) if isinstance(args, Mapping) else {}
            if wants_ctx:
                kwargs["ctx"] = ctx
            result = fn(**kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result

        schema = parameters
        if schema is None:
            schema = schema_from_signature(fn)
            schema["properties"].pop("ctx", None)
            if "required" in schema:
                schema["required"] = [p for p in schema["required"] if p != "ctx"]
        return FunctionTool(
            name=name or fn.__name__,
            handler=handler,
            description=description if description is not None else inspect.getdoc(fn) or "",
            parameters=schema,
        )

    return wrapper


def as_tool(obj: Any) -> Tool:
    """
    Normalize a caller-supplied tool definition.

    Accepts a :class:`Tool` or a mapping ``{"name", "description", "parameters", "handler"}``.

    Raises
    ------
    InvalidToolError
        If *obj* is neither, or has no handler.
    """
    if isinstance(obj, Tool):
        return obj
    if isinstance(obj, Mapping):
        handler = obj.get("handler")
        if not callable(handler):
            raise InvalidToolError(f"Tool {obj.get('name')!r} has no callable handler.")
        return FunctionTool(
            name=obj.get("name") or "",
            handler=handler,
            description=obj.get("description") or "",
            parameters=obj.get("parameters"),
        )
    raise InvalidToolError(f"Unsupported tool definition: {obj!r}")


class ToolRegistry:
    """
    Mapping from tool name to :class:`Tool`, built once per agent run.

    Duplicate names follow *on_duplicate*: ``"replace"`` (last write wins, silently),
    ``"warn"`` (last write wins, logged) or ``"error"`` (raise :class:`DuplicateToolError`).
    """

    def __init__(self, on_duplicate: str = "replace", logger: Optional[logging.Logger] = None):
        if on_duplicate not in {"replace", "warn", "error"}:
            raise ValueError(f"Unknown duplicate policy '{on_duplicate}'.")
        self.on_duplicate = on_duplicate
        self._logger = logger or logging.getLogger(__name__)
        self._tools: Dict[str, Tool] = {}

    def register(self, candidate: Any) -> Tool:
        """Insert *candidate* by name and return the normalized tool."""
        if candidate is None:
            raise InvalidToolError("Tool must have a name")
        item = as_tool(candidate)
        name = getattr(item, "name", None)
        if not isinstance(name, str) or not name:
            raise InvalidToolError("Tool must have a name")
        if name in self._tools:
            if self.on_duplicate == "error":
                raise DuplicateToolError(f"Tool '{name}' is already registered.")
            if self.on_duplicate == "warn":
                self._logger.warning("Tool '%s' registered twice; keeping the latest.", name)
        self._tools[name] = item
        return item

    def resolve(self, name: Optional[str]) -> Optional[Tool]:
        """Return the tool registered under *name*, or ``None``."""
        if not name:
            return None
        return self._tools.get(name)

    def to_specs(self) -> List[Dict[str, Any]]:
        """Return the function-calling specs of every registered tool."""
        specs = [t.spec() for t in self._tools.values()]
        self._logger.debug("Prepared %d tool specs.", len(specs))
        return specs

    def names(self) -> List[str]:
        """Registered tool names."""
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
