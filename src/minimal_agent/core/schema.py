"""
Schema definitions for agent <-> model <-> tool messages.

These data models serve as the contract between the completion endpoint, the control loop, and
individual tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.
"""

import json
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Literal,
    Mapping,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

DEFAULT_BASE_URL = "https://api.openai.com/v1"

Transport = Literal["streamable-http", "sse", "websocket"]
DuplicatePolicy = Literal["replace", "warn", "error"]


class MCPServerConfig(BaseModel):
    """Connection settings for one remote MCP tool server."""

    name: str = Field(..., min_length=1, description="Prefix for the server's tool names")
    url: str = Field(..., min_length=1, description="Endpoint URL (http(s):// or ws(s)://)")
    headers: Dict[str, str] = Field(default_factory=dict, description="Auth headers sent on connect")
    transport: Optional[Transport] = None

    @model_validator(mode="after")
    def _infer_transport(self) -> "MCPServerConfig":
        if self.transport is None:
            scheme = self.url.split("://", 1)[0].lower()
            self.transport = "websocket" if scheme in {"ws", "wss"} else "streamable-http"
        return self


class AgentOptions(BaseModel):
    """Construction-time configuration of an :class:`~minimal_agent.agent.agent_loop.Agent`.

    ``model`` and ``api_key`` are optional here so that a half-configured agent can be built; the
    control loop rejects them as missing when a run starts.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: Optional[str] = None
    api_key: Optional[str] = None
    system: str = ""
    base_url: str = DEFAULT_BASE_URL
    max_turns: int = Field(8, ge=1)
    max_tool_calls_per_turn: int = Field(4, ge=1)
    temperature: float = Field(0.2, ge=0.0, le=2.0)
    tools: List[Any] = Field(default_factory=list)
    mcp_servers: List[MCPServerConfig] = Field(default_factory=list)
    verbose: bool = False
    # Streaming hook; accepted for API compatibility, tokens are never streamed.
    on_token: Optional[Callable[[str], None]] = None
    request_timeout: float = Field(60.0, gt=0)
    run_timeout: Optional[float] = Field(None, gt=0)
    on_duplicate: DuplicatePolicy = "replace"

    @field_validator("system", mode="before")
    @classmethod
    def _none_system(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("base_url", mode="before")
    @classmethod
    def _strip_base_url(cls, value: Any) -> Any:
        if value is None or value == "":
            return DEFAULT_BASE_URL
        return str(value).rstrip("/")


class ToolCallRequest(BaseModel):
    """A tool invocation the model asked for inside an assistant message."""

    id: str = Field("", description="Correlation id echoed back in the tool message")
    name: str = Field("", description="Registered tool name")
    raw_arguments: Optional[str] = Field(None, description="Arguments exactly as the model sent them")

    @classmethod
    def from_message_entry(cls, entry: Dict[str, Any]) -> "ToolCallRequest":
        """Build a request from one ``tool_calls[]`` entry of a chat completion message."""
        function = entry.get("function")
        if not isinstance(function, Mapping):
            function = {}
        raw = function.get("arguments")
        if raw is not None and not isinstance(raw, str):
            # Some OpenAI-compatible servers send an already-decoded object.
            raw = json.dumps(raw, default=str)
        return cls(
            id=_as_text(entry.get("id")),
            name=_as_text(function.get("name")),
            raw_arguments=raw,
        )


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


class ParsedArguments(BaseModel):
    """Tagged result of parsing model-supplied arguments: parsed value or raw-string fallback."""

    value: Any = Field(default_factory=dict)
    ok: bool = True
    raw: Optional[str] = None


class RunResult(BaseModel):
    """Outcome of one :meth:`Agent.run` call."""

    text: str
    messages: Optional[List[Dict[str, Any]]] = None

    def as_dict(self) -> Dict[str, Any]:
        """Return ``{"text"}`` or ``{"text", "messages"}`` when the transcript was requested."""
        return self.model_dump(exclude_none=True)
