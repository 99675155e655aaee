"""A minimal turn-based tool-calling agent for OpenAI-compatible models and MCP tool servers."""

from minimal_agent.agent.agent_loop import (
    GUARDRAIL_MESSAGE,
    Agent,
    coerce_text,
)
from minimal_agent.core.schema import (
    AgentOptions,
    MCPServerConfig,
    RunResult,
)
from minimal_agent.errors import (
    AgentError,
    ConfigurationError,
    DuplicateToolError,
    GatewayConnectionError,
    InvalidToolError,
    ModelError,
    NotConnectedError,
    RunTimeoutError,
    ToolInvocationError,
)
from minimal_agent.tools import (
    FunctionTool,
    Tool,
    ToolContext,
    ToolRegistry,
    tool,
)
from minimal_agent.tools.gateway import (
    RemoteTool,
    RemoteToolGateway,
)

__all__ = [
    "GUARDRAIL_MESSAGE",
    "Agent",
    "AgentError",
    "AgentOptions",
    "ConfigurationError",
    "DuplicateToolError",
    "FunctionTool",
    "GatewayConnectionError",
    "InvalidToolError",
    "MCPServerConfig",
    "ModelError",
    "NotConnectedError",
    "RemoteTool",
    "RemoteToolGateway",
    "RunResult",
    "RunTimeoutError",
    "Tool",
    "ToolContext",
    "ToolInvocationError",
    "ToolRegistry",
    "coerce_text",
    "tool",
]

__version__ = "0.1.0"
