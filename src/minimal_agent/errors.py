"""Structured error types for minimal_agent.

Only initialization-time and transport-time failures escape ``Agent.run``.
Per-tool-call problems (bad arguments, unknown tool, failing handler) are turned
into ``tool`` messages by the dispatcher and never surface as exceptions:

    from minimal_agent.errors import ConfigurationError, ModelError

    try:
        result = await agent.run("What's the weather?")
    except ConfigurationError:
        # Missing model / API key - fix the setup, retrying won't help
        ...
    except ModelError as exc:
        print(exc.status_code, exc.body)
"""

from __future__ import annotations


class AgentError(Exception):
    """Base for all minimal_agent errors."""

    def __init__(self, message: str, original: Exception | None = None) -> None:
        super().__init__(message)
        self.original = original


class ConfigurationError(AgentError, ValueError):
    """A required construction parameter is missing or invalid."""


class InvalidToolError(AgentError, ValueError):
    """A tool definition cannot be registered (e.g. it has no name)."""


class DuplicateToolError(InvalidToolError):
    """A tool name is already registered and the registry rejects duplicates."""


class GatewayConnectionError(AgentError, ConnectionError):
    """The remote tool server could not be reached or the handshake failed."""


class NotConnectedError(AgentError, RuntimeError):
    """A gateway operation was attempted before ``connect()`` succeeded."""


class ToolInvocationError(AgentError, RuntimeError):
    """A remote tool reported an error, or the call itself failed."""


class ModelError(AgentError):
    """The completion endpoint returned an error or an unusable response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        original: Exception | None = None,
    ) -> None:
        super().__init__(message, original=original)
        self.status_code = status_code
        self.body = body


class RunTimeoutError(AgentError, TimeoutError):
    """The caller-supplied run deadline elapsed before the run finished."""
