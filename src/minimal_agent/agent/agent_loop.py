"""Main orchestration loop for minimal_agent.

One :meth:`Agent.run` call goes through these states::

    Initializing -> Running(turn = 1..max_turns) -> Completed | GuardrailStopped | Failed

Initialization builds a fresh :class:`ToolRegistry` from the static tools and from every configured
MCP server.  Each turn sends the whole transcript to the model, appends the assistant message, and
either returns its text (no tool calls) or runs up to ``max_tool_calls_per_turn`` tool calls one after
the other, appending one ``tool`` message per call.  Running out of turns is not an error: the run
ends with :data:`GUARDRAIL_MESSAGE`.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from contextlib import AsyncExitStack
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    TypeVar,
)

from pydantic import ValidationError

from minimal_agent.agent.model_client import (
    ModelClient,
    first_message,
    tool_calls_of,
)
from minimal_agent.agent.tool_executor import execute_tool_call
from minimal_agent.core.schema import (
    AgentOptions,
    MCPServerConfig,
    RunResult,
    ToolCallRequest,
)
from minimal_agent.errors import (
    ConfigurationError,
    GatewayConnectionError,
    ModelError,
    RunTimeoutError,
)
from minimal_agent.tools import ToolRegistry
from minimal_agent.tools.gateway import (
    RemoteTool,
    RemoteToolGateway,
)

logger = logging.getLogger(__name__)

GUARDRAIL_MESSAGE = "[Stopped: maxTurns reached without a final answer]"
"""Final text of a run that used all its turns without a tool-free answer."""

T = TypeVar("T")
GatewayFactory = Callable[..., RemoteToolGateway]


def coerce_text(content: Any) -> str:
    """
    Extract the final answer text from an assistant ``content`` field.

    Strings are returned unchanged, a list of parts is concatenated (parts without text add
    nothing), a single object with a ``text`` field yields that field, and anything else is
    stringified (``None`` becomes ``""``).
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces: List[str] = []
        for part in content:
            if isinstance(part, str):
                pieces.append(part)
            elif isinstance(part, Mapping):
                pieces.append(str(part.get("text") or ""))
            else:
                pieces.append(str(getattr(part, "text", None) or ""))
        return "".join(pieces)
    if isinstance(content, Mapping) and "text" in content:
        return str(content["text"])
    return "" if content is None else str(content)


# ---------------------------------------------------------------------------
# Deadline
# ---------------------------------------------------------------------------
class Deadline:
    """Absolute time budget for one run; ``None`` seconds means unbounded."""

    def __init__(self, seconds: Optional[float], clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.seconds = seconds
        self._expires_at = None if seconds is None else clock() + seconds

    def remaining(self) -> Optional[float]:
        """Seconds left, or ``None`` when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def check(self, what: str) -> None:
        """Raise :class:`RunTimeoutError` if the budget is spent."""
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise RunTimeoutError(f"Run deadline of {self.seconds}s exceeded before {what}")

    async def wait(self, awaitable: Awaitable[T], what: str) -> T:
        """
        Await *awaitable*, bounded by the remaining budget.

        Before Python 3.12 ``asyncio.wait_for`` runs *awaitable* in its own task, so it must not
        enter contexts that outlive it (MCP sessions, transports).
        """
        try:
            self.check(what)
        except RunTimeoutError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise
        remaining = self.remaining()
        if remaining is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError as exc:
            raise RunTimeoutError(
                f"Run deadline of {self.seconds}s exceeded during {what}", original=exc
            ) from exc


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------
class Agent:
    """
    Turn-based tool-calling agent.

    Parameters
    ----------
    options:
        Full configuration.  When omitted, keyword arguments are validated into
        :class:`AgentOptions` (``Agent(model="gpt-4o-mini", api_key="...", tools=[...])``).
    logger:
        Logger receiving this agent's trace.  With ``verbose=True`` the trace is written at INFO,
        otherwise at DEBUG; no global logging state is changed.
    model_client:
        Object with an async ``complete(messages, tools)`` method; defaults to a
        :class:`ModelClient` created (and closed) per run.
    gateway_factory:
        Callable ``(config, logger=...) -> RemoteToolGateway`` used for each MCP server.
    """

    def __init__(
        self,
        options: Optional[AgentOptions] = None,
        *,
        logger: Optional[logging.Logger] = None,  # pylint: disable=redefined-outer-name
        model_client: Optional[Any] = None,
        gateway_factory: Optional[GatewayFactory] = None,
        **kwargs: Any,
    ):
        try:
            if options is None:
                options = AgentOptions(**kwargs)
            elif kwargs:
                options = AgentOptions(**{**dict(options), **kwargs})
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid agent options: {exc}", original=exc) from exc
        self.options = options
        self._logger = logger or logging.getLogger(__name__)
        self._level = logging.INFO if options.verbose else logging.DEBUG
        self._model_client = model_client
        self._gateway_factory: GatewayFactory = gateway_factory or RemoteToolGateway
        self.registry: Optional[ToolRegistry] = None

    def _log(self, msg: str, *args: Any) -> None:
        self._logger.log(self._level, msg, *args)

    def _validate(self) -> None:
        if not self.options.api_key:
            raise ConfigurationError("Missing api_key")
        if not self.options.model:
            raise ConfigurationError("Missing model")

    # ------------------------------------------------------------------ #
    # Initialization
    # ------------------------------------------------------------------ #
    async def _connect_server(
        self,
        cfg: MCPServerConfig,
        registry: ToolRegistry,
        stack: AsyncExitStack,
        deadline: Deadline,
    ) -> None:
        self._log("Connecting MCP server: %s (%s)", cfg.name, cfg.url)
        gateway = self._gateway_factory(cfg, logger=self._logger.getChild(f"mcp.{cfg.name}"))
        stack.push_async_callback(gateway.close)
        # Connect in this task: the session's task groups are exited by the stack from here too.
        what = f"connecting to MCP server '{cfg.name}'"
        deadline.check(what)
        try:
            await gateway.connect(timeout=deadline.remaining())
        except GatewayConnectionError:
            deadline.check(what)
            raise
        remote_tools = await deadline.wait(
            gateway.list_tools(), f"listing tools of MCP server '{cfg.name}'"
        )
        for remote in remote_tools:
            wrapped = registry.register(RemoteTool(gateway, remote))
            self._log("Registered MCP tool: %s", wrapped.name)

    async def _build_registry(self, stack: AsyncExitStack, deadline: Deadline) -> ToolRegistry:
        """Register static tools, then every tool of every MCP server; any failure aborts."""
        self._log("Initializing agent...")
        registry = ToolRegistry(on_duplicate=self.options.on_duplicate, logger=self._logger)
        for candidate in self.options.tools:
            registered = registry.register(candidate)
            self._log("Registered custom tool: %s", registered.name)
        for cfg in self.options.mcp_servers:
            await self._connect_server(cfg, registry, stack, deadline)
        self._log("Agent initialization complete (%d tools).", len(registry))
        return registry

    def _default_client(self) -> ModelClient:
        return ModelClient(
            model=self.options.model or "",
            api_key=self.options.api_key or "",
            base_url=self.options.base_url,
            temperature=self.options.temperature,
            timeout=self.options.request_timeout,
            logger=self._logger,
        )

    # ------------------------------------------------------------------ #
    # Run
    # ------------------------------------------------------------------ #
    async def run(
        self,
        user_prompt: str,
        *,
        return_messages: bool = False,
        timeout: Optional[float] = None,
    ) -> RunResult:
        """
        Drive the model/tool loop for *user_prompt* until a final answer or a guardrail.

        Parameters
        ----------
        user_prompt:
            The task text, sent as the ``user`` message.
        return_messages:
            Also return the full transcript.
        timeout:
            Deadline in seconds for the whole run (defaults to ``options.run_timeout``).

        Raises
        ------
        ConfigurationError
            If the model or API key is missing.
        GatewayConnectionError, NotConnectedError
            If an MCP server cannot be reached or its tools cannot be listed.
        ModelError
            If the completion endpoint fails or returns no message.
        RunTimeoutError
            If the deadline elapses.
        """
        self._validate()
        deadline = Deadline(timeout if timeout is not None else self.options.run_timeout)

        # Gateways and the default HTTP client are released on every exit path.
        async with AsyncExitStack() as stack:
            registry = await self._build_registry(stack, deadline)
            self.registry = registry
            client = self._model_client
            if client is None:
                client = self._default_client()
                stack.push_async_callback(client.aclose)
            return await self._loop(client, registry, user_prompt, return_messages, deadline)

    def run_sync(self, user_prompt: str, **kwargs: Any) -> RunResult:
        """Blocking wrapper around :meth:`run` for scripts without an event loop."""
        return asyncio.run(self.run(user_prompt, **kwargs))

    async def _loop(
        self,
        client: Any,
        registry: ToolRegistry,
        user_prompt: str,
        return_messages: bool,
        deadline: Deadline,
    ) -> RunResult:
        opts = self.options
        messages: List[Dict[str, Any]] = []
        if opts.system:
            messages.append({"role": "system", "content": opts.system})
        messages.append({"role": "user", "content": user_prompt})

        self._log("Starting agent loop for model %s", opts.model)
        turn = 0
        while turn < opts.max_turns:
            turn += 1
            deadline.check(f"turn {turn}")
            self._log("Turn %d start", turn)

            response = await deadline.wait(
                client.complete(messages, registry.to_specs()), f"model call in turn {turn}"
            )
            msg = first_message(response)
            if msg is None:
                raise ModelError("No message from model", body=str(response))

            messages.append(msg)
            self._log("Model responded with role=%s", msg.get("role"))

            tool_calls = tool_calls_of(msg)
            if tool_calls:
                self._log("Model issued %d tool calls", len(tool_calls))
                for entry in tool_calls[: opts.max_tool_calls_per_turn]:
                    call = ToolCallRequest.from_message_entry(entry)
                    messages.append(
                        await deadline.wait(
                            execute_tool_call(registry, call, self._logger, self._level),
                            f"tool '{call.name}' in turn {turn}",
                        )
                    )
                continue

            text = coerce_text(msg.get("content"))
            self._log("Final response generated.")
            return RunResult(text=text, messages=messages if return_messages else None)

        self._log("Max turns reached (%d).", opts.max_turns)
        return RunResult(text=GUARDRAIL_MESSAGE, messages=messages if return_messages else None)
