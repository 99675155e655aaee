"""
HTTP API for minimal_agent.

It exposes the following endpoints:
- **GET /health**  - liveness probe for health checks.
- **POST /agent**   - one full agent run: {"message": "...", "return_messages": false}

Each request builds its own :class:`Agent` (own registry, own gateway connections), so concurrent
requests share no mutable state.
"""

import logging
from typing import (
    Any,
    List,
)

from fastapi import (
    FastAPI,
    HTTPException,
)

from minimal_agent.agent.agent_loop import Agent
from minimal_agent.api.models import (
    MessageRequest,
    MessageResponse,
)
from minimal_agent.common import (
    AnsiColors,
    colored_print,
)
from minimal_agent.config import settings
from minimal_agent.errors import (
    ConfigurationError,
    GatewayConnectionError,
    ModelError,
    NotConnectedError,
    RunTimeoutError,
)
from minimal_agent.tools.echo import echo_tool

logger = logging.getLogger(__name__)

app = FastAPI(title="minimal-agent API", version="0.1.0", description="Tool-calling agent API")

# Static tools offered on every API run
API_TOOLS: List[Any] = [echo_tool]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.post("/agent", response_model=MessageResponse, response_model_exclude_none=True)
async def agent_endpoint(req: MessageRequest) -> MessageResponse:
    """Run the agent on one message and return its final answer."""
    try:
        options = settings.agent_options(
            system=req.system, max_turns=req.max_turns, tools=list(API_TOOLS)
        )
        agent = Agent(options, logger=logger)
        result = await agent.run(req.message, return_messages=req.return_messages)
    except ConfigurationError as exc:
        logger.error("Agent misconfigured: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except (ModelError, GatewayConnectionError, NotConnectedError) as exc:
        logger.warning("Upstream failure: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except RunTimeoutError as exc:
        logger.warning("Agent run timed out: %s", exc)
        raise HTTPException(status_code=504, detail=str(exc)) from exc

    return MessageResponse(reply=result.text, messages=result.messages)


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting minimal-agent API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    colored_print(f"Agent API is running at http://{host}:{port}.", AnsiColors.GREEN)
    uvicorn.run(
        "minimal_agent.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m minimal_agent.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
