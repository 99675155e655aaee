"""Example ``echo`` tool used by the command-line entry point."""

from datetime import (
    datetime,
    timezone,
)
from typing import Dict

from minimal_agent.tools import (
    ToolContext,
    tool,
)


@tool(name="echo", description="Echoes back the provided message.")
def echo_tool(message: str, ctx: ToolContext) -> Dict[str, str]:
    """Echo *message* back together with the current UTC time."""
    ctx.log(f"echoing {len(message)} characters")
    return {"echoed": message, "at": datetime.now(timezone.utc).isoformat()}
