"""
Pydantic models for the agent API requests and responses.
This module defines the request and response schemas used by the HTTP surface.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class MessageRequest(BaseModel):
    """Incoming task for one agent run."""

    message: str = Field(..., description="User prompt for the agent")
    system: Optional[str] = Field(None, description="Override of the configured system prompt")
    max_turns: Optional[int] = Field(None, ge=1, description="Override of the turn guardrail")
    return_messages: bool = Field(False, description="Include the full transcript in the reply")


class MessageResponse(BaseModel):
    """API response returned to the caller."""

    reply: str
    messages: Optional[List[Dict[str, Any]]] = None
