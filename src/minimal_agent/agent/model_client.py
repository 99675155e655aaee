"""
Model client for minimal_agent.

This module is the only place that *directly* calls an LLM.  Everything else (control loop, tools,
gateways) stays model-agnostic.

It speaks the OpenAI ``/chat/completions`` wire format over ``httpx``, so any OpenAI-compatible
server (OpenAI, Azure-style proxies, vLLM, Ollama, TGI's Messages API, ...) works by changing
``base_url``.
"""

import json
import logging
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
)

import httpx

from minimal_agent.core.schema import DEFAULT_BASE_URL
from minimal_agent.errors import ModelError

logger = logging.getLogger(__name__)

_BODY_PREVIEW = 2000


class ModelClient:
    """Thin async client for the chat-completions endpoint."""

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        temperature: float = 0.2,
        timeout: float = 60.0,
        logger: Optional[logging.Logger] = None,  # pylint: disable=redefined-outer-name
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self._logger = logger or logging.getLogger(__name__)
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def url(self) -> str:
        """Full URL of the completion endpoint."""
        return f"{self.base_url}/chat/completions"

    async def __aenter__(self) -> "ModelClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    def build_payload(
        self, messages: Sequence[Mapping[str, Any]], tools: Sequence[Mapping[str, Any]]
    ) -> Dict[str, Any]:
        """Assemble the request body; ``tools``/``tool_choice`` are only sent when tools exist."""
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": list(messages),
            "temperature": self.temperature,
        }
        if tools:
            payload["tools"] = list(tools)
            payload["tool_choice"] = "auto"
        return payload

    async def complete(
        self, messages: Sequence[Mapping[str, Any]], tools: Sequence[Mapping[str, Any]]
    ) -> Dict[str, Any]:
        """
        Send the transcript and tool specs to the model and return the decoded response.

        With an empty *tools* sequence the request carries neither ``tools`` nor ``tool_choice``:
        OpenAI rejects ``tool_choice`` next to an empty ``tools`` array.

        Raises
        ------
        ModelError
            On a transport failure, a non-success status (with status code and body attached),
            or a body that is not a JSON object.
        """
        payload = self.build_payload(messages, tools)
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        self._logger.debug("Calling completion API at %s", self.url)

        try:
            resp = await self._client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            self._logger.error("Completion request error: %s", exc)
            raise ModelError(f"Completion request failed: {exc}", original=exc) from exc

        if not resp.is_success:
            body = resp.text or "<no-body>"
            self._logger.error("Completion API error %d: %s", resp.status_code, body[:_BODY_PREVIEW])
            raise ModelError(
                f"Completion API error {resp.status_code}: {body}",
                status_code=resp.status_code,
                body=body,
            )

        try:
            data = resp.json()
        except json.JSONDecodeError as exc:
            raise ModelError(
                "Completion API returned a non-JSON body",
                status_code=resp.status_code,
                body=resp.text,
                original=exc,
            ) from exc
        if not isinstance(data, dict):
            raise ModelError(
                "Completion API returned an unexpected payload",
                status_code=resp.status_code,
                body=resp.text,
            )

        self._logger.debug("Received completion response.")
        return data


def first_message(response: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """Return ``choices[0].message`` from a completion response, or ``None``."""
    choices: Any = response.get("choices") if isinstance(response, Mapping) else None
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, Mapping):
        return None
    message = first.get("message")
    return dict(message) if isinstance(message, Mapping) else None


def tool_calls_of(message: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Return the ``tool_calls`` list of an assistant message (empty when absent)."""
    calls = message.get("tool_calls") or []
    return [c for c in calls if isinstance(c, Mapping)] if isinstance(calls, list) else []
