"""Configuration settings for the application."""

from typing import (
    Any,
    List,
)

from pydantic import ValidationError
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
)

from minimal_agent.core.schema import (
    DEFAULT_BASE_URL,
    AgentOptions,
    MCPServerConfig,
)
from minimal_agent.errors import ConfigurationError


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # LLM Configuration
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_BASE_URL: str = DEFAULT_BASE_URL
    SYSTEM_PROMPT: str = "You are a helpful assistant. Use tools when useful."
    TEMPERATURE: float = 0.2
    REQUEST_TIMEOUT: float = 60.0

    # Guardrails
    MAX_TURNS: int = 8
    MAX_TOOL_CALLS_PER_TURN: int = 4
    RUN_TIMEOUT: float | None = None

    # Remote tools, e.g. MCP_SERVERS='[{"name": "files", "url": "http://localhost:9000/mcp"}]'
    MCP_SERVERS: List[MCPServerConfig] = []
    VERBOSE: bool = False

    def agent_options(self, **overrides: Any) -> AgentOptions:
        """Build :class:`AgentOptions` from these settings, with keyword *overrides* on top."""
        values: dict[str, Any] = {
            "model": self.OPENAI_MODEL,
            "api_key": self.OPENAI_API_KEY,
            "system": self.SYSTEM_PROMPT,
            "base_url": self.OPENAI_BASE_URL,
            "max_turns": self.MAX_TURNS,
            "max_tool_calls_per_turn": self.MAX_TOOL_CALLS_PER_TURN,
            "temperature": self.TEMPERATURE,
            "mcp_servers": list(self.MCP_SERVERS),
            "verbose": self.VERBOSE,
            "request_timeout": self.REQUEST_TIMEOUT,
            "run_timeout": self.RUN_TIMEOUT,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return AgentOptions(**values)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid agent settings: {exc}", original=exc) from exc


settings = Settings()
