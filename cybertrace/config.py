"""Application configuration loaded from environment variables."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment."""

    def __init__(self):
        self.database_url: str = os.getenv(
            "DATABASE_URL", "sqlite+aiosqlite:///./cybertrace.db"
        )
        self.anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
        self.model_name: str = os.getenv("MODEL_NAME", "claude-3-7-sonnet-latest")
        self.model_max_tokens: int = int(os.getenv("MODEL_MAX_TOKENS", "4096"))
        self.model_temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.0"))
        self.max_steps: int = int(os.getenv("MAX_STEPS", "5"))

        # External MCP tool server (SuzieQ)
        self.tool_server_transport: str = os.getenv("TOOL_SERVER_TRANSPORT", "stdio")
        self.tool_server_command: str = os.getenv("TOOL_SERVER_COMMAND", "")
        self.tool_server_args: list[str] = os.getenv("TOOL_SERVER_ARGS", "").split()
        self.tool_server_url: str = os.getenv("TOOL_SERVER_URL", "")

        self.session_cookie_name: str = os.getenv(
            "SESSION_COOKIE_NAME", "next-auth.session-token"
        )
        self.chat_rate_limit: int = int(os.getenv("CHAT_RATE_LIMIT", "20"))
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO")
        self.log_json: bool = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")

    @property
    def model_configured(self) -> bool:
        return bool(self.anthropic_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
