"""
Central configuration. Every tunable of the runtime in one place.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """You are Hearth, a friendly assistant running locally on the user's own machine.

## Identity
You are warm, concise and practical. You never invent facts.
You remember what the user tells you and you keep track of their recurring tasks.

## Tone
Short sentences. Plain language. No filler.
"""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Environment ---
    env: str = Field(default="development", alias="ENV")
    log_level: str = Field(default="info", alias="LOG_LEVEL")
    log_file: str = Field(default="hearth.log", alias="LOG_FILE")
    debug: bool = Field(default=False, alias="DEBUG")

    # --- Database ---
    database_url: str = Field(
        default="sqlite+aiosqlite:///./hearth.db",
        alias="DATABASE_URL",
    )

    # --- Ollama ---
    ollama_host: str = Field(default="http://localhost:11434", alias="OLLAMA_HOST")
    ollama_model: str = Field(default="tinyllama", alias="OLLAMA_MODEL")
    # -1 keeps the model loaded forever, 0 unloads right after the call
    ollama_keep_alive: int = Field(default=-1, alias="OLLAMA_KEEP_ALIVE")
    ollama_context_length: int = Field(default=4096, alias="OLLAMA_CONTEXT_LENGTH")
    ollama_temperature: float = Field(default=0.7, alias="OLLAMA_TEMPERATURE")
    ollama_timeout: float = Field(default=120.0, alias="OLLAMA_TIMEOUT")

    # --- Conversation ---
    max_history: int = Field(default=50, alias="MAX_HISTORY")
    memory_warn_lines: int = Field(default=100, alias="MEMORY_WARN_LINES")
    system_prompt: str = Field(default="", alias="SYSTEM_PROMPT")
    soul_file: str = Field(default="soul.md", alias="SOUL_FILE")

    # --- Workspace ---
    workspace_path: str = Field(default="./workspace", alias="WORKSPACE_PATH")

    # --- Scheduler ---
    scheduler_poll_seconds: int = Field(default=30, alias="SCHEDULER_POLL_SECONDS")
    scheduler_timezone: str = Field(default="UTC", alias="SCHEDULER_TIMEZONE")

    # --- Access ---
    # Comma separated user ids. Empty means everyone may talk to the assistant.
    allowed_users: str = Field(default="", alias="ALLOWED_USERS")
    terminal_user_id: str = Field(default="local", alias="TERMINAL_USER_ID")

    # --- Redis ---
    redis_url: str = Field(default="", alias="REDIS_URL")

    # --- API ---
    api_host: str = Field(default="127.0.0.1", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    def allowed_user_ids(self) -> set[str]:
        return {u.strip() for u in self.allowed_users.split(",") if u.strip()}

    def is_user_allowed(self, user_id: str) -> bool:
        allowed = self.allowed_user_ids()
        return not allowed or user_id in allowed

    def system_prompt_text(self) -> str:
        """Personality preamble: explicit setting, then the soul file, then the built-in one."""
        if self.system_prompt.strip():
            return self.system_prompt
        soul = Path(self.soul_file)
        if soul.is_file():
            try:
                content = soul.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning("Failed to read %s: %s", soul, e)
            else:
                if content.strip():
                    return content
        return DEFAULT_SYSTEM_PROMPT


@lru_cache
def get_settings() -> Settings:
    return Settings()
