"""
Central feature flags. One file controls every optional subsystem.

Set via environment variables (prefix FF_) or .env file.
When a flag is OFF, the runtime skips that subsystem. Nothing crashes.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Realtime ─────────────────────────────────────────────────────
    use_redis: bool = Field(default=False, alias="FF_USE_REDIS")
    # ON  → Redis pub/sub events for turns and scheduled jobs. Needs REDIS_URL.
    # OFF → Notifications silently skipped. Nothing breaks.

    # ── Scheduler ────────────────────────────────────────────────────
    enable_scheduler: bool = Field(default=True, alias="FF_ENABLE_SCHEDULER")
    # ON  → Due jobs are polled and re-injected as synthetic turns.
    # OFF → Jobs are still stored and listed but never fire.

    # ── Model warm-up ────────────────────────────────────────────────
    warm_up_model: bool = Field(default=True, alias="FF_WARM_UP_MODEL")
    # ON  → A one-line prompt is sent at startup so the model is loaded.
    # OFF → The first real turn pays the load time.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
