"""
Realtime events over Redis pub/sub.

Channels:
  hearth:user:{user_id}  — turn and job events for one user
  hearth:system          — runtime lifecycle events

Publishing is best effort. With FF_USE_REDIS off or no REDIS_URL every
call is a no-op, and a broken connection only logs a warning.
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .config import get_settings
from .flags import get_flags

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "hearth"


class EventBus:
    def __init__(self, url: str, enabled: bool):
        self.url = url
        self.enabled = enabled and bool(url)
        self._client: Optional[aioredis.Redis] = None

    def _get_client(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.from_url(
                self.url,
                decode_responses=True,
                socket_connect_timeout=5,
            )
        return self._client

    async def publish(self, channel: str, event_type: str, data: Any = None) -> bool:
        """True if the event reached Redis."""
        if not self.enabled:
            return False
        message = json.dumps({"type": event_type, "data": data}, default=str)
        try:
            receivers = await self._get_client().publish(channel, message)
        except (RedisError, OSError) as e:
            logger.warning("Redis publish failed (channel=%s): %s", channel, e)
            return False
        logger.debug("Published %s on %s (%s receivers)", event_type, channel, receivers)
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")


_bus: Optional[EventBus] = None


def init_bus(url: str, enabled: bool) -> EventBus:
    """Replace the process-wide bus. Called by the runtime on start."""
    global _bus
    _bus = EventBus(url, enabled)
    if _bus.enabled:
        logger.info("Realtime events enabled (%s)", url)
    return _bus


def get_bus() -> EventBus:
    if _bus is None:
        return init_bus(get_settings().redis_url, get_flags().use_redis)
    return _bus


async def notify_user(user_id: str, event_type: str, data: Any = None) -> None:
    await get_bus().publish(f"{CHANNEL_PREFIX}:user:{user_id}", event_type, data)


async def notify_system(event_type: str, data: Any = None) -> None:
    await get_bus().publish(f"{CHANNEL_PREFIX}:system", event_type, data)


async def close_redis() -> None:
    global _bus
    if _bus is not None:
        await _bus.close()
        _bus = None
