"""
Ollama backend client.

Features:
  - One pooled httpx.AsyncClient per backend, shared by every user
  - keep_alive passed explicitly on every call
  - Single attempt per turn (no retries); failures raise BackendUnavailable
  - Startup warm-up so the first real turn doesn't pay the model load
  - Token counting (tiktoken-free approximation) for prompt logging
"""

import logging
import time
from typing import Any, Optional, Protocol

import httpx

from ..core.config import Settings
from ..core.errors import BackendUnavailable

logger = logging.getLogger(__name__)


class CompletionBackend(Protocol):
    """What the engine needs from a model backend."""

    async def complete(self, messages: list[dict], keep_alive: int) -> str:
        ...


class OllamaBackend:
    """Chat completions against a local Ollama server."""

    def __init__(
        self,
        host: str,
        model: str,
        context_length: int = 4096,
        temperature: float = 0.7,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.host = host.rstrip("/")
        self.model = model
        self.context_length = context_length
        self.temperature = temperature
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "OllamaBackend":
        return cls(
            host=settings.ollama_host,
            model=settings.ollama_model,
            context_length=settings.ollama_context_length,
            temperature=settings.ollama_temperature,
            timeout=settings.ollama_timeout,
        )

    # ── Reusable client (connection pool) ────────────────────────────

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.host,
                timeout=httpx.Timeout(connect=10, read=self.timeout, write=30, pool=10),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the shared HTTP client. Call on shutdown."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # ── Completion ───────────────────────────────────────────────────

    async def complete(self, messages: list[dict], keep_alive: int = -1) -> str:
        """One blocking chat call. Returns the assistant text."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "keep_alive": keep_alive,
            "options": {
                "temperature": self.temperature,
                "num_ctx": self.context_length,
            },
        }

        start = time.monotonic()
        client = self._get_client()
        try:
            resp = await client.post("/api/chat", json=payload)
            if resp.status_code >= 400:
                logger.error("Ollama error %d: %s", resp.status_code, resp.text[:500])
                raise BackendUnavailable(f"Ollama returned error {resp.status_code}")
            data = resp.json()
        except httpx.TimeoutException as e:
            logger.error("Ollama timed out after %.1fs", time.monotonic() - start)
            raise BackendUnavailable(f"model timed out ({type(e).__name__})") from e
        except httpx.HTTPError as e:
            logger.error("Ollama request failed: %s", e)
            raise BackendUnavailable(str(e) or type(e).__name__) from e
        except ValueError as e:
            raise BackendUnavailable("Ollama returned invalid JSON") from e

        content = (data.get("message") or {}).get("content")
        if content is None:
            raise BackendUnavailable("Ollama response had no message content")

        logger.info(
            "LLM chat: %dms | ~%d prompt tokens | model=%s",
            int((time.monotonic() - start) * 1000),
            estimate_messages_tokens(messages),
            self.model,
        )
        return content

    async def warm_up(self, keep_alive: int = -1) -> bool:
        """Load the model into memory. Failures are logged, never raised."""
        logger.info("Warming up model: %s", self.model)
        try:
            await self.complete([{"role": "user", "content": "hi"}], keep_alive=keep_alive)
        except BackendUnavailable as e:
            logger.warning("Warm-up failed, continuing anyway: %s", e)
            return False
        logger.info("Model loaded and ready")
        return True


# ── Token estimation ─────────────────────────────────────────────────

def estimate_tokens(text: str) -> int:
    """
    Estimate token count without tiktoken dependency.
    Rule of thumb: ~4 chars per token for English.
    """
    return max(1, len(text) // 4)


def estimate_messages_tokens(messages: list[dict]) -> int:
    """Estimate total tokens in a message list."""
    total = 0
    for msg in messages:
        total += 4  # message overhead
        content = msg.get("content", "")
        if isinstance(content, str):
            total += estimate_tokens(content)
    total += 2  # priming
    return total
