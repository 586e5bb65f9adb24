"""
Typed realtime events for turns, scheduled jobs and the runtime itself.
Thin wrapper around core.redis; every helper is a no-op when Redis is off.
"""

from ..core import redis as _redis


# ── Turns ────────────────────────────────────────────────────────────

async def turn_completed(user_id: str, data: dict = None):
    await _redis.notify_user(user_id, "turn.completed", data)


async def turn_failed(user_id: str, data: dict = None):
    await _redis.notify_user(user_id, "turn.failed", data)


# ── Jobs ─────────────────────────────────────────────────────────────

async def job_scheduled(user_id: str, job_id: int, cron_expression: str):
    await _redis.notify_user(
        user_id, "job.scheduled", {"job_id": job_id, "schedule": cron_expression}
    )


async def job_fired(user_id: str, job_id: int, reply: str):
    await _redis.notify_user(user_id, "job.fired", {"job_id": job_id, "reply": reply})


async def job_failed(user_id: str, job_id: int, error: str):
    await _redis.notify_user(user_id, "job.failed", {"job_id": job_id, "error": error})


async def job_deactivated(user_id: str, job_id: int, reason: str):
    await _redis.notify_user(user_id, "job.deactivated", {"job_id": job_id, "reason": reason})


# ── Runtime ──────────────────────────────────────────────────────────

async def runtime_started(model: str, scheduler: bool):
    await _redis.notify_system("runtime.started", {"model": model, "scheduler": scheduler})


async def runtime_stopping():
    await _redis.notify_system("runtime.stopping")
