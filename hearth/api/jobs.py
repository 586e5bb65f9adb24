"""
Scheduled jobs API.

GET    /v1/jobs            — List jobs (optionally for one user)
POST   /v1/jobs            — Create a job
DELETE /v1/jobs/{job_id}   — Cancel (deactivate) a job
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from ..core.dependencies import ensure_user_allowed, get_runtime
from ..core.errors import InvalidCronExpression
from ..models.job import ScheduledJob
from ..runtime import Runtime

logger = logging.getLogger(__name__)

jobs_router = APIRouter(prefix="/jobs", tags=["jobs"])


class JobCreate(BaseModel):
    user_id: str
    schedule: str
    message: str
    task: str = ""


class JobOut(BaseModel):
    id: int
    user_id: str
    cron_expression: str
    task_description: str
    injected_prompt: str
    next_fire_at: Optional[str] = None
    last_fired_at: Optional[str] = None
    active: bool


def _job_out(job: ScheduledJob) -> JobOut:
    return JobOut(
        id=job.id,
        user_id=job.user_id,
        cron_expression=job.cron_expression,
        task_description=job.task_description,
        injected_prompt=job.injected_prompt,
        next_fire_at=job.next_fire_at.isoformat() if job.next_fire_at else None,
        last_fired_at=job.last_fired_at.isoformat() if job.last_fired_at else None,
        active=job.active,
    )


@jobs_router.get("", response_model=list[JobOut])
async def list_jobs(
    user_id: Optional[str] = None,
    include_inactive: bool = False,
    runtime: Runtime = Depends(get_runtime),
):
    if user_id is not None:
        ensure_user_allowed(runtime, user_id)
    jobs = await runtime.store.list_jobs(user_id=user_id, include_inactive=include_inactive)
    return [_job_out(j) for j in jobs]


@jobs_router.post("", response_model=JobOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    request: JobCreate,
    runtime: Runtime = Depends(get_runtime),
):
    ensure_user_allowed(runtime, request.user_id)
    try:
        job = await runtime.engine.schedule_job(
            request.user_id,
            request.schedule,
            request.task or request.message,
            request.message,
        )
    except InvalidCronExpression as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return _job_out(job)


@jobs_router.delete("/{job_id}", response_model=JobOut)
async def cancel_job(
    job_id: int,
    runtime: Runtime = Depends(get_runtime),
):
    job = await runtime.store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Job #{job_id} not found")
    ensure_user_allowed(runtime, job.user_id)

    await runtime.store.deactivate_job(job_id)
    job.active = False
    logger.info("Cancelled job #%d via API", job_id)
    return _job_out(job)
