"""
Scheduled jobs.

A job re-submits its injected prompt to the model every time its cron
expression comes due. Cancelled jobs are deactivated, never deleted, so
they stay listable.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import RecordBase, UTCDateTime


class ScheduledJob(RecordBase):
    __tablename__ = "scheduled_jobs"

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    cron_expression: Mapped[str] = mapped_column(String, nullable=False)
    task_description: Mapped[str] = mapped_column(String, nullable=False, default="")
    injected_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    next_fire_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True, index=True)
    last_fired_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    def is_due(self, now: datetime) -> bool:
        return self.active and self.next_fire_at is not None and self.next_fire_at <= now

    def __repr__(self) -> str:
        return f"<ScheduledJob #{self.id} '{self.cron_expression}' active={self.active}>"
