"""
Cron recurrence for scheduled jobs.

Expressions are the classic 5 fields: minute hour day month weekday.
APScheduler's CronTrigger does the calendar arithmetic. Its day_of_week
counts from Monday, so numeric weekdays are rewritten to day names first
(standard cron: 0 and 7 are Sunday).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.triggers.cron import CronTrigger

from ..core.errors import InvalidCronExpression

logger = logging.getLogger(__name__)

CRON_FIELDS = ("minute", "hour", "day", "month", "day_of_week")
_WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def split_fields(expression: str) -> list[str]:
    """Split into exactly 5 fields or raise InvalidCronExpression."""
    parts = (expression or "").split()
    if len(parts) != len(CRON_FIELDS):
        raise InvalidCronExpression(
            expression,
            "needs 5 fields (minute hour day month weekday)",
        )
    return parts


def _day_number(token: str, expression: str) -> int:
    if token.isdigit():
        number = int(token)
        if 0 <= number <= 7:
            return number
    elif token[:3] in _WEEKDAY_NAMES:
        return _WEEKDAY_NAMES.index(token[:3])
    raise InvalidCronExpression(expression, f"bad weekday '{token}'")


def _translate_weekday(field: str, expression: str) -> str:
    """Rewrite a cron weekday field into APScheduler day names."""
    if field in ("*", "?"):
        return "*"

    days: set[int] = set()
    for part in field.lower().split(","):
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            if not step_text.isdigit() or int(step_text) == 0:
                raise InvalidCronExpression(expression, f"bad weekday step '{step_text}'")
            step = int(step_text)

        if part in ("*", "?"):
            start, end = 0, 6
        elif "-" in part:
            low, high = part.split("-", 1)
            start, end = _day_number(low, expression), _day_number(high, expression)
        else:
            start = _day_number(part, expression)
            end = 6 if step > 1 else start

        if end < start:
            raise InvalidCronExpression(expression, f"bad weekday range '{part}'")
        days.update(d % 7 for d in range(start, end + 1, step))

    return ",".join(_WEEKDAY_NAMES[d] for d in sorted(days))


def build_trigger(expression: str, tz: str = "UTC") -> CronTrigger:
    minute, hour, day, month, weekday = split_fields(expression)
    try:
        return CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=_translate_weekday(weekday, expression),
            timezone=tz,
        )
    except ValueError as e:
        raise InvalidCronExpression(expression, str(e)) from e


def validate(expression: str) -> None:
    build_trigger(expression)


def compute_next(
    expression: str,
    after: Optional[datetime] = None,
    tz: str = "UTC",
) -> datetime:
    """
    Earliest time strictly after `after` matching the expression, in UTC.

    Cron has minute resolution, so the search starts at the next whole minute.
    Raises InvalidCronExpression for bad expressions or ones that never fire
    (e.g. February 30th).
    """
    trigger = build_trigger(expression, tz)
    after = after or datetime.now(timezone.utc)
    if after.tzinfo is None:
        after = after.replace(tzinfo=timezone.utc)

    start = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
    nxt = trigger.get_next_fire_time(None, start.astimezone(trigger.timezone))
    if nxt is None:
        raise InvalidCronExpression(expression, "never fires")
    return nxt.astimezone(timezone.utc)
