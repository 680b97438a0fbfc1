"""Compile recurring task definitions into UTC cron triggers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC

from apscheduler.triggers.cron import CronTrigger

from src.store.models import DayOfWeek, RecurringTask

_APSCHEDULER_DAYS = {
    DayOfWeek.SUN: "sun",
    DayOfWeek.MON: "mon",
    DayOfWeek.TUE: "tue",
    DayOfWeek.WED: "wed",
    DayOfWeek.THU: "thu",
    DayOfWeek.FRI: "fri",
    DayOfWeek.SAT: "sat",
    DayOfWeek.EVERY_DAY: "*",
}


class ScheduleCompileError(ValueError):
    """A task's day/hour/minute cannot be expressed as a trigger."""


@dataclass(frozen=True)
class TriggerSpec:
    """Six-field cron spec: second minute hour day month day-of-week."""

    minute: int
    hour: int
    day_of_week: DayOfWeek
    second: int = 0

    @property
    def expression(self) -> str:
        """Render as ``"0 <minute> <hour> * * <DOW>"``; every day renders ``*``."""
        dow = "*" if self.day_of_week is DayOfWeek.EVERY_DAY else self.day_of_week.value
        return f"{self.second} {self.minute} {self.hour} * * {dow}"

    def to_trigger(self) -> CronTrigger:
        """Build the APScheduler trigger. Always UTC, whatever the host timezone."""
        return CronTrigger(
            second=self.second,
            minute=self.minute,
            hour=self.hour,
            day="*",
            month="*",
            day_of_week=_APSCHEDULER_DAYS[self.day_of_week],
            timezone=UTC,
        )


def _field(value: object, name: str, upper: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{name} must be an integer, got {value!r}"
        raise ScheduleCompileError(msg)
    if not 0 <= value <= upper:
        msg = f"{name} must be between 0 and {upper}, got {value}"
        raise ScheduleCompileError(msg)
    return value


def compile_trigger(task: RecurringTask) -> TriggerSpec:
    """Compile *task* into a TriggerSpec.

    Raises:
        ScheduleCompileError: if the day, hour or minute is not representable.
            Values are never coerced.
    """
    try:
        day = DayOfWeek(task.day_of_week)
    except ValueError:
        msg = f"Unknown day of week {task.day_of_week!r} for task {task.id}"
        raise ScheduleCompileError(msg) from None
    return TriggerSpec(
        minute=_field(task.minute, "minute", 59),
        hour=_field(task.hour, "hour", 23),
        day_of_week=day,
    )
