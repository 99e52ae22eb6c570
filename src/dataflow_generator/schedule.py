"""Map a pipeline's schedule type to a scheduler-native trigger.

The resolver never re-validates the cron expression; that is the spec
validator's job.  It only forwards the expression or substitutes a default.
"""

from __future__ import annotations

from typing import Any

from dataflow_generator.models import ScheduleType

DEFAULT_EVERY_MINUTES_CRON = "*/15 * * * *"
DEFAULT_EVERY_HOURS_CRON = "0 */2 * * *"
FALLBACK_TRIGGER = "@once"

_PRESET_TRIGGERS: dict[ScheduleType, str] = {
    ScheduleType.MANUAL: "@once",
    ScheduleType.HOURLY: "@hourly",
    ScheduleType.DAILY: "@daily",
    ScheduleType.WEEKLY: "@weekly",
    ScheduleType.MONTHLY: "@monthly",
    # sensor-gated, not time-based
    ScheduleType.EVENT_DRIVEN: "None",
}

_CRON_DEFAULTS: dict[ScheduleType, str | None] = {
    ScheduleType.EVERY_MINUTES: DEFAULT_EVERY_MINUTES_CRON,
    ScheduleType.EVERY_HOURS: DEFAULT_EVERY_HOURS_CRON,
    ScheduleType.CUSTOM: None,
}


def resolve_schedule(schedule_type: Any, cron_expression: str | None = None) -> str:
    """Return the trigger string for *schedule_type*.

    Unknown or unset types fall back to ``@once``.
    """
    kind = ScheduleType.parse(schedule_type or ScheduleType.MANUAL)
    if kind is None:
        return FALLBACK_TRIGGER

    if kind in _PRESET_TRIGGERS:
        return _PRESET_TRIGGERS[kind]

    if cron_expression:
        return cron_expression
    return _CRON_DEFAULTS[kind] or FALLBACK_TRIGGER
