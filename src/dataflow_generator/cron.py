"""Five-field cron expression validation.

Only the structure and numeric bounds of each field are checked, enough to
catch typos before a DAG reaches the scheduler, which performs its own
parsing on load.  Stepped terms such as ``10-20/5`` are bound-checked on the
step and the range endpoints only, not on every stepped occurrence.
"""

from __future__ import annotations

import re
from typing import NamedTuple

_FIELD_CHARS = re.compile(r"^[0-9*,\-/]+$")
_STEP_TERM = re.compile(r"^(\*|\d+(?:-\d+)?)/(\d+)$")
_RANGE_TERM = re.compile(r"^(\d+)-(\d+)$")
_NUMBER_TERM = re.compile(r"^\d+$")
_MINUTE_STEP = re.compile(r"^\*/(\d+)$")
_MINUTE_LIST = re.compile(r"^\d+(?:,\d+)*$")


class CronField(NamedTuple):
    name: str
    min: int
    max: int


CRON_FIELDS: tuple[CronField, ...] = (
    CronField("minute", 0, 59),
    CronField("hour", 0, 23),
    CronField("day", 1, 31),
    CronField("month", 1, 12),
    CronField("weekday", 0, 7),
)


class CronResult(NamedTuple):
    valid: bool
    error: str | None = None


def parse_cron_values(field: str) -> list[int] | None:
    """Return every number recorded for *field*, or ``None`` if malformed."""
    values: list[int] = []
    for term in field.split(","):
        if term == "*":
            continue
        step = _STEP_TERM.match(term)
        if step:
            values.append(int(step.group(2)))
            if step.group(1) != "*":
                values.extend(int(v) for v in step.group(1).split("-"))
            continue
        span = _RANGE_TERM.match(term)
        if span:
            values.extend((int(span.group(1)), int(span.group(2))))
            continue
        if _NUMBER_TERM.match(term):
            values.append(int(term))
            continue
        return None
    return values


def validate_cron(expression: object) -> CronResult:
    """Check that *expression* is a structurally valid 5-field cron string."""
    if not expression or not isinstance(expression, str):
        return CronResult(False, "empty cron expression")

    parts = expression.split()
    if len(parts) != len(CRON_FIELDS):
        return CronResult(
            False, "must have exactly 5 parts (min hour day month weekday)"
        )

    for part, field in zip(parts, CRON_FIELDS):
        if not _FIELD_CHARS.match(part):
            return CronResult(False, f"{field.name} field has invalid characters")
        values = parse_cron_values(part)
        if values is None:
            return CronResult(False, f"{field.name} field is malformed")
        for value in values:
            if value < field.min or value > field.max:
                return CronResult(
                    False,
                    f"{field.name} value {value} out of range "
                    f"({field.min}-{field.max})",
                )
    return CronResult(True)


def get_cron_minute_interval(expression: str | None) -> int | None:
    """Rough minute frequency of *expression*, for advisory warnings only.

    ``*/N`` in the minute field gives ``N``.  An explicit list of more than
    30 minutes with every hour and every day is treated as every minute
    (``1``).  Anything else gives ``None``.
    """
    if not expression:
        return None
    parts = expression.split()
    if not parts:
        return None

    step = _MINUTE_STEP.match(parts[0])
    if step:
        return int(step.group(1))

    if (
        len(parts) >= 3
        and _MINUTE_LIST.match(parts[0])
        and parts[1] == "*"
        and parts[2] == "*"
        and len(parts[0].split(",")) > 30
    ):
        return 1
    return None
