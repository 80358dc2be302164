# app/domain/availability.py
from __future__ import annotations

from collections import Counter
from datetime import date

from .errors import ValidationError
from .types import AvailabilityRules, AvailabilitySlot, SlotCheck

REASON_DATE_BLOCKED = "date blocked"
REASON_CLOSED = "closed"
REASON_OFF_GRID = "outside business hours"
REASON_DAY_FULL = "day full"
REASON_SLOT_FULL = "slot full"


def parse_day(raw: str) -> date:
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        raise ValidationError(f"date must be YYYY-MM-DD, got {raw!r}") from None


def time_to_minutes(raw: str) -> int:
    parts = str(raw).strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValidationError(f"time must be HH:MM, got {raw!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        raise ValidationError(f"time must be HH:MM, got {raw!r}")
    return hours * 60 + minutes


def minutes_to_time(total: int) -> str:
    return f"{(total // 60) % 24:02d}:{total % 60:02d}"


def normalize_time(raw: str) -> str:
    """'9:00' -> '09:00'; raises ValidationError on garbage."""
    return minutes_to_time(time_to_minutes(raw))


def _twelve_hour(total: int) -> str:
    hours, minutes = (total // 60) % 24, total % 60
    suffix = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes:02d} {suffix}"


def slot_label(time: str, slot_minutes: int) -> str:
    """Arrival window text, e.g. '10:00 AM - 11:00 AM'."""
    start = time_to_minutes(time)
    return f"{_twelve_hour(start)} - {_twelve_hour(start + slot_minutes)}"


def build_slot_times(rules: AvailabilityRules) -> list[str]:
    start = time_to_minutes(rules.start_time)
    end = time_to_minutes(rules.end_time)
    step = max(1, rules.slot_minutes)
    return [minutes_to_time(m) for m in range(start, end + 1, step)]


def is_working_day(day: date, rules: AvailabilityRules) -> bool:
    # rules use 0=Sunday .. 6=Saturday
    return (day.isoweekday() % 7) in rules.working_days


def evaluate_slot(
    day: date,
    time: str,
    rules: AvailabilityRules,
    *,
    date_blocked: bool,
    booked_at_slot: int,
    internal_at_slot: int,
    booked_that_day: int,
    require_on_grid: bool = True,
) -> SlotCheck:
    """
    Decide one slot. Counts are across every business unit and exclude
    cancelled appointments; internal calendar blocks take a seat too.
    """
    if date_blocked:
        return SlotCheck(False, REASON_DATE_BLOCKED)
    if not is_working_day(day, rules):
        return SlotCheck(False, REASON_CLOSED)
    if require_on_grid and time not in build_slot_times(rules):
        return SlotCheck(False, REASON_OFF_GRID)
    if booked_that_day >= rules.max_appointments_per_day:
        return SlotCheck(False, REASON_DAY_FULL)
    if booked_at_slot + internal_at_slot >= rules.slot_capacity:
        return SlotCheck(False, REASON_SLOT_FULL)
    return SlotCheck(True)


def evaluate_day(
    day: date,
    rules: AvailabilityRules,
    *,
    date_blocked: bool,
    booked_by_time: Counter[str],
    internal_by_time: Counter[str],
) -> list[AvailabilitySlot]:
    booked_that_day = sum(booked_by_time.values())
    out: list[AvailabilitySlot] = []
    for t in build_slot_times(rules):
        check = evaluate_slot(
            day,
            t,
            rules,
            date_blocked=date_blocked,
            booked_at_slot=booked_by_time.get(t, 0),
            internal_at_slot=internal_by_time.get(t, 0),
            booked_that_day=booked_that_day,
            require_on_grid=False,
        )
        out.append(
            AvailabilitySlot(
                date=day.isoformat(),
                time=t,
                label=slot_label(t, rules.slot_minutes),
                available=check.available,
                reason=check.reason,
            )
        )
    return out
