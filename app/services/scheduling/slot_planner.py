# app/services/scheduling/slot_planner.py
"""
Expands an opening window into bookable slots and prices them.

Slots start on every hour from the hour-aligned opening time and span
``slot_duration_hours``, so with a duration above one hour they overlap.
A trailing shorter slot is added when at least one hour is left before
closing but a full slot no longer fits.
"""
from datetime import time
from decimal import Decimal, ROUND_FLOOR
from typing import List, Tuple

STEP_MINUTES = 60


def _to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def _to_time(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)


def plan_slots(
    open_time: time, close_time: time, slot_duration_hours: int = 1
) -> List[Tuple[time, time]]:
    duration = slot_duration_hours * 60
    end = _to_minutes(close_time)
    cursor = (_to_minutes(open_time) // 60) * 60

    slots: List[Tuple[time, time]] = []
    while cursor + duration <= end:
        slots.append((_to_time(cursor), _to_time(cursor + duration)))
        cursor += STEP_MINUTES

    if end - cursor >= STEP_MINUTES:
        slots.append((_to_time(cursor), _to_time(end)))

    return slots


def is_slot_complete(start: time, end: time, slot_duration_hours: int = 1) -> bool:
    """A slot is complete when it starts on the hour and lasts the full duration."""
    if start.minute != 0 or start.second != 0:
        return False
    return _to_minutes(end) - _to_minutes(start) == slot_duration_hours * 60


def partial_price(base_price: Decimal) -> Decimal:
    """Half price, always rounded down to a whole unit."""
    return (Decimal(base_price) / 2).to_integral_value(rounding=ROUND_FLOOR)


def calculate_slot_price(
    base_price: Decimal, start: time, end: time, slot_duration_hours: int = 1
) -> Decimal:
    if is_slot_complete(start, end, slot_duration_hours):
        return Decimal(base_price)
    return partial_price(base_price)
