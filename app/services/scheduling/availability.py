# app/services/scheduling/availability.py
"""Public "slots for a date" view: resolver + planner + overlap counter."""
import logging
from datetime import date

from sqlalchemy.orm import Session

from app.core.config import settings
from app.crud.ticket_crud import ticket_crud
from app.schemas.schedule import AudienceType
from app.schemas.slot import AvailabilityResponse, SlotResponse
from app.services.scheduling.schedule_resolver import resolve
from app.services.scheduling.slot_planner import is_slot_complete, plan_slots

logger = logging.getLogger(__name__)


def occupancy_percentage(booked: int, capacity: int) -> int:
    if capacity <= 0:
        return 0
    return round(booked / capacity * 100)


def get_availability(
    db: Session,
    on: date,
    audience_type: str = AudienceType.public.value,
    slot_duration_hours: int | None = None,
    daily_capacity: int | None = None,
) -> AvailabilityResponse:
    duration = slot_duration_hours or settings.SLOT_DURATION_HOURS
    capacity = daily_capacity if daily_capacity is not None else settings.DAILY_SLOT_CAPACITY

    window = resolve(db, on, audience_type)
    if window.is_closed:
        return AvailabilityResponse(
            date=on,
            audience_type=audience_type,
            is_closed=True,
            slots=[],
            total_capacity=0,
            total_booked=0,
            total_available=0,
        )

    slots = []
    for start, end in plan_slots(window.open_time, window.close_time, duration):
        booked = ticket_crud.count_overlapping(db, on, start, end)
        slots.append(
            SlotResponse(
                start_time=start,
                end_time=end,
                capacity=capacity,
                booked=booked,
                available=max(0, capacity - booked),
                occupancy_percentage=occupancy_percentage(booked, capacity),
                is_half_price=not is_slot_complete(start, end, duration),
            )
        )

    # Overlapping slots make this overstate the real headcount the venue can host.
    total_capacity = len(slots) * capacity
    total_booked = ticket_crud.count_unique_booked(db, on)

    return AvailabilityResponse(
        date=on,
        audience_type=audience_type,
        is_closed=False,
        slots=slots,
        total_capacity=total_capacity,
        total_booked=total_booked,
        total_available=max(0, total_capacity - total_booked),
    )
