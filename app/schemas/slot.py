# app/schemas/slot.py
from pydantic import BaseModel
from typing import List
from datetime import date, time


class SlotResponse(BaseModel):
    start_time: time
    end_time: time
    capacity: int
    booked: int
    available: int
    occupancy_percentage: int
    is_half_price: bool


class AvailabilityResponse(BaseModel):
    date: date
    audience_type: str
    is_closed: bool
    slots: List[SlotResponse]
    # slot_count * capacity; overlapping slots make this larger than real headcount
    total_capacity: int
    total_booked: int
    total_available: int
