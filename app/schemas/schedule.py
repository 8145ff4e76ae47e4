# app/schemas/schedule.py
from pydantic import BaseModel, model_validator
from typing import Optional
from datetime import date, time
from enum import Enum


class AudienceType(str, Enum):
    public = "public"
    member = "member"
    holiday = "holiday"


class SpecialPeriodType(str, Enum):
    holiday = "holiday"
    closure = "closure"


class ScheduleCreate(BaseModel):
    day_of_week: Optional[int] = None
    start_time: time
    end_time: time
    audience_type: AudienceType = AudienceType.public
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_exception: bool = False
    is_closed: bool = False
    description: Optional[str] = None
    position: int = 0

    @model_validator(mode="after")
    def check_shape(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if self.is_exception:
            if self.start_date is None or self.end_date is None:
                raise ValueError("exceptions need start_date and end_date")
            if self.end_date < self.start_date:
                raise ValueError("end_date must not be before start_date")
        elif self.day_of_week is None or not 0 <= self.day_of_week <= 6:
            raise ValueError("recurring entries need day_of_week between 0 and 6")
        return self


class ScheduleResponse(BaseModel):
    id: str
    day_of_week: Optional[int] = None
    start_time: time
    end_time: time
    audience_type: AudienceType
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_exception: bool
    is_closed: bool
    description: Optional[str] = None
    position: int

    model_config = {"from_attributes": True}


class SpecialPeriodCreate(BaseModel):
    type: SpecialPeriodType
    name: str
    start_date: date
    end_date: date
    is_active: bool = True

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class SpecialPeriodResponse(BaseModel):
    id: str
    type: SpecialPeriodType
    name: str
    start_date: date
    end_date: date
    is_active: bool

    model_config = {"from_attributes": True}


class EffectiveScheduleResponse(BaseModel):
    date: date
    audience_type: AudienceType
    is_closed: bool
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    source: Optional[str] = None  # 'exception', 'recurring' or 'closure'
