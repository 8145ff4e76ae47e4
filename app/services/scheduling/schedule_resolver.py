# app/services/scheduling/schedule_resolver.py
"""
Resolves the single opening window that applies to a calendar date.

Order of precedence:
1. an active closure period closes the day;
2. during an active holiday period, public visitors get the holiday hours
   when any are defined;
3. a non-closed dated exception beats the weekly entry;
4. otherwise the non-closed weekly entry for that weekday, or closed.

Closed entries never open a day; they only document why it is shut.
"""
import logging
from dataclasses import dataclass
from datetime import date, time
from typing import List, Optional

from sqlalchemy.orm import Session

from app.crud.crud_schedule import schedule as schedule_crud, special_period as special_period_crud
from app.schemas.schedule import AudienceType, SpecialPeriodType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectiveWindow:
    open_time: Optional[time]
    close_time: Optional[time]
    source: str  # 'exception', 'recurring', 'closure' or 'closed'
    schedule_id: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.open_time is None


CLOSED = EffectiveWindow(open_time=None, close_time=None, source="closed")


def _candidate_audiences(db: Session, on: date, audience_type: str) -> List[str]:
    if audience_type == AudienceType.public.value and special_period_crud.get_active_covering(
        db, on=on, period_type=SpecialPeriodType.holiday.value
    ):
        return [AudienceType.holiday.value, AudienceType.public.value]
    return [audience_type]


def resolve(db: Session, on: date, audience_type: str = AudienceType.public.value) -> EffectiveWindow:
    closures = special_period_crud.get_active_covering(
        db, on=on, period_type=SpecialPeriodType.closure.value
    )
    if closures:
        logger.debug(f"{on} falls in closure period '{closures[0].name}'")
        return EffectiveWindow(open_time=None, close_time=None, source="closure")

    for audience in _candidate_audiences(db, on, audience_type):
        entries = schedule_crud.get_applicable(db, on=on, audience_type=audience)

        exceptions = [e for e in entries if e.is_exception and not e.is_closed]
        if len([e for e in entries if e.is_exception]) > 1:
            logger.warning(f"Several schedule exceptions match {on} for '{audience}', using the first")
        if exceptions:
            chosen = exceptions[0]
            return EffectiveWindow(chosen.start_time, chosen.end_time, "exception", chosen.id)

        recurring = [e for e in entries if not e.is_exception and not e.is_closed]
        if recurring:
            chosen = recurring[0]
            return EffectiveWindow(chosen.start_time, chosen.end_time, "recurring", chosen.id)

    return CLOSED
