# app/crud/crud_schedule.py
from datetime import date
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.core.exceptions import ScheduleConflict
from app.crud.base import CRUDBase
from app.models.schedule import Schedule
from app.models.special_period import SpecialPeriod
from app.schemas.schedule import ScheduleCreate, SpecialPeriodCreate
from app.utils.clock import day_of_week


class CRUDSchedule(CRUDBase[Schedule, ScheduleCreate]):
    def get_applicable(self, db: Session, *, on: date, audience_type: str) -> List[Schedule]:
        """Entries that apply to ``on`` for one audience, in resolver order."""
        return (
            db.query(Schedule)
            .filter(
                Schedule.audience_type == audience_type,
                or_(
                    and_(
                        Schedule.is_exception.is_(False),
                        Schedule.day_of_week == day_of_week(on),
                    ),
                    and_(
                        Schedule.is_exception.is_(True),
                        Schedule.start_date <= on,
                        Schedule.end_date >= on,
                    ),
                ),
            )
            .order_by(
                Schedule.position,
                Schedule.is_exception,
                Schedule.day_of_week,
                Schedule.start_time,
                Schedule.id,
            )
            .all()
        )

    def get_overlapping_exception(
        self, db: Session, *, audience_type: str, start_date: date, end_date: date
    ) -> Optional[Schedule]:
        return (
            db.query(Schedule)
            .filter(
                Schedule.is_exception.is_(True),
                Schedule.audience_type == audience_type,
                Schedule.start_date <= end_date,
                Schedule.end_date >= start_date,
            )
            .first()
        )

    def list_all(self, db: Session, *, audience_type: Optional[str] = None) -> List[Schedule]:
        query = db.query(Schedule)
        if audience_type:
            query = query.filter(Schedule.audience_type == audience_type)
        return query.order_by(
            Schedule.position, Schedule.is_exception, Schedule.day_of_week, Schedule.start_time
        ).all()

    def create(self, db: Session, *, obj_in: ScheduleCreate) -> Schedule:
        """Create an entry; dated exceptions may not overlap for the same audience."""
        if obj_in.is_exception:
            clash = self.get_overlapping_exception(
                db,
                audience_type=obj_in.audience_type.value,
                start_date=obj_in.start_date,
                end_date=obj_in.end_date,
            )
            if clash:
                raise ScheduleConflict(
                    f"Exception overlaps existing exception {clash.id} "
                    f"({clash.start_date} to {clash.end_date}) for audience '{clash.audience_type}'"
                )
        data = obj_in.model_dump()
        data["audience_type"] = obj_in.audience_type.value
        if obj_in.is_exception:
            data["day_of_week"] = None
        db_obj = Schedule(**data)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj


class CRUDSpecialPeriod(CRUDBase[SpecialPeriod, SpecialPeriodCreate]):
    def get_active_covering(
        self, db: Session, *, on: date, period_type: Optional[str] = None
    ) -> List[SpecialPeriod]:
        query = db.query(SpecialPeriod).filter(
            SpecialPeriod.is_active.is_(True),
            SpecialPeriod.start_date <= on,
            SpecialPeriod.end_date >= on,
        )
        if period_type:
            query = query.filter(SpecialPeriod.type == period_type)
        return query.order_by(SpecialPeriod.start_date).all()

    def create(self, db: Session, *, obj_in: SpecialPeriodCreate) -> SpecialPeriod:
        data = obj_in.model_dump()
        data["type"] = obj_in.type.value
        db_obj = SpecialPeriod(**data)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj


schedule = CRUDSchedule(Schedule)
special_period = CRUDSpecialPeriod(SpecialPeriod)
