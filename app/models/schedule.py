# app/models/schedule.py
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Integer,
    String,
    Text,
    Time,
    func,
    text,
)
import uuid

from app.db.base_class import Base
from app.utils.clock import utcnow


class Schedule(Base):
    """Opening hours: weekly recurring rows plus dated exceptions."""

    __tablename__ = "schedules"
    __table_args__ = (
        CheckConstraint("day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)", name="ck_schedules_dow"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # 0 = Sunday .. 6 = Saturday; NULL for exceptions
    day_of_week = Column(Integer, nullable=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    # 'public', 'member', 'holiday'
    audience_type = Column(String(20), nullable=False, default="public")

    # Exceptions only
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_exception = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    is_closed = Column(Boolean, nullable=False, default=False, server_default=text("false"))

    description = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0, server_default=text("0"))

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )
