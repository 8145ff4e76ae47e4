# app/models/special_period.py
from sqlalchemy import Boolean, Column, Date, DateTime, String, func, text
import uuid

from app.db.base_class import Base
from app.utils.clock import utcnow


class SpecialPeriod(Base):
    """A dated holiday or closure window."""

    __tablename__ = "special_periods"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(String(20), nullable=False)  # 'holiday' or 'closure'
    name = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
