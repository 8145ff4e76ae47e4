# app/models/ticket.py
from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
import uuid

from app.db.base_class import Base
from app.utils.clock import utcnow


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("code", name="uq_tickets_code"),
        CheckConstraint("slot_end_time > slot_start_time", name="ck_tickets_slot_order"),
        CheckConstraint("ticket_price >= 0", name="ck_tickets_price_non_negative"),
        CheckConstraint("donation_amount >= 0", name="ck_tickets_donation_non_negative"),
        CheckConstraint("total_amount = ticket_price + donation_amount", name="ck_tickets_total"),
        CheckConstraint(
            "status IN ('pending', 'paid', 'cancelled', 'used', 'expired')",
            name="ck_tickets_status",
        ),
        Index("ix_tickets_reservation_slot", "reservation_date", "slot_start_time", "slot_end_time"),
        Index("ix_tickets_status_created", "status", "created_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(8), nullable=False)  # QR payload shown at the door

    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False, index=True)

    reservation_date = Column(Date, nullable=False)
    slot_start_time = Column(Time, nullable=False)
    slot_end_time = Column(Time, nullable=False)

    ticket_price = Column(Numeric(10, 2), nullable=False, default=0)
    donation_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)

    # 'pending', 'paid', 'cancelled', 'used', 'expired'
    status = Column(String(20), nullable=False, default="pending")
    used_at = Column(DateTime(timezone=True), nullable=True)

    # Payment provider correlation
    checkout_id = Column(String(255), nullable=True, index=True)
    checkout_reference = Column(String(255), nullable=True)
    transaction_status = Column(String(50), nullable=True)

    notes = Column(Text, nullable=True)
    language = Column(String(10), nullable=True, default="fr")

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    @property
    def holder_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or self.email

    def __repr__(self):
        return f"<Ticket {self.code} status={self.status} date={self.reservation_date}>"
