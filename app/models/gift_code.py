# app/models/gift_code.py
from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint, func
import uuid

from app.db.base_class import Base
from app.utils.clock import as_utc, utcnow


class GiftCode(Base):
    __tablename__ = "gift_codes"
    __table_args__ = (UniqueConstraint("code", name="uq_gift_codes_code"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    code = Column(String(12), nullable=False)

    # 'unused', 'used', 'expired'
    status = Column(String(20), nullable=False, default="unused")

    # Codes generated together share a pack id
    pack_id = Column(String, nullable=True, index=True)
    ticket_id = Column(String, ForeignKey("tickets.id", ondelete="SET NULL"), nullable=True)
    recipient_email = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    expires_at = Column(DateTime(timezone=True), nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    @property
    def is_past_expiry(self) -> bool:
        return self.expires_at is not None and as_utc(self.expires_at) < utcnow()

    def __repr__(self):
        return f"<GiftCode {self.code} status={self.status}>"
