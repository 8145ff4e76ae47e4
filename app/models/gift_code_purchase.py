from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
import uuid

from app.db.base_class import Base
from app.utils.clock import utcnow


class GiftCodePurchase(Base):
    """A pack of gift codes bought through a checkout session.

    The pack is only created once the checkout is paid; ``pack_id`` is set
    by the same conditional update that moves the purchase out of pending.
    """
    __tablename__ = "gift_code_purchases"
    __table_args__ = (
        UniqueConstraint("checkout_id", name="uq_gift_code_purchases_checkout_id"),
        CheckConstraint("quantity > 0", name="ck_gift_code_purchases_quantity"),
        CheckConstraint(
            "status IN ('pending', 'paid', 'cancelled')", name="ck_gift_code_purchases_status"
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    checkout_id = Column(String(255), nullable=False)
    checkout_reference = Column(String(255), nullable=False, index=True)
    transaction_status = Column(String(50), nullable=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    buyer_email = Column(String(255), nullable=False)
    language = Column(String(10), nullable=True, default="fr")

    # 'pending', 'paid', 'cancelled'
    status = Column(String(20), nullable=False, default="pending")
    pack_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<GiftCodePurchase {self.checkout_id} x{self.quantity} status={self.status}>"
