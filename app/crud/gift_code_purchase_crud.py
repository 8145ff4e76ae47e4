from typing import Optional

from sqlalchemy import and_, update
from sqlalchemy.orm import Session

from app.models.gift_code_purchase import GiftCodePurchase
from app.utils.clock import utcnow


class CRUDGiftCodePurchase:
    """CRUD operations for gift code purchases."""

    def get_by_checkout(self, db: Session, checkout_id: str) -> Optional[GiftCodePurchase]:
        return db.query(GiftCodePurchase).filter(GiftCodePurchase.checkout_id == checkout_id).first()

    def get_checkout_id_by_reference(self, db: Session, reference: str) -> Optional[str]:
        row = (
            db.query(GiftCodePurchase.checkout_id)
            .filter(GiftCodePurchase.checkout_reference == reference)
            .first()
        )
        return row[0] if row else None

    def transition(
        self,
        db: Session,
        checkout_id: str,
        from_status: str,
        to_status: str,
        transaction_status: Optional[str] = None,
        pack_id: Optional[str] = None,
        commit: bool = True,
    ) -> bool:
        """Move the purchase only if it is still in ``from_status``."""
        values = {"status": to_status, "updated_at": utcnow()}
        if transaction_status is not None:
            values["transaction_status"] = transaction_status
        if pack_id is not None:
            values["pack_id"] = pack_id

        result = db.execute(
            update(GiftCodePurchase)
            .where(
                and_(
                    GiftCodePurchase.checkout_id == checkout_id,
                    GiftCodePurchase.status == from_status,
                )
            )
            .values(**values)
            .returning(GiftCodePurchase.id)
            .execution_options(synchronize_session=False)
        )
        updated = result.scalar_one_or_none()
        if commit:
            db.commit()
        return updated is not None


gift_code_purchase_crud = CRUDGiftCodePurchase()
