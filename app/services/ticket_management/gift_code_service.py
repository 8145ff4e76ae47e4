# app/services/ticket_management/gift_code_service.py
"""
Gift Code Service

Handles business logic for:
- Issuing packs of gift codes
- Selling packs through a checkout session, issued once the payment lands
- Validating a code (with lazy expiry)
- Redeeming a code exactly once against a ticket
- Bulk expiry of stale codes
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    GiftCodeAlreadyUsed,
    GiftCodeExpired,
    GiftCodeNotFound,
    GiftCodePurchaseNotFound,
    PaymentSessionError,
    ValidationError,
)
from app.crud.gift_code_crud import gift_code_crud
from app.crud.gift_code_purchase_crud import gift_code_purchase_crud
from app.models.gift_code import GiftCode
from app.models.gift_code_purchase import GiftCodePurchase
from app.schemas.gift_code import GiftCodePurchaseRequest, GiftCodePurchaseStatus, GiftCodeStatus
from app.services.codes import (
    GIFT_CODE_LENGTH,
    generate_unique_code,
    normalize_code,
    persist_with_unique_codes,
)
from app.services.payment.provider_interface import (
    CreateCheckoutSessionParams,
    PaymentProviderInterface,
)
from app.utils.clock import as_utc, utcnow
from app.utils.money import to_minor_units, to_money

logger = logging.getLogger(__name__)

GIFT_CODE_COLLISION_MARKERS = ("uq_gift_codes_code", "gift_codes.code")
PURCHASE_TYPE = "gift_codes"


class GiftCodeService:
    """Service for issuing, selling, validating and redeeming gift codes."""

    def _add_pack_rows(
        self,
        db: Session,
        pack_id: str,
        quantity: int,
        expires_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        recipient_email: Optional[str] = None,
    ) -> List[GiftCode]:
        issued: set = set()
        codes = [
            GiftCode(
                code=generate_unique_code(
                    GIFT_CODE_LENGTH,
                    lambda c: gift_code_crud.code_exists(db, c),
                    issued=issued,
                ),
                status=GiftCodeStatus.unused.value,
                pack_id=pack_id,
                expires_at=expires_at,
                notes=notes,
                recipient_email=recipient_email,
            )
            for _ in range(quantity)
        ]
        db.add_all(codes)
        db.flush()
        return codes

    def create_pack(
        self,
        db: Session,
        quantity: int,
        expires_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        recipient_email: Optional[str] = None,
    ) -> Tuple[str, List[GiftCode]]:
        """Create ``quantity`` codes sharing one pack id, all or nothing."""
        if quantity < 1 or quantity > settings.MAX_GIFT_CODES_PER_PACK:
            raise ValidationError(
                f"Quantity must be between 1 and {settings.MAX_GIFT_CODES_PER_PACK}"
            )
        if expires_at is not None and as_utc(expires_at) <= utcnow():
            raise ValidationError("Expiry date must be in the future")

        pack_id = str(uuid.uuid4())
        codes = persist_with_unique_codes(
            db,
            lambda: self._add_pack_rows(db, pack_id, quantity, expires_at, notes, recipient_email),
            GIFT_CODE_COLLISION_MARKERS,
        )
        logger.info(f"Created gift code pack {pack_id} with {quantity} codes")
        return pack_id, codes

    # ========================================
    # Purchases
    # ========================================

    async def purchase(
        self,
        db: Session,
        request: GiftCodePurchaseRequest,
        provider: Optional[PaymentProviderInterface],
    ) -> Tuple[GiftCodePurchase, Optional[str]]:
        """
        Open a checkout session for ``request.quantity`` gift codes.

        Nothing is issued here: the pack is created when the paid checkout
        is reconciled. Returns the pending purchase and the payment page URL.
        """
        if not 1 <= request.quantity <= settings.MAX_GIFT_CODES_PER_PURCHASE:
            raise ValidationError(
                f"Quantity must be between 1 and {settings.MAX_GIFT_CODES_PER_PURCHASE}"
            )
        unit_price = to_money(settings.GIFT_CODE_PRICE)
        if unit_price <= 0:
            raise ValidationError("Gift code sales are not available")
        if provider is None:
            raise PaymentSessionError("Payments are not configured")

        total = to_money(unit_price * request.quantity)
        reference = str(uuid.uuid4())
        params = CreateCheckoutSessionParams(
            reference=reference,
            amount=to_minor_units(total),
            currency=settings.DEFAULT_CURRENCY,
            description=f"{settings.VENUE_NAME} - {request.quantity} gift code(s)",
            customer_email=str(request.email),
            success_url=request.success_url or settings.CHECKOUT_SUCCESS_URL,
            cancel_url=request.cancel_url or settings.CHECKOUT_CANCEL_URL,
            metadata={"purchase_type": PURCHASE_TYPE, "gift_codes_quantity": str(request.quantity)},
            idempotency_key=reference,
            locale=(request.language or None),
        )
        try:
            session = await provider.create_checkout_session(params)
        except Exception as e:
            logger.error(f"Could not open checkout session for gift code purchase {reference}: {e}")
            raise PaymentSessionError("Could not open the payment session") from e

        purchase = GiftCodePurchase(
            checkout_id=session.session_id,
            checkout_reference=session.reference,
            transaction_status=session.status.value,
            quantity=request.quantity,
            unit_price=unit_price,
            total_amount=total,
            buyer_email=str(request.email),
            language=request.language or "fr",
            status=GiftCodePurchaseStatus.pending.value,
        )
        try:
            db.add(purchase)
            db.commit()
        except Exception:
            db.rollback()
            logger.error(f"Gift code purchase {reference} not persisted, expiring session {session.session_id}")
            try:
                await provider.expire_checkout_session(session.session_id)
            except Exception as e:
                logger.warning(f"Could not expire checkout session {session.session_id}: {e}")
            raise

        db.refresh(purchase)
        logger.info(
            f"Gift code purchase of {request.quantity} on checkout {session.session_id}, total {total}"
        )
        return purchase, session.url

    def get_purchase(self, db: Session, checkout_id: str) -> GiftCodePurchase:
        purchase = gift_code_purchase_crud.get_by_checkout(db, checkout_id)
        if not purchase:
            raise GiftCodePurchaseNotFound()
        return purchase

    def confirm_purchase(
        self, db: Session, checkout_id: str, transaction_status: str = "paid"
    ) -> Optional[Tuple[GiftCodePurchase, List[GiftCode]]]:
        """
        Issue the pack of a paid purchase, exactly once.

        The pending -> paid update and the new codes share one transaction,
        so a replayed delivery finds the purchase already paid and issues
        nothing. Returns None when this call did not move the purchase.
        """
        purchase = gift_code_purchase_crud.get_by_checkout(db, checkout_id)
        if not purchase:
            return None
        pack_id = str(uuid.uuid4())
        quantity = purchase.quantity
        buyer_email = purchase.buyer_email

        def build() -> Optional[List[GiftCode]]:
            moved = gift_code_purchase_crud.transition(
                db,
                checkout_id,
                GiftCodePurchaseStatus.pending.value,
                GiftCodePurchaseStatus.paid.value,
                transaction_status=transaction_status,
                pack_id=pack_id,
                commit=False,
            )
            if not moved:
                return None
            return self._add_pack_rows(
                db,
                pack_id,
                quantity,
                notes=f"Purchased through checkout {checkout_id}",
                recipient_email=buyer_email,
            )

        codes = persist_with_unique_codes(db, build, GIFT_CODE_COLLISION_MARKERS)
        if codes is None:
            return None

        db.refresh(purchase)
        logger.info(f"Gift code purchase {checkout_id} paid, issued pack {pack_id} of {len(codes)} codes")
        return purchase, codes

    def cancel_purchase(self, db: Session, checkout_id: str, transaction_status: str) -> bool:
        return gift_code_purchase_crud.transition(
            db,
            checkout_id,
            GiftCodePurchaseStatus.pending.value,
            GiftCodePurchaseStatus.cancelled.value,
            transaction_status=transaction_status,
        )

    # ========================================
    # Validation and redemption
    # ========================================

    def validate(self, db: Session, code: str) -> GiftCode:
        """Return the code record if it can still be redeemed."""
        gift_code = gift_code_crud.get_by_code(db, normalize_code(code))
        if not gift_code:
            raise GiftCodeNotFound()

        if gift_code.status == GiftCodeStatus.used.value:
            raise GiftCodeAlreadyUsed()

        if gift_code.status == GiftCodeStatus.expired.value:
            raise GiftCodeExpired()

        if gift_code.is_past_expiry:
            gift_code_crud.mark_expired(db, gift_code.id)
            logger.info(f"Gift code {gift_code.code} expired on validation")
            raise GiftCodeExpired()

        return gift_code

    def redeem(
        self, db: Session, code: str, ticket_id: Optional[str], commit: bool = True
    ) -> GiftCode:
        """Consume the code for ``ticket_id``.

        With ``commit=False`` the update joins the caller's transaction.
        """
        gift_code = self.validate(db, code)
        if not gift_code_crud.redeem(db, gift_code.id, ticket_id, utcnow(), commit=commit):
            # Another request redeemed it between validate and update
            raise GiftCodeAlreadyUsed()
        logger.info(f"Gift code {gift_code.code} redeemed for ticket {ticket_id}")
        return gift_code

    def expire_stale(self, db: Session) -> int:
        return gift_code_crud.expire_stale(db, utcnow())

    def list_codes(
        self,
        db: Session,
        status: Optional[str] = None,
        pack_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[GiftCode], int]:
        return gift_code_crud.get_multi_filtered(db, status, pack_id, search, limit, offset)

    def list_packs(self, db: Session, limit: int = 50, offset: int = 0) -> List[dict]:
        return gift_code_crud.pack_summaries(db, limit, offset)


gift_code_service = GiftCodeService()
