import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.api import deps
from app.core.limiter import limiter
from app.core.pubsub import TopicRegistry
from app.schemas.gift_code import (
    GiftCodeCheckResponse,
    GiftCodePurchaseRequest,
    GiftCodePurchaseResponse,
    GiftCodePurchaseStatus,
    GiftCodePurchaseStatusResponse,
)
from app.schemas.schedule import AudienceType, EffectiveScheduleResponse
from app.schemas.slot import AvailabilityResponse
from app.services.notifications import TicketNotifier
from app.services.payment.provider_interface import PaymentProviderInterface
from app.services.scheduling.availability import get_availability
from app.services.scheduling.schedule_resolver import resolve
from app.services.ticket_management.gift_code_service import gift_code_service
from app.services.ticket_management.reconciliation import sync_checkout_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["Public"])


@router.get("/slots", response_model=AvailabilityResponse)
def get_public_slots(
    date: date = Query(..., description="Visit date (YYYY-MM-DD)"),
    audience_type: AudienceType = AudienceType.public,
    db: Session = Depends(deps.get_db),
):
    """
    Bookable slots for a date with remaining capacity and half-price flags.
    """
    return get_availability(db, date, audience_type.value)


@router.get("/schedules", response_model=EffectiveScheduleResponse)
def get_public_schedule(
    date: date = Query(...),
    audience_type: AudienceType = AudienceType.public,
    db: Session = Depends(deps.get_db),
):
    """Opening hours that apply on a given date."""
    window = resolve(db, date, audience_type.value)
    return EffectiveScheduleResponse(
        date=date,
        audience_type=audience_type,
        is_closed=window.is_closed,
        open_time=window.open_time,
        close_time=window.close_time,
        source=window.source,
    )


@router.get("/gift-codes/{code}", response_model=GiftCodeCheckResponse)
@limiter.limit("20/minute")
def check_gift_code(code: str, request: Request, db: Session = Depends(deps.get_db)):
    """Check that a gift code can be used before checkout."""
    gift_code = gift_code_service.validate(db, code)
    return GiftCodeCheckResponse(code=gift_code.code, expires_at=gift_code.expires_at)


@router.post(
    "/gift-codes/purchase",
    response_model=GiftCodePurchaseResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("5/minute")
async def purchase_gift_codes(
    body: GiftCodePurchaseRequest,
    request: Request,
    db: Session = Depends(deps.get_db),
    provider: Optional[PaymentProviderInterface] = Depends(deps.get_payment_provider_optional),
):
    """
    Buy gift codes. Returns the hosted payment page URL.

    The codes are generated and emailed to the buyer once the payment is
    confirmed.
    """
    purchase, checkout_url = await gift_code_service.purchase(db, body, provider)
    return GiftCodePurchaseResponse(
        checkout_id=purchase.checkout_id,
        checkout_url=checkout_url,
        quantity=purchase.quantity,
        total_amount=purchase.total_amount,
    )


@router.get("/gift-codes/purchases/{checkout_id}", response_model=GiftCodePurchaseStatusResponse)
async def get_gift_code_purchase(
    checkout_id: str,
    db: Session = Depends(deps.get_db),
    provider: Optional[PaymentProviderInterface] = Depends(deps.get_payment_provider_optional),
    notifier: TicketNotifier = Depends(deps.get_notifier),
    topics: TopicRegistry = Depends(deps.get_topics),
):
    """Purchase status for the payment return page, synced with the provider while pending."""
    purchase = gift_code_service.get_purchase(db, checkout_id)
    if provider and purchase.status == GiftCodePurchaseStatus.pending.value:
        try:
            await sync_checkout_status(db, checkout_id, provider, notifier, topics)
            purchase = gift_code_service.get_purchase(db, checkout_id)
        except Exception as e:
            logger.warning(f"Could not sync gift code purchase {checkout_id} with provider: {e}")
    return purchase
