# app/api/v1/endpoints/webhooks.py
"""
Webhook endpoint for the payment provider.

Stripe calls this when a checkout completes, expires or fails. The signature
is always verified first. Reconciliation is idempotent, so a redelivered
event is acknowledged without side effects; a failure while applying an
event returns 500 so Stripe delivers it again.
"""
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.api import deps
from app.core.exceptions import PaymentError
from app.core.pubsub import TopicRegistry
from app.services.notifications import TicketNotifier
from app.services.payment.provider_interface import PaymentProviderInterface
from app.services.ticket_management.reconciliation import reconcile_webhook

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(deps.get_db),
    provider: PaymentProviderInterface = Depends(deps.get_payment_provider),
    notifier: TicketNotifier = Depends(deps.get_notifier),
    topics: TopicRegistry = Depends(deps.get_topics),
):
    """
    Handle Stripe webhook events.

    This endpoint:
    1. Verifies the webhook signature
    2. Parses the event into a typed variant
    3. Applies it to the tickets of the checkout
    4. Returns 200 to acknowledge receipt
    """
    body = await request.body()

    if not stripe_signature:
        logger.warning("Webhook received without Stripe-Signature header")
        raise HTTPException(status_code=400, detail="Missing signature")

    client_ip = request.client.host if request.client else None
    if not provider.verify_webhook_signature(body, stripe_signature):
        logger.warning(f"Invalid webhook signature from {client_ip}")
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        event = provider.parse_webhook_event(body)
    except PaymentError:
        raise HTTPException(status_code=400, detail="Malformed event")

    try:
        result = reconcile_webhook(db, event, notifier, topics)
    except Exception as e:
        db.rollback()
        logger.error(f"Error processing webhook event {event.event_id}: {e}")
        raise HTTPException(status_code=500, detail="Processing error")

    return {
        "status": "processed" if result.changed else "acknowledged",
        "event_id": event.event_id,
        "updated": len(result.updated_ticket_ids),
    }
