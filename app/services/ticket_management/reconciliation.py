# app/services/ticket_management/reconciliation.py
"""
Applies payment-provider events to the tickets of a checkout.

Deliveries can be duplicated or arrive out of order. The transition is a
single ``UPDATE ... WHERE checkout_id = ? AND status = 'pending'``, so only
the first terminal event for a checkout changes anything, and notifications
go out only for the rows that update actually touched. A checkout opened for
a gift code purchase goes through the same gate on its purchase row, and the
pack is issued in the transaction that moves it.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.pubsub import SLOTS_TOPIC, TopicRegistry
from app.crud.gift_code_purchase_crud import gift_code_purchase_crud
from app.crud.ticket_crud import ticket_crud
from app.schemas.gift_code import GiftCodePurchaseStatus
from app.schemas.ticket import TicketStatus
from app.services.notifications import TicketNotifier
from app.services.payment.provider_interface import (
    CheckoutAsyncPaymentFailed,
    CheckoutAsyncPaymentSucceeded,
    CheckoutCompleted,
    CheckoutExpired,
    CheckoutSessionStatusEnum,
    PaymentIntentFailed,
    PaymentIntentSucceeded,
    PaymentProviderInterface,
    PaymentStatusEnum,
    UnhandledEvent,
    WebhookEvent,
)
from app.services.ticket_management.gift_code_service import gift_code_service

logger = logging.getLogger(__name__)

PAID_PAYMENT_STATUSES = (PaymentStatusEnum.PAID.value, PaymentStatusEnum.NO_PAYMENT_REQUIRED.value)


@dataclass(frozen=True)
class Outcome:
    """Where an event points and what it means for the tickets."""
    checkout_id: Optional[str] = None
    checkout_reference: Optional[str] = None
    target_status: Optional[TicketStatus] = None
    transaction_status: Optional[str] = None


@dataclass
class ReconciliationResult:
    event_id: str
    checkout_id: Optional[str] = None
    target_status: Optional[str] = None
    updated_ticket_ids: List[str] = field(default_factory=list)
    purchase_changed: bool = False
    issued_pack_id: Optional[str] = None

    @property
    def changed(self) -> bool:
        return bool(self.updated_ticket_ids) or self.purchase_changed


def classify(event: WebhookEvent) -> Outcome:
    match event:
        case CheckoutCompleted(session_id=session_id, payment_status=payment_status):
            if payment_status in PAID_PAYMENT_STATUSES:
                return Outcome(session_id, None, TicketStatus.paid, "paid")
            # Delayed payment methods complete first and settle later
            return Outcome(session_id, None, None, payment_status)
        case CheckoutAsyncPaymentSucceeded(session_id=session_id):
            return Outcome(session_id, None, TicketStatus.paid, "paid")
        case CheckoutAsyncPaymentFailed(session_id=session_id):
            return Outcome(session_id, None, TicketStatus.cancelled, "failed")
        case CheckoutExpired(session_id=session_id):
            return Outcome(session_id, None, TicketStatus.cancelled, "expired")
        case PaymentIntentSucceeded(checkout_reference=reference):
            return Outcome(None, reference, TicketStatus.paid, "paid")
        case PaymentIntentFailed(checkout_reference=reference):
            return Outcome(None, reference, TicketStatus.cancelled, "failed")
        case UnhandledEvent():
            return Outcome()
    return Outcome()


def reconcile_webhook(
    db: Session,
    event: WebhookEvent,
    notifier: TicketNotifier,
    topics: Optional[TopicRegistry] = None,
) -> ReconciliationResult:
    """Apply ``event``. Zero affected rows is a normal, successful outcome."""
    outcome = classify(event)
    result = ReconciliationResult(event_id=event.event_id)

    if outcome.target_status is None:
        logger.info(f"Webhook {event.event_id} ({type(event).__name__}) acknowledged without changes")
        return result

    checkout_id = outcome.checkout_id
    if checkout_id is None and outcome.checkout_reference:
        checkout_id = ticket_crud.get_checkout_id_by_reference(
            db, outcome.checkout_reference
        ) or gift_code_purchase_crud.get_checkout_id_by_reference(db, outcome.checkout_reference)
    if not checkout_id:
        logger.info(f"Webhook {event.event_id} does not match any checkout, ignoring")
        return result

    result.checkout_id = checkout_id
    result.target_status = outcome.target_status.value

    if gift_code_purchase_crud.get_by_checkout(db, checkout_id):
        return _reconcile_purchase(db, event, outcome, result, notifier)

    updated_ids = ticket_crud.transition_checkout(
        db, checkout_id, outcome.target_status.value, outcome.transaction_status
    )
    result.updated_ticket_ids = updated_ids

    if not updated_ids:
        if (
            outcome.target_status == TicketStatus.paid
            and ticket_crud.count_by_checkout_and_status(db, checkout_id, TicketStatus.cancelled.value)
        ):
            logger.warning(
                f"Payment captured for checkout {checkout_id} after its tickets were cancelled; "
                f"needs a manual refund or reissue"
            )
        else:
            logger.info(f"Webhook {event.event_id}: checkout {checkout_id} already settled")
        return result

    logger.info(
        f"Webhook {event.event_id}: {len(updated_ids)} tickets of checkout {checkout_id} "
        f"-> {outcome.target_status.value}"
    )

    if outcome.target_status == TicketStatus.paid:
        notifier.notify_paid(ticket_crud.get_many(db, updated_ids))

    if topics:
        topics.publish(SLOTS_TOPIC)
    return result


def _reconcile_purchase(
    db: Session,
    event: WebhookEvent,
    outcome: Outcome,
    result: ReconciliationResult,
    notifier: TicketNotifier,
) -> ReconciliationResult:
    checkout_id = result.checkout_id

    if outcome.target_status == TicketStatus.paid:
        confirmed = gift_code_service.confirm_purchase(db, checkout_id, outcome.transaction_status)
        if confirmed is None:
            purchase = gift_code_purchase_crud.get_by_checkout(db, checkout_id)
            if purchase is not None and purchase.status == GiftCodePurchaseStatus.cancelled.value:
                logger.warning(
                    f"Payment captured for gift code purchase {checkout_id} after it was cancelled; "
                    f"needs a manual refund or reissue"
                )
            else:
                logger.info(f"Webhook {event.event_id}: gift code purchase {checkout_id} already settled")
            return result

        purchase, codes = confirmed
        result.purchase_changed = True
        result.issued_pack_id = purchase.pack_id
        notifier.send_gift_codes(purchase, codes)
        return result

    result.purchase_changed = gift_code_service.cancel_purchase(
        db, checkout_id, outcome.transaction_status
    )
    if result.purchase_changed:
        logger.info(f"Webhook {event.event_id}: gift code purchase {checkout_id} cancelled")
    return result


async def sync_checkout_status(
    db: Session,
    checkout_id: str,
    provider: PaymentProviderInterface,
    notifier: TicketNotifier,
    topics: Optional[TopicRegistry] = None,
) -> ReconciliationResult:
    """Pull the session state from the provider and apply it like a webhook.

    Used by the checkout return page so a visitor does not wait on a late
    webhook.
    """
    state = await provider.get_checkout_session(checkout_id)
    event_id = f"sync:{checkout_id}"

    if state.status == CheckoutSessionStatusEnum.COMPLETE:
        event = CheckoutCompleted(event_id, checkout_id, state.payment_status)
    elif state.status == CheckoutSessionStatusEnum.EXPIRED:
        event = CheckoutExpired(event_id, checkout_id)
    else:
        return ReconciliationResult(event_id=event_id, checkout_id=checkout_id)

    return reconcile_webhook(db, event, notifier, topics)
