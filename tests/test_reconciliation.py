"""
Tests for applying payment events to checkout tickets.

Verifies that:
- A completed checkout moves every pending ticket of the session to paid
- Duplicate deliveries change nothing and send no second notification
- Late failure / expiry events never undo a payment
- payment_intent events are traced back through the basket reference
- Unknown or unmatched events are acknowledged without changes
- A paid gift code purchase issues its pack once, whatever the redeliveries
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from app.core.pubsub import SLOTS_TOPIC
from app.models.gift_code import GiftCode
from app.services.payment.provider_interface import (
    CheckoutAsyncPaymentFailed,
    CheckoutAsyncPaymentSucceeded,
    CheckoutCompleted,
    CheckoutExpired,
    CheckoutSessionState,
    CheckoutSessionStatusEnum,
    PaymentIntentFailed,
    PaymentIntentSucceeded,
    UnhandledEvent,
)
from app.services.ticket_management.reconciliation import (
    classify,
    reconcile_webhook,
    sync_checkout_status,
)
from app.schemas.ticket import TicketStatus
from tests.utils.factories import create_gift_code_purchase_row, create_ticket_row, run_async


@pytest.fixture
def checkout(db):
    """Three pending tickets behind one session, one of them with a donation."""
    return [
        create_ticket_row(
            db,
            status="pending",
            checkout_id="cs_test_1",
            checkout_reference="ref-1",
            donation_amount=donation,
        )
        for donation in ("0", "5", "0")
    ]


def _statuses(db, tickets):
    for ticket in tickets:
        db.refresh(ticket)
    return [t.status for t in tickets]


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------

class TestClassify:
    def test_completed_and_paid(self):
        outcome = classify(CheckoutCompleted("evt_1", "cs_1", "paid"))
        assert (outcome.checkout_id, outcome.target_status) == ("cs_1", TicketStatus.paid)

    def test_completed_without_payment_yet(self):
        assert classify(CheckoutCompleted("evt_1", "cs_1", "unpaid")).target_status is None

    def test_no_payment_required_counts_as_paid(self):
        assert classify(CheckoutCompleted("evt_1", "cs_1", "no_payment_required")).target_status == TicketStatus.paid

    @pytest.mark.parametrize(
        "event,target",
        [
            (CheckoutAsyncPaymentSucceeded("evt_1", "cs_1"), TicketStatus.paid),
            (CheckoutAsyncPaymentFailed("evt_1", "cs_1"), TicketStatus.cancelled),
            (CheckoutExpired("evt_1", "cs_1"), TicketStatus.cancelled),
        ],
    )
    def test_session_events(self, event, target):
        assert classify(event).target_status == target

    def test_intent_events_carry_the_reference(self):
        outcome = classify(PaymentIntentFailed("evt_1", "pi_1", "ref-1"))
        assert outcome.checkout_id is None
        assert outcome.checkout_reference == "ref-1"
        assert outcome.target_status == TicketStatus.cancelled

    def test_unhandled(self):
        assert classify(UnhandledEvent("evt_1", "charge.refunded")).target_status is None


# ---------------------------------------------------------------------------
# reconcile_webhook
# ---------------------------------------------------------------------------

class TestReconcileWebhook:
    def test_completed_marks_every_ticket_paid(self, db, checkout, notifier):
        topics = MagicMock()

        result = reconcile_webhook(db, CheckoutCompleted("evt_1", "cs_test_1", "paid"), notifier, topics)

        assert result.changed
        assert len(result.updated_ticket_ids) == 3
        assert _statuses(db, checkout) == ["paid", "paid", "paid"]
        notified = notifier.notify_paid.call_args.args[0]
        assert sorted(t.id for t in notified) == sorted(t.id for t in checkout)
        topics.publish.assert_called_once_with(SLOTS_TOPIC)

    def test_duplicate_delivery_is_a_no_op(self, db, checkout, notifier):
        event = CheckoutCompleted("evt_1", "cs_test_1", "paid")

        reconcile_webhook(db, event, notifier)
        second = reconcile_webhook(db, event, notifier)

        assert not second.changed
        assert _statuses(db, checkout) == ["paid", "paid", "paid"]
        notifier.notify_paid.assert_called_once()

    def test_failure_after_success_keeps_tickets_paid(self, db, checkout, notifier):
        reconcile_webhook(db, CheckoutCompleted("evt_1", "cs_test_1", "paid"), notifier)

        for event in (
            CheckoutExpired("evt_2", "cs_test_1"),
            CheckoutAsyncPaymentFailed("evt_3", "cs_test_1"),
            PaymentIntentFailed("evt_4", "pi_1", "ref-1"),
        ):
            assert not reconcile_webhook(db, event, notifier).changed

        assert _statuses(db, checkout) == ["paid", "paid", "paid"]

    def test_expired_session_cancels_tickets(self, db, checkout, notifier):
        result = reconcile_webhook(db, CheckoutExpired("evt_1", "cs_test_1"), notifier)

        assert result.target_status == "cancelled"
        assert _statuses(db, checkout) == ["cancelled", "cancelled", "cancelled"]
        notifier.notify_paid.assert_not_called()

    def test_late_payment_after_cancel_is_left_alone(self, db, checkout, notifier, caplog):
        reconcile_webhook(db, CheckoutExpired("evt_1", "cs_test_1"), notifier)

        with caplog.at_level("WARNING"):
            result = reconcile_webhook(db, CheckoutAsyncPaymentSucceeded("evt_2", "cs_test_1"), notifier)

        assert not result.changed
        assert _statuses(db, checkout) == ["cancelled", "cancelled", "cancelled"]
        assert "manual refund" in caplog.text
        notifier.notify_paid.assert_not_called()

    def test_payment_intent_resolved_by_reference(self, db, checkout, notifier):
        result = reconcile_webhook(db, PaymentIntentSucceeded("evt_1", "pi_1", "ref-1"), notifier)

        assert result.checkout_id == "cs_test_1"
        assert _statuses(db, checkout) == ["paid", "paid", "paid"]

    def test_unknown_checkout_is_acknowledged(self, db, checkout, notifier):
        result = reconcile_webhook(db, PaymentIntentSucceeded("evt_1", "pi_1", "ref-unknown"), notifier)

        assert not result.changed
        assert result.checkout_id is None
        assert _statuses(db, checkout) == ["pending", "pending", "pending"]

    def test_unpaid_completion_waits(self, db, checkout, notifier):
        result = reconcile_webhook(db, CheckoutCompleted("evt_1", "cs_test_1", "unpaid"), notifier)

        assert not result.changed
        assert _statuses(db, checkout) == ["pending", "pending", "pending"]

    def test_only_rows_moved_by_this_event_are_notified(self, db, checkout, notifier):
        # A staff member cancelled one ticket before the payment arrived
        checkout[0].status = "cancelled"
        db.commit()

        result = reconcile_webhook(db, CheckoutCompleted("evt_1", "cs_test_1", "paid"), notifier)

        assert len(result.updated_ticket_ids) == 2
        notified = notifier.notify_paid.call_args.args[0]
        assert checkout[0].id not in {t.id for t in notified}
        assert sum(t.donation_amount for t in notified) == Decimal("5")


# ---------------------------------------------------------------------------
# Gift code purchases
# ---------------------------------------------------------------------------

class TestGiftCodePurchase:
    def test_paid_checkout_issues_the_pack_once(self, db, notifier):
        purchase = create_gift_code_purchase_row(db)
        event = CheckoutCompleted("evt_1", "cs_gift_1", "paid")

        first = reconcile_webhook(db, event, notifier)
        replay = reconcile_webhook(db, event, notifier)
        late_intent = reconcile_webhook(db, PaymentIntentSucceeded("evt_2", "pi_1", "ref-gift-1"), notifier)

        assert first.changed
        assert not replay.changed
        assert not late_intent.changed
        db.refresh(purchase)
        assert purchase.status == "paid"
        assert first.issued_pack_id == purchase.pack_id
        assert db.query(GiftCode).filter(GiftCode.pack_id == purchase.pack_id).count() == 3
        assert db.query(GiftCode).count() == 3
        notifier.send_gift_codes.assert_called_once()
        sent_purchase, sent_codes = notifier.send_gift_codes.call_args.args
        assert sent_purchase.checkout_id == "cs_gift_1"
        assert len(sent_codes) == 3
        notifier.notify_paid.assert_not_called()

    def test_intent_resolved_by_purchase_reference(self, db, notifier):
        create_gift_code_purchase_row(db)

        result = reconcile_webhook(db, PaymentIntentSucceeded("evt_1", "pi_1", "ref-gift-1"), notifier)

        assert result.checkout_id == "cs_gift_1"
        assert result.changed
        assert db.query(GiftCode).count() == 3

    def test_expired_checkout_cancels_and_late_payment_issues_nothing(self, db, notifier, caplog):
        purchase = create_gift_code_purchase_row(db)

        cancelled = reconcile_webhook(db, CheckoutExpired("evt_1", "cs_gift_1"), notifier)
        with caplog.at_level("WARNING"):
            late = reconcile_webhook(db, CheckoutAsyncPaymentSucceeded("evt_2", "cs_gift_1"), notifier)

        assert cancelled.changed
        assert not late.changed
        db.refresh(purchase)
        assert purchase.status == "cancelled"
        assert db.query(GiftCode).count() == 0
        assert "manual refund" in caplog.text
        notifier.send_gift_codes.assert_not_called()


# ---------------------------------------------------------------------------
# sync_checkout_status
# ---------------------------------------------------------------------------

class TestSyncCheckoutStatus:
    def test_complete_session_pays_tickets(self, db, checkout, provider, notifier):
        provider.get_checkout_session.return_value = CheckoutSessionState(
            session_id="cs_test_1",
            status=CheckoutSessionStatusEnum.COMPLETE,
            payment_status="paid",
        )

        result = run_async(sync_checkout_status(db, "cs_test_1", provider, notifier))

        assert result.changed
        assert _statuses(db, checkout) == ["paid", "paid", "paid"]

    def test_open_session_changes_nothing(self, db, checkout, provider, notifier):
        provider.get_checkout_session.return_value = CheckoutSessionState(
            session_id="cs_test_1",
            status=CheckoutSessionStatusEnum.OPEN,
            payment_status="unpaid",
        )

        result = run_async(sync_checkout_status(db, "cs_test_1", provider, notifier))

        assert not result.changed
        assert _statuses(db, checkout) == ["pending", "pending", "pending"]
