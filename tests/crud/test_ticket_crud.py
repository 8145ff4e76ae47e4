"""
Tests for CRUDTicket against an in-memory database.

The conditional updates are what keeps capacity, payment reconciliation and
door scans consistent, so they are exercised with real rows.
"""

from datetime import date, time, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from app.crud.ticket_crud import ticket_crud
from app.utils.clock import utcnow
from tests.utils.factories import create_ticket_row, minutes_ago

VISIT = date(2026, 6, 10)


# ---------------------------------------------------------------------------
# Capacity counting
# ---------------------------------------------------------------------------

class TestCountOverlapping:
    def test_strict_interval_overlap(self, db):
        create_ticket_row(db, reservation_date=VISIT, slot_start_time=time(13, 0), slot_end_time=time(15, 0))
        create_ticket_row(db, reservation_date=VISIT, slot_start_time=time(14, 0), slot_end_time=time(15, 0))
        # Touching the slot end does not overlap
        create_ticket_row(db, reservation_date=VISIT, slot_start_time=time(15, 0), slot_end_time=time(16, 0))
        create_ticket_row(db, reservation_date=VISIT, slot_start_time=time(16, 0), slot_end_time=time(18, 0))
        create_ticket_row(db, reservation_date=VISIT, slot_start_time=time(16, 0), slot_end_time=time(16, 30))

        assert ticket_crud.count_overlapping(db, VISIT, time(14, 0), time(15, 0)) == 2
        assert ticket_crud.count_overlapping(db, VISIT, time(16, 0), time(17, 0)) == 2

    def test_only_pending_and_paid_hold_a_seat(self, db):
        for status in ("pending", "paid", "cancelled", "used", "expired"):
            create_ticket_row(db, reservation_date=VISIT, status=status)

        assert ticket_crud.count_overlapping(db, VISIT, time(14, 0), time(15, 0)) == 2

    def test_other_dates_are_ignored(self, db):
        create_ticket_row(db, reservation_date=VISIT + timedelta(days=1))
        assert ticket_crud.count_overlapping(db, VISIT, time(14, 0), time(15, 0)) == 0

    def test_unique_booked_counts_each_ticket_once(self, db):
        create_ticket_row(db, reservation_date=VISIT, slot_start_time=time(10, 0), slot_end_time=time(13, 0))
        create_ticket_row(db, reservation_date=VISIT, status="cancelled")
        assert ticket_crud.count_unique_booked(db, VISIT) == 1


# ---------------------------------------------------------------------------
# Conditional transitions
# ---------------------------------------------------------------------------

class TestTransitionCheckout:
    def test_moves_only_pending_rows(self, db):
        pending = [create_ticket_row(db, status="pending", checkout_id="cs_1") for _ in range(2)]
        create_ticket_row(db, status="cancelled", checkout_id="cs_1")
        create_ticket_row(db, status="pending", checkout_id="cs_other")

        updated = ticket_crud.transition_checkout(db, "cs_1", "paid", "paid")

        assert sorted(updated) == sorted(t.id for t in pending)
        assert ticket_crud.count_by_checkout_and_status(db, "cs_1", "paid") == 2
        assert ticket_crud.count_by_checkout_and_status(db, "cs_other", "pending") == 1

    def test_replay_updates_nothing(self, db):
        create_ticket_row(db, status="pending", checkout_id="cs_1")

        assert len(ticket_crud.transition_checkout(db, "cs_1", "paid")) == 1
        assert ticket_crud.transition_checkout(db, "cs_1", "paid") == []
        assert ticket_crud.transition_checkout(db, "cs_1", "cancelled") == []

    def test_records_transaction_status(self, db):
        ticket = create_ticket_row(db, status="pending", checkout_id="cs_1", transaction_status="open")

        ticket_crud.transition_checkout(db, "cs_1", "cancelled", "expired")
        db.refresh(ticket)

        assert ticket.status == "cancelled"
        assert ticket.transaction_status == "expired"


class TestMarkUsed:
    def test_paid_ticket_is_used_once(self, db):
        ticket = create_ticket_row(db, status="paid")

        assert ticket_crud.mark_used(db, ticket.id, utcnow()) is True
        assert ticket_crud.mark_used(db, ticket.id, utcnow()) is False

        db.refresh(ticket)
        assert ticket.status == "used"
        assert ticket.used_at is not None

    def test_pending_ticket_is_not_used(self, db):
        ticket = create_ticket_row(db, status="pending")
        assert ticket_crud.mark_used(db, ticket.id, utcnow()) is False


class TestCancelExpiredPending:
    def test_cancels_only_old_pending(self, db):
        old = create_ticket_row(db, status="pending", created_at=minutes_ago(20))
        fresh = create_ticket_row(db, status="pending", created_at=minutes_ago(5))
        paid = create_ticket_row(db, status="paid", created_at=minutes_ago(60))

        count = ticket_crud.cancel_expired_pending(db, minutes_ago(15))

        assert count == 1
        for ticket in (old, fresh, paid):
            db.refresh(ticket)
        assert (old.status, fresh.status, paid.status) == ("cancelled", "pending", "paid")


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

class TestLookups:
    def test_checkout_id_by_reference(self, db):
        create_ticket_row(db, status="pending", checkout_id="cs_1", checkout_reference="ref-1")

        assert ticket_crud.get_checkout_id_by_reference(db, "ref-1") == "cs_1"
        assert ticket_crud.get_checkout_id_by_reference(db, "ref-unknown") is None

    def test_search_and_filters(self, db):
        create_ticket_row(db, last_name="Curie", status="paid")
        create_ticket_row(db, last_name="Noether", status="pending")

        tickets, total = ticket_crud.get_multi_filtered(db, search="curie")
        assert total == 1
        assert tickets[0].last_name == "Curie"

        tickets, total = ticket_crud.get_multi_filtered(db, status="pending")
        assert [t.last_name for t in tickets] == ["Noether"]


# ---------------------------------------------------------------------------
# Table constraints
# ---------------------------------------------------------------------------

class TestConstraints:
    def test_total_must_equal_price_plus_donation(self, db):
        with pytest.raises(IntegrityError):
            create_ticket_row(db, ticket_price="10", donation_amount="5", total_amount=Decimal("10"))
        db.rollback()

    def test_unknown_status_is_rejected(self, db):
        with pytest.raises(IntegrityError):
            create_ticket_row(db, status="refunded")
        db.rollback()
