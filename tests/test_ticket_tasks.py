"""
Tests for the periodic expiry jobs and their scheduler wiring.
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

from app.background_tasks.ticket_tasks import (
    cancel_expired_pending_tickets,
    expire_stale_gift_codes,
)
from app.core.pubsub import SLOTS_TOPIC
from app.utils.clock import utcnow
from tests.utils.factories import create_gift_code_row, create_ticket_row, minutes_ago


class TestCancelExpiredPendingTickets:
    def test_cancels_tickets_past_the_grace_period(self, db, session_factory):
        old = create_ticket_row(db, status="pending", created_at=minutes_ago(20))
        fresh = create_ticket_row(db, status="pending", created_at=minutes_ago(5))
        topics = MagicMock()

        count = cancel_expired_pending_tickets(topics, grace_minutes=15, session_factory=session_factory)

        assert count == 1
        db.refresh(old)
        db.refresh(fresh)
        assert (old.status, fresh.status) == ("cancelled", "pending")
        topics.publish.assert_called_once_with(SLOTS_TOPIC)

    def test_nothing_to_cancel_publishes_nothing(self, db, session_factory):
        topics = MagicMock()

        assert cancel_expired_pending_tickets(topics, session_factory=session_factory) == 0
        topics.publish.assert_not_called()

    def test_errors_are_swallowed_and_logged(self):
        db = MagicMock()
        with patch(
            "app.background_tasks.ticket_tasks.ticket_crud.cancel_expired_pending",
            side_effect=RuntimeError("connection lost"),
        ):
            assert cancel_expired_pending_tickets(session_factory=lambda: db) == 0

        db.rollback.assert_called_once()
        db.close.assert_called_once()


class TestExpireStaleGiftCodes:
    def test_expires_past_codes(self, db, session_factory):
        create_gift_code_row(db, expires_at=utcnow() - timedelta(days=1))
        create_gift_code_row(db)

        assert expire_stale_gift_codes(session_factory=session_factory) == 1

    def test_errors_return_zero(self):
        db = MagicMock()
        with patch(
            "app.background_tasks.ticket_tasks.gift_code_service.expire_stale",
            side_effect=RuntimeError("boom"),
        ):
            assert expire_stale_gift_codes(session_factory=lambda: db) == 0
        db.close.assert_called_once()


class TestScheduler:
    def test_jobs_are_registered(self):
        from app import scheduler as scheduler_module

        topics = MagicMock()
        with patch.object(scheduler_module, "BackgroundScheduler") as scheduler_cls:
            instance = scheduler_cls.return_value
            instance.running = False
            scheduler_module.init_scheduler(topics)

        job_ids = [c.kwargs["id"] for c in instance.add_job.call_args_list]
        assert job_ids == ["cancel_expired_pending_tickets", "expire_stale_gift_codes"]
        sweep_call = instance.add_job.call_args_list[0]
        assert sweep_call.kwargs["kwargs"] == {"topics": topics}
        instance.start.assert_called_once()
        scheduler_module.scheduler = None
