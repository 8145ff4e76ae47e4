# app/background_tasks/ticket_tasks.py
"""
Background tasks for reservation and gift code expiry.
"""
import logging
from datetime import timedelta
from typing import Optional

from app.core.config import settings
from app.core.pubsub import SLOTS_TOPIC, TopicRegistry
from app.crud.ticket_crud import ticket_crud
from app.db.session import SessionLocal
from app.services.ticket_management.gift_code_service import gift_code_service
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


def cancel_expired_pending_tickets(
    topics: Optional[TopicRegistry] = None,
    grace_minutes: Optional[int] = None,
    session_factory=SessionLocal,
) -> int:
    """
    Background task: cancel pending tickets whose checkout was never completed.

    A ticket still pending ``grace_minutes`` after creation gives its seat
    back. Errors are logged and the next run tries again.

    Returns: Number of tickets cancelled
    """
    grace = grace_minutes if grace_minutes is not None else settings.PENDING_TICKET_GRACE_MINUTES
    db = session_factory()
    try:
        cutoff = utcnow() - timedelta(minutes=grace)
        count = ticket_crud.cancel_expired_pending(db, cutoff)

        if count > 0:
            logger.info(f"Cancelled {count} pending tickets older than {grace} minutes")
            if topics:
                topics.publish(SLOTS_TOPIC)

        return count

    except Exception as e:
        db.rollback()
        logger.error(f"Error in cancel_expired_pending_tickets task: {str(e)}")
        return 0

    finally:
        db.close()


def expire_stale_gift_codes(session_factory=SessionLocal) -> int:
    """
    Background task: mark unused gift codes past their expiry date as expired.

    Validation already expires codes lazily; this keeps listings accurate.

    Returns: Number of codes expired
    """
    db = session_factory()
    try:
        count = gift_code_service.expire_stale(db)

        if count > 0:
            logger.info(f"Expired {count} stale gift codes")

        return count

    except Exception as e:
        db.rollback()
        logger.error(f"Error in expire_stale_gift_codes task: {str(e)}")
        return 0

    finally:
        db.close()
