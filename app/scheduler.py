# app/scheduler.py
"""
Background task scheduler.

Uses APScheduler to run periodic background jobs for:
- Cancelling abandoned pending tickets (reclaims slot capacity)
- Expiring stale gift codes
"""

import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED

from app.background_tasks.ticket_tasks import (
    cancel_expired_pending_tickets,
    expire_stale_gift_codes,
)
from app.core.config import settings
from app.core.pubsub import TopicRegistry

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


def _on_job_error(event):
    """Log scheduler job errors with full context."""
    exc = event.exception
    logger.error(
        "Scheduled job FAILED: job_id=%s error=%s",
        event.job_id, exc,
        exc_info=(type(exc), exc, None) if exc else None,
    )
    if event.traceback:
        logger.error("Traceback for job %s:\n%s", event.job_id, event.traceback)


def _on_job_missed(event):
    """Log when a scheduled job misses its execution window."""
    logger.warning(
        "Scheduled job MISSED: job_id=%s scheduled_run_time=%s",
        event.job_id,
        event.scheduled_run_time,
    )


def init_scheduler(topics: Optional[TopicRegistry] = None):
    """
    Initialize the background scheduler with all periodic tasks.

    This is called once when the application starts up.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already initialized")
        return scheduler

    scheduler = BackgroundScheduler(
        timezone="UTC",
        job_defaults={
            'coalesce': True,  # Combine missed executions
            'max_instances': 1,  # Only one instance of each job at a time
            'misfire_grace_time': 60
        }
    )

    # Job 1: Cancel pending tickets past the grace window
    sweep_minutes = settings.EXPIRY_SWEEP_INTERVAL_MINUTES
    scheduler.add_job(
        func=cancel_expired_pending_tickets,
        trigger=IntervalTrigger(minutes=sweep_minutes),
        kwargs={"topics": topics},
        id='cancel_expired_pending_tickets',
        name='Cancel Expired Pending Tickets',
        replace_existing=True
    )
    logger.info(
        f"Scheduled job: cancel_expired_pending_tickets (every {sweep_minutes} minutes, "
        f"grace {settings.PENDING_TICKET_GRACE_MINUTES} minutes)"
    )

    # Job 2: Expire gift codes past their expiry date
    gift_minutes = settings.GIFT_CODE_EXPIRY_INTERVAL_MINUTES
    scheduler.add_job(
        func=expire_stale_gift_codes,
        trigger=IntervalTrigger(minutes=gift_minutes),
        id='expire_stale_gift_codes',
        name='Expire Stale Gift Codes',
        replace_existing=True
    )
    logger.info(f"Scheduled job: expire_stale_gift_codes (every {gift_minutes} minutes)")

    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_listener(_on_job_missed, EVENT_JOB_MISSED)

    scheduler.start()
    logger.info("Background scheduler started")
    return scheduler


def shutdown_scheduler():
    """Stop the scheduler (application shutdown)."""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Background scheduler stopped")


def get_scheduler_status() -> dict:
    """Scheduler state for the health endpoint."""
    if scheduler is None:
        return {"running": False, "jobs": []}

    return {
        "running": scheduler.running,
        "jobs": [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in scheduler.get_jobs()
        ],
    }
