"""APScheduler configuration for the audit outbox relay."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from gradebook.core.config import settings
from gradebook.core.database import SessionLocal
from gradebook.services.audit import AuditEmitter

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None


def get_db_session() -> Session:
    """Get a database session for scheduler jobs."""
    return SessionLocal()


def relay_audit_outbox_job():
    """Deliver pending audit events staged by committed transactions."""
    db = get_db_session()
    try:
        result = AuditEmitter(db).dispatch_pending(settings.AUDIT_RELAY_BATCH_SIZE)
        db.commit()
        if result.delivered or result.failed:
            logger.info(
                f"Audit relay pass: {result.delivered} delivered, {result.failed} failed"
            )
    except Exception as e:
        logger.exception(f"Error relaying audit outbox: {e}")
        db.rollback()
    finally:
        db.close()


def queue_audit_relay(background_tasks: BackgroundTasks) -> None:
    """Relay staged audit events once the current request has finished."""
    if settings.AUDIT_DISPATCH_ON_REQUEST:
        background_tasks.add_task(relay_audit_outbox_job)


def init_scheduler() -> AsyncIOScheduler:
    """Initialize and configure the scheduler."""
    global scheduler

    scheduler = AsyncIOScheduler(
        job_defaults={
            "coalesce": True,  # Combine missed runs
            "max_instances": 1,
            "misfire_grace_time": 60,
        }
    )

    scheduler.add_job(
        relay_audit_outbox_job,
        trigger=IntervalTrigger(seconds=settings.AUDIT_RELAY_INTERVAL_SECONDS),
        id="relay_audit_outbox",
        name="Relay audit outbox",
        replace_existing=True,
    )

    logger.info(
        f"Scheduler initialized with audit relay every {settings.AUDIT_RELAY_INTERVAL_SECONDS}s"
    )
    return scheduler


def start_scheduler():
    """Start the scheduler unless the relay is disabled."""
    global scheduler
    if settings.AUDIT_RELAY_INTERVAL_SECONDS <= 0:
        logger.info("Audit relay disabled")
        return

    if scheduler is None:
        scheduler = init_scheduler()

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")


def relay_status() -> str:
    """State of the periodic relay as reported by /health."""
    if settings.AUDIT_RELAY_INTERVAL_SECONDS <= 0:
        return "disabled"
    return "running" if scheduler and scheduler.running else "stopped"
