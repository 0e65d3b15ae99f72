"""Celery tasks running the reminder scan passes."""
import asyncio
import logging

from app.database import build_engine, build_session_factory
from app.services.reminder_service import ReminderService, build_reminder_service
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def run_pass(kind: str, service: ReminderService = None, session_factory=None) -> dict:
    """Run one pass with a fresh engine; each task invocation owns its own event loop."""
    service = service or build_reminder_service()
    engine = None
    if session_factory is None:
        engine = build_engine()
        session_factory = build_session_factory(engine)

    runners = {
        "reminder": service.run_reminder_pass,
        "overdue": service.run_overdue_pass,
        "recurrence": service.run_recurrence_pass,
    }
    try:
        async with session_factory() as db:
            report = await runners[kind](db)
        return report.as_dict()
    finally:
        if engine is not None:
            await engine.dispose()


def _run(kind: str) -> dict:
    try:
        return asyncio.run(run_pass(kind))
    except Exception:
        logger.exception("%s pass aborted", kind)
        raise


@celery_app.task
def send_due_reminders():
    """Send reminders coming due (called by Celery Beat)."""
    return _run("reminder")


@celery_app.task
def send_overdue_alerts():
    """Alert owners of overdue todos (called by Celery Beat)."""
    return _run("overdue")


@celery_app.task
def spawn_recurring_todos():
    """Create next occurrences of recurring todos (called by Celery Beat)."""
    return _run("recurrence")
