"""Celery application and beat schedule for the reminder passes."""
from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from app.config import settings

celery_app = Celery(
    "tradehub",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.reminders"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "send-due-reminders": {
        "task": "app.tasks.reminders.send_due_reminders",
        "schedule": float(settings.REMINDER_SCAN_INTERVAL_SECONDS),
    },
    "send-overdue-alerts": {
        "task": "app.tasks.reminders.send_overdue_alerts",
        "schedule": float(settings.OVERDUE_SCAN_INTERVAL_SECONDS),
    },
    "spawn-recurring-todos": {
        "task": "app.tasks.reminders.spawn_recurring_todos",
        "schedule": float(settings.RECURRENCE_SCAN_INTERVAL_SECONDS),
    },
}


@celery_setup_logging.connect
def _configure_worker_logging(**kwargs):
    from app.core.logging import setup_logging

    setup_logging()
