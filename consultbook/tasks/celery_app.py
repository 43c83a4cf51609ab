from datetime import timedelta

from celery import Celery

from consultbook.core.config import settings

celery_app = Celery(
    "consultbook",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["consultbook.tasks.holds", "consultbook.tasks.completions", "consultbook.tasks.reminders"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.app_timezone,
    enable_utc=True,
    beat_schedule={
        "sweep-expired-holds": {
            "task": "holds.sweep_expired",
            "schedule": timedelta(minutes=settings.celery_hold_sweep_interval_minutes),
        },
        "complete-past-appointments": {
            "task": "appointments.complete_past",
            "schedule": timedelta(minutes=settings.celery_completion_interval_minutes),
        },
        "remind-upcoming-appointments": {
            "task": "appointments.remind_upcoming",
            "schedule": timedelta(minutes=settings.celery_reminder_interval_minutes),
        },
    },
)
