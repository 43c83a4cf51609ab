import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from consultbook.core.config import settings
from consultbook.db.models import ACTIVE_STATUSES, Appointment
from consultbook.db.session import SessionLocal
from consultbook.services.availability_service import local_now
from consultbook.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def send_due_reminders(db: Session, now: datetime | None = None) -> int:
    """Flag active appointments starting within the lookahead window and log one reminder each."""
    current = local_now(now or datetime.now(UTC))
    window_end = current + timedelta(minutes=settings.reminder_lookahead_minutes)
    current_key = (current.date(), current.strftime("%H:%M"))
    window_key = (window_end.date(), window_end.strftime("%H:%M"))

    candidates = db.scalars(
        select(Appointment).where(
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.reminder_sent.is_(False),
            Appointment.date >= current.date(),
            Appointment.date <= window_end.date(),
        )
    ).all()

    due = [item for item in candidates if current_key <= (item.date, item.start_time) <= window_key]
    for appointment in due:
        appointment.reminder_sent = True
        logger.info(
            "appointment_reminder appointment_id=%s client_id=%s consultant_id=%s start=%s %s",
            appointment.id,
            appointment.client_id,
            appointment.consultant_id,
            appointment.date,
            appointment.start_time,
        )

    if due:
        db.commit()
    return len(due)


@celery_app.task(name="appointments.remind_upcoming")
def remind_upcoming_appointments_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        return {"reminded": send_due_reminders(db=db)}
    finally:
        db.close()
