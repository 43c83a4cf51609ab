import logging
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from consultbook.db.models import ACTIVE_STATUSES, Appointment
from consultbook.db.session import SessionLocal
from consultbook.services.availability_service import local_now
from consultbook.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def complete_past_appointments(db: Session, now: datetime | None = None) -> int:
    current = local_now(now or datetime.now(UTC))
    today = current.date()
    current_hhmm = current.strftime("%H:%M")

    candidates = db.scalars(
        select(Appointment).where(
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.date <= today,
        )
    ).all()
    finished = [item for item in candidates if item.date < today or item.end_time <= current_hhmm]
    for appointment in finished:
        appointment.complete()

    if finished:
        db.commit()
        logger.info("appointments_auto_completed count=%s", len(finished))
    return len(finished)


@celery_app.task(name="appointments.complete_past")
def complete_past_appointments_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        return {"completed": complete_past_appointments(db=db)}
    finally:
        db.close()
