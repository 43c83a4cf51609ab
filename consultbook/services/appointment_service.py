import logging
from datetime import date, datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from consultbook.core.exceptions import InvalidState, NotFound, SlotConflict
from consultbook.core.metrics import APPOINTMENTS_BOOKED, SLOT_CONFLICTS
from consultbook.db.models import ACTIVE_STATUSES, Appointment, AppointmentStatus, HeldSlot
from consultbook.schemas.availability import SlotSelection
from consultbook.services.availability_service import (
    LOCK_CONFLICT_DETAIL,
    SLOT_TAKEN_DETAIL,
    ensure_slot_is_free,
    is_lock_not_available,
    lock_consultant,
)

logger = logging.getLogger(__name__)

IDEMPOTENCY_KEY_REUSE_DETAIL = "Idempotency key already used with another slot"
APPOINTMENT_NOT_FOUND_DETAIL = "Appointment not found"

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    AppointmentStatus.UPCOMING.value: frozenset(
        {
            AppointmentStatus.CONFIRMED.value,
            AppointmentStatus.COMPLETED.value,
            AppointmentStatus.CANCELLED.value,
        }
    ),
    AppointmentStatus.CONFIRMED.value: frozenset(
        {AppointmentStatus.COMPLETED.value, AppointmentStatus.CANCELLED.value}
    ),
    AppointmentStatus.COMPLETED.value: frozenset(),
    AppointmentStatus.CANCELLED.value: frozenset(),
}


def _get_appointment_by_idempotency_key(db: Session, client_id: int, idempotency_key: str) -> Appointment | None:
    return db.scalar(
        select(Appointment).where(
            Appointment.client_id == client_id,
            Appointment.idempotency_key == idempotency_key,
        )
    )


def _replay_idempotent_request(
    db: Session,
    consultant_id: int,
    client_id: int,
    selection: SlotSelection,
    idempotency_key: str,
) -> Appointment | None:
    existing = _get_appointment_by_idempotency_key(db, client_id, idempotency_key)
    if existing is None:
        return None
    same_slot = (
        existing.consultant_id == consultant_id
        and existing.date == selection.date
        and existing.start_time == selection.start_time
        and existing.end_time == selection.end_time
    )
    if not same_slot:
        raise SlotConflict(IDEMPOTENCY_KEY_REUSE_DETAIL)
    return existing


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.scalar(select(Appointment).where(Appointment.id == appointment_id))
    if not appointment:
        raise NotFound(APPOINTMENT_NOT_FOUND_DETAIL)
    return appointment


def create_appointment(
    db: Session,
    consultant_id: int,
    client_id: int,
    selection: SlotSelection,
    idempotency_key: str | None = None,
    reason: str = "",
    now: datetime | None = None,
) -> Appointment:
    """Confirm a booking. The slot is re-validated inside the same transaction that inserts it."""
    try:
        if idempotency_key:
            existing = _replay_idempotent_request(db, consultant_id, client_id, selection, idempotency_key)
            if existing:
                return existing

        lock_consultant(db, consultant_id)
        slot = ensure_slot_is_free(db, consultant_id, selection, viewer_id=client_id, now=now)

        appointment = Appointment(
            consultant_id=consultant_id,
            client_id=client_id,
            date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            status=AppointmentStatus.UPCOMING.value,
            reason=reason,
            idempotency_key=idempotency_key,
        )
        db.add(appointment)
        db.execute(
            delete(HeldSlot).where(
                HeldSlot.consultant_id == consultant_id,
                HeldSlot.holder_id == client_id,
                HeldSlot.date == slot.date,
                HeldSlot.start_time == slot.start_time,
            )
        )
        db.commit()
    except SlotConflict:
        db.rollback()
        SLOT_CONFLICTS.labels(operation="book").inc()
        logger.info(
            "booking_conflict consultant_id=%s client_id=%s date=%s start=%s",
            consultant_id,
            client_id,
            selection.date,
            selection.start_time,
        )
        raise
    except OperationalError as exc:
        db.rollback()
        if is_lock_not_available(exc):
            SLOT_CONFLICTS.labels(operation="book").inc()
            raise SlotConflict(LOCK_CONFLICT_DETAIL) from None
        raise
    except IntegrityError:
        db.rollback()
        if idempotency_key:
            existing = _replay_idempotent_request(db, consultant_id, client_id, selection, idempotency_key)
            if existing:
                return existing
        SLOT_CONFLICTS.labels(operation="book").inc()
        raise SlotConflict(SLOT_TAKEN_DETAIL) from None

    db.refresh(appointment)
    APPOINTMENTS_BOOKED.inc()
    logger.info(
        "appointment_booked appointment_id=%s consultant_id=%s date=%s start=%s",
        appointment.id,
        consultant_id,
        appointment.date,
        appointment.start_time,
    )
    return appointment


def change_status(db: Session, appointment: Appointment, new_status: AppointmentStatus | str) -> Appointment:
    target = new_status.value if isinstance(new_status, AppointmentStatus) else new_status
    if target not in ALLOWED_TRANSITIONS.get(appointment.status, frozenset()):
        raise InvalidState(f"Cannot change appointment status from {appointment.status} to {target}")

    if target == AppointmentStatus.CONFIRMED.value:
        appointment.confirm()
    elif target == AppointmentStatus.COMPLETED.value:
        appointment.complete()
    else:
        appointment.cancel()

    db.commit()
    db.refresh(appointment)
    logger.info("appointment_status_changed appointment_id=%s status=%s", appointment.id, appointment.status)
    return appointment


def reschedule_appointment(
    db: Session,
    appointment: Appointment,
    selection: SlotSelection,
    now: datetime | None = None,
) -> Appointment:
    if appointment.status not in ACTIVE_STATUSES:
        raise InvalidState(f"Cannot reschedule an appointment that is {appointment.status}")

    appointment_id = appointment.id
    consultant_id = appointment.consultant_id
    try:
        lock_consultant(db, consultant_id)
        slot = ensure_slot_is_free(
            db,
            consultant_id,
            selection,
            viewer_id=appointment.client_id,
            exclude_appointment_id=appointment_id,
            now=now,
        )
        appointment.move_to(slot.date, slot.start_time, slot.end_time)
        db.commit()
    except SlotConflict:
        db.rollback()
        SLOT_CONFLICTS.labels(operation="reschedule").inc()
        raise
    except OperationalError as exc:
        db.rollback()
        if is_lock_not_available(exc):
            SLOT_CONFLICTS.labels(operation="reschedule").inc()
            raise SlotConflict(LOCK_CONFLICT_DETAIL) from None
        raise
    except IntegrityError:
        db.rollback()
        SLOT_CONFLICTS.labels(operation="reschedule").inc()
        raise SlotConflict(SLOT_TAKEN_DETAIL) from None

    db.refresh(appointment)
    logger.info(
        "appointment_rescheduled appointment_id=%s date=%s start=%s",
        appointment_id,
        appointment.date,
        appointment.start_time,
    )
    return appointment


def list_active_appointments(db: Session, consultant_id: int, day: date) -> list[Appointment]:
    return list(
        db.scalars(
            select(Appointment)
            .where(
                Appointment.consultant_id == consultant_id,
                Appointment.date == day,
                Appointment.status.in_(ACTIVE_STATUSES),
            )
            .order_by(Appointment.start_time)
        ).all()
    )

