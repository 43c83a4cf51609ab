import logging
from datetime import UTC, date, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from consultbook.core.config import settings
from consultbook.core.exceptions import NotFound, SlotConflict
from consultbook.db.models import ACTIVE_STATUSES, Appointment, ConsultantAvailability, ConsultantProfile, HeldSlot
from consultbook.schemas.availability import (
    WEEKDAYS,
    AvailabilityDocument,
    BookableSlot,
    SessionSettings,
    SlotSelection,
    TimeOffPeriod,
    TimeRange,
    WorkingHoursConfig,
)
from consultbook.services.availability_engine import (
    filter_available,
    find_slot,
    generate_slots,
    is_time_off,
    parse_hhmm,
    validate_availability,
)

logger = logging.getLogger(__name__)

CONSULTANT_NOT_FOUND_DETAIL = "Consultant not found"
SLOT_NOT_OFFERED_DETAIL = "Requested slot is not offered by this consultant"
SLOT_TAKEN_DETAIL = "Slot no longer available, please choose another"
SLOT_TOO_SOON_DETAIL = "Slot starts too soon to be booked"
LOCK_CONFLICT_DETAIL = "Slot booking is in progress. Retry the request."
PG_LOCK_NOT_AVAILABLE_SQLSTATE = "55P03"


def local_now(now: datetime | None = None) -> datetime:
    current_time = now or datetime.now(UTC)
    if current_time.tzinfo is None:
        current_time = current_time.replace(tzinfo=UTC)
    return current_time.astimezone(ZoneInfo(settings.app_timezone))


def get_consultant(db: Session, consultant_id: int) -> ConsultantProfile:
    consultant = db.scalar(select(ConsultantProfile).where(ConsultantProfile.id == consultant_id))
    if not consultant:
        raise NotFound(CONSULTANT_NOT_FOUND_DETAIL)
    return consultant


def _is_postgresql_session(db: Session) -> bool:
    bind = db.get_bind()
    return bind is not None and bind.dialect.name == "postgresql"


def is_lock_not_available(exc: OperationalError) -> bool:
    original_error = getattr(exc, "orig", None)
    if original_error is None:
        return False

    sqlstate = getattr(original_error, "sqlstate", None)
    if sqlstate is None:
        sqlstate = getattr(original_error, "pgcode", None)

    return sqlstate == PG_LOCK_NOT_AVAILABLE_SQLSTATE


def lock_consultant(db: Session, consultant_id: int) -> ConsultantProfile:
    """Serialize writers of one consultant's calendar. PostgreSQL only; other backends rely on unique indexes."""
    query = select(ConsultantProfile).where(ConsultantProfile.id == consultant_id)
    if _is_postgresql_session(db):
        query = query.with_for_update(nowait=True)
    consultant = db.scalar(query)
    if not consultant:
        raise NotFound(CONSULTANT_NOT_FOUND_DETAIL)
    return consultant


def normalize_working_hours(raw: dict[str, Any] | None) -> dict[str, Any]:
    """Bring a stored working-hours document to the multi-range shape.

    Days saved as a single ``{"start", "end"}`` pair become a one-element
    ``slots`` list. Missing days are left out so the defaults apply.
    """
    normalized: dict[str, Any] = {}
    for weekday in WEEKDAYS:
        day = (raw or {}).get(weekday)
        if not isinstance(day, dict):
            continue
        slots = day.get("slots")
        if slots is None and day.get("start") and day.get("end"):
            slots = [{"start": day["start"], "end": day["end"]}]
        normalized[weekday] = {"enabled": bool(day.get("enabled", False)), "slots": slots or []}
    return normalized


def _document_from_row(row: ConsultantAvailability) -> AvailabilityDocument:
    return AvailabilityDocument(
        working_hours=WorkingHoursConfig.model_validate(normalize_working_hours(row.working_hours)),
        session_settings=SessionSettings(
            default_duration_minutes=row.default_duration_minutes,
            buffer_minutes=row.buffer_minutes,
            max_sessions_per_day=row.max_sessions_per_day,
        ),
        time_off=[TimeOffPeriod.model_validate(item) for item in row.time_off or []],
    )


def load_availability(db: Session, consultant_id: int) -> tuple[AvailabilityDocument, bool]:
    """Return the consultant's availability and whether it is the built-in default."""
    get_consultant(db, consultant_id)
    row = db.scalar(select(ConsultantAvailability).where(ConsultantAvailability.consultant_id == consultant_id))
    if row is None:
        return AvailabilityDocument(), True
    return _document_from_row(row), False


def save_availability(db: Session, consultant_id: int, document: AvailabilityDocument) -> AvailabilityDocument:
    get_consultant(db, consultant_id)
    validate_availability(document.working_hours, document.session_settings, document.time_off)

    row = db.scalar(select(ConsultantAvailability).where(ConsultantAvailability.consultant_id == consultant_id))
    if row is None:
        row = ConsultantAvailability(consultant_id=consultant_id)
        db.add(row)

    row.working_hours = document.working_hours.model_dump(mode="json")
    row.default_duration_minutes = document.session_settings.default_duration_minutes
    row.buffer_minutes = document.session_settings.buffer_minutes
    row.max_sessions_per_day = document.session_settings.max_sessions_per_day
    row.time_off = [period.model_dump(mode="json") for period in document.time_off]
    db.commit()
    db.refresh(row)
    logger.info("availability_saved consultant_id=%s", consultant_id)
    return _document_from_row(row)


def offered_slots(document: AvailabilityDocument, day: date) -> list[BookableSlot]:
    if is_time_off(day, document.time_off):
        return []
    return generate_slots(document.working_hours, document.session_settings, day)


def busy_intervals(
    db: Session,
    consultant_id: int,
    day: date,
    viewer_id: int | None = None,
    exclude_appointment_id: int | None = None,
    now: datetime | None = None,
) -> list[TimeRange]:
    """Intervals of ``day`` taken by active appointments or by other users' unexpired holds."""
    current_time = now or datetime.now(UTC)

    appointment_query = select(Appointment.start_time, Appointment.end_time).where(
        Appointment.consultant_id == consultant_id,
        Appointment.date == day,
        Appointment.status.in_(ACTIVE_STATUSES),
    )
    if exclude_appointment_id is not None:
        appointment_query = appointment_query.where(Appointment.id != exclude_appointment_id)

    hold_query = select(HeldSlot.start_time, HeldSlot.end_time).where(
        HeldSlot.consultant_id == consultant_id,
        HeldSlot.date == day,
        HeldSlot.expires_at > current_time.astimezone(UTC),
    )
    if viewer_id is not None:
        hold_query = hold_query.where(HeldSlot.holder_id != viewer_id)

    rows = [*db.execute(appointment_query).all(), *db.execute(hold_query).all()]
    return [TimeRange(start=start_time, end=end_time) for start_time, end_time in rows]


def _starts_after_lead_time(slot: BookableSlot, now: datetime) -> bool:
    earliest = local_now(now) + timedelta(minutes=settings.booking_min_lead_minutes)
    if slot.date != earliest.date():
        return slot.date > earliest.date()
    return parse_hhmm(slot.start_time) >= earliest.hour * 60 + earliest.minute


def get_bookable_slots(
    db: Session,
    consultant_id: int,
    day: date,
    viewer_id: int | None = None,
    now: datetime | None = None,
) -> list[BookableSlot]:
    current_time = now or datetime.now(UTC)
    document, _ = load_availability(db, consultant_id)
    candidates = [slot for slot in offered_slots(document, day) if _starts_after_lead_time(slot, current_time)]
    if not candidates:
        return []
    busy = busy_intervals(db, consultant_id, day, viewer_id=viewer_id, now=current_time)
    return filter_available(candidates, busy)


def ensure_slot_is_free(
    db: Session,
    consultant_id: int,
    selection: SlotSelection,
    viewer_id: int | None = None,
    exclude_appointment_id: int | None = None,
    now: datetime | None = None,
) -> BookableSlot:
    """Re-validate a requested slot at write time. Raises ``SlotConflict`` when it cannot be taken."""
    current_time = now or datetime.now(UTC)
    document, _ = load_availability(db, consultant_id)
    slot = find_slot(offered_slots(document, selection.date), selection.start_time, selection.end_time)
    if slot is None:
        raise SlotConflict(SLOT_NOT_OFFERED_DETAIL)
    if not _starts_after_lead_time(slot, current_time):
        raise SlotConflict(SLOT_TOO_SOON_DETAIL)

    busy = busy_intervals(
        db,
        consultant_id,
        selection.date,
        viewer_id=viewer_id,
        exclude_appointment_id=exclude_appointment_id,
        now=current_time,
    )
    if not filter_available([slot], busy):
        raise SlotConflict(SLOT_TAKEN_DETAIL)
    return slot
