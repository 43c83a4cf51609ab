import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from consultbook.core.config import settings
from consultbook.core.exceptions import NotFound, SlotConflict
from consultbook.core.metrics import SLOT_CONFLICTS
from consultbook.db.models import HeldSlot, User
from consultbook.schemas.availability import SlotSelection
from consultbook.schemas.hold import HoldResponse
from consultbook.services.availability_service import (
    LOCK_CONFLICT_DETAIL,
    SLOT_TAKEN_DETAIL,
    ensure_slot_is_free,
    is_lock_not_available,
    lock_consultant,
)
from consultbook.services.booking_timer import BookingTimer

logger = logging.getLogger(__name__)

HOLD_NOT_FOUND_DETAIL = "Hold not found"


def get_hold(db: Session, hold_id: int) -> HeldSlot:
    hold = db.scalar(select(HeldSlot).where(HeldSlot.id == hold_id))
    if not hold:
        raise NotFound(HOLD_NOT_FOUND_DETAIL)
    return hold


def place_hold(
    db: Session,
    consultant_id: int,
    holder_id: int,
    selection: SlotSelection,
    now: datetime | None = None,
) -> HeldSlot:
    """Reserve a slot for ``holder_id`` for ``booking_hold_minutes``.

    A holder keeps at most one hold per consultant: placing a new one drops the previous.
    Checked and written under the same consultant lock as bookings.
    """
    current_time = (now or datetime.now(UTC)).astimezone(UTC)
    try:
        lock_consultant(db, consultant_id)
        slot = ensure_slot_is_free(db, consultant_id, selection, viewer_id=holder_id, now=current_time)

        db.execute(
            delete(HeldSlot).where(
                HeldSlot.consultant_id == consultant_id,
                or_(
                    HeldSlot.holder_id == holder_id,
                    and_(
                        HeldSlot.date == slot.date,
                        HeldSlot.start_time == slot.start_time,
                        HeldSlot.expires_at <= current_time,
                    ),
                ),
            )
        )
        hold = HeldSlot(
            consultant_id=consultant_id,
            holder_id=holder_id,
            date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            expires_at=current_time + timedelta(minutes=settings.booking_hold_minutes),
        )
        db.add(hold)
        db.commit()
    except SlotConflict:
        db.rollback()
        SLOT_CONFLICTS.labels(operation="hold").inc()
        raise
    except OperationalError as exc:
        db.rollback()
        if is_lock_not_available(exc):
            SLOT_CONFLICTS.labels(operation="hold").inc()
            raise SlotConflict(LOCK_CONFLICT_DETAIL) from None
        raise
    except IntegrityError:
        db.rollback()
        SLOT_CONFLICTS.labels(operation="hold").inc()
        raise SlotConflict(SLOT_TAKEN_DETAIL) from None

    db.refresh(hold)
    logger.info(
        "slot_held hold_id=%s consultant_id=%s date=%s start=%s",
        hold.id,
        consultant_id,
        hold.date,
        hold.start_time,
    )
    return hold


def release_hold(db: Session, hold: HeldSlot) -> None:
    db.delete(hold)
    db.commit()


def can_manage_hold(hold: HeldSlot, user: User) -> bool:
    return user.is_admin or hold.holder_id == user.id


def sweep_expired_holds(db: Session, now: datetime | None = None) -> int:
    current_time = (now or datetime.now(UTC)).astimezone(UTC)
    result = db.execute(delete(HeldSlot).where(HeldSlot.expires_at <= current_time))
    db.commit()
    if result.rowcount:
        logger.info("expired_holds_swept count=%s", result.rowcount)
    return result.rowcount or 0


def describe_hold(hold: HeldSlot, now: datetime | None = None) -> HoldResponse:
    timer = BookingTimer(hold.expires_at, on_expire=lambda: None, clock=lambda: now or datetime.now(UTC))
    remaining = timer.tick()
    return HoldResponse(
        id=hold.id,
        consultant_id=hold.consultant_id,
        holder_id=hold.holder_id,
        date=hold.date,
        start_time=hold.start_time,
        end_time=hold.end_time,
        expires_at=timer.expires_at,
        remaining_seconds=int(remaining),
        time_left=timer.display(),
        is_urgent=timer.is_urgent,
        expired=remaining <= 0,
    )
