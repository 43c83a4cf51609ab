from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from consultbook.api.deps import FORBIDDEN_DETAIL, get_current_user, require_roles
from consultbook.api.pagination import LimitParam, OffsetParam
from consultbook.db.models import Appointment, AppointmentStatus, ConsultantProfile, User, UserRole
from consultbook.db.session import get_db
from consultbook.schemas.appointment import (
    AppointmentCreateRequest,
    AppointmentRescheduleRequest,
    AppointmentResponse,
    AppointmentStatusRequest,
    ConsultantAppointmentResponse,
)
from consultbook.schemas.availability import SlotSelection
from consultbook.services.appointment_service import (
    change_status,
    create_appointment,
    get_appointment,
    reschedule_appointment,
)

router = APIRouter(prefix="/appointments", tags=["appointments"])

CONSULTANT_ONLY_STATUSES = {AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED}


def _normalize_idempotency_key(idempotency_key: str | None) -> str | None:
    if idempotency_key is None:
        return None
    normalized = idempotency_key.strip()
    if not normalized:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Idempotency-Key header must not be empty",
        )
    if len(normalized) > 128:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Idempotency-Key header is too long (max 128 characters)",
        )
    return normalized


def _is_consultant_owner(db: Session, appointment: Appointment, user: User) -> bool:
    consultant = db.scalar(select(ConsultantProfile).where(ConsultantProfile.id == appointment.consultant_id))
    return consultant is not None and consultant.user_id == user.id


def _ensure_participant(db: Session, appointment: Appointment, user: User) -> None:
    if user.is_admin or appointment.client_id == user.id:
        return
    if not _is_consultant_owner(db, appointment, user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_DETAIL)


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    payload: AppointmentCreateRequest,
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
    current_user: User = Depends(require_roles(UserRole.CLIENT, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> AppointmentResponse:
    appointment = create_appointment(
        db=db,
        consultant_id=payload.consultant_id,
        client_id=current_user.id,
        selection=SlotSelection(date=payload.date, start_time=payload.start_time, end_time=payload.end_time),
        idempotency_key=_normalize_idempotency_key(idempotency_key),
        reason=payload.reason,
    )
    return AppointmentResponse.model_validate(appointment)


@router.get("/me", response_model=list[AppointmentResponse], status_code=status.HTTP_200_OK)
def list_my_appointments(
    status_filter: AppointmentStatus | None = Query(default=None, alias="status"),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[AppointmentResponse]:
    query = select(Appointment).where(Appointment.client_id == current_user.id)
    if status_filter:
        query = query.where(Appointment.status == status_filter.value)
    if date_from:
        query = query.where(Appointment.date >= date_from)
    if date_to:
        query = query.where(Appointment.date <= date_to)

    appointments = db.scalars(
        query.order_by(Appointment.date, Appointment.start_time, Appointment.id).limit(limit).offset(offset)
    ).all()
    return [AppointmentResponse.model_validate(appointment) for appointment in appointments]


@router.get(
    "/consultants/me",
    response_model=list[ConsultantAppointmentResponse],
    status_code=status.HTTP_200_OK,
)
def list_consultant_appointments(
    status_filter: AppointmentStatus | None = Query(default=None, alias="status"),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    current_user: User = Depends(require_roles(UserRole.CONSULTANT)),
    db: Session = Depends(get_db),
) -> list[ConsultantAppointmentResponse]:
    profile = db.scalar(select(ConsultantProfile).where(ConsultantProfile.user_id == current_user.id))
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consultant profile not found")

    query = (
        select(Appointment, User.email)
        .join(User, Appointment.client_id == User.id)
        .where(Appointment.consultant_id == profile.id)
    )
    if status_filter:
        query = query.where(Appointment.status == status_filter.value)
    if date_from:
        query = query.where(Appointment.date >= date_from)
    if date_to:
        query = query.where(Appointment.date <= date_to)

    rows = db.execute(
        query.order_by(Appointment.date, Appointment.start_time, Appointment.id).limit(limit).offset(offset)
    ).all()
    return [
        ConsultantAppointmentResponse(
            **AppointmentResponse.model_validate(appointment).model_dump(),
            client_email=client_email,
        )
        for appointment, client_email in rows
    ]


@router.get("/{appointment_id}", response_model=AppointmentResponse, status_code=status.HTTP_200_OK)
def get_appointment_by_id(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppointmentResponse:
    appointment = get_appointment(db, appointment_id)
    _ensure_participant(db, appointment, current_user)
    return AppointmentResponse.model_validate(appointment)


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse, status_code=status.HTTP_200_OK)
def update_appointment_status(
    appointment_id: int,
    payload: AppointmentStatusRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppointmentResponse:
    appointment = get_appointment(db, appointment_id)
    if payload.status in CONSULTANT_ONLY_STATUSES:
        if not (current_user.is_admin or _is_consultant_owner(db, appointment, current_user)):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_DETAIL)
    else:
        _ensure_participant(db, appointment, current_user)

    updated = change_status(db, appointment, payload.status)
    return AppointmentResponse.model_validate(updated)


@router.patch("/{appointment_id}/reschedule", response_model=AppointmentResponse, status_code=status.HTTP_200_OK)
def reschedule_existing_appointment(
    appointment_id: int,
    payload: AppointmentRescheduleRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AppointmentResponse:
    appointment = get_appointment(db, appointment_id)
    _ensure_participant(db, appointment, current_user)

    updated = reschedule_appointment(db, appointment, payload)
    return AppointmentResponse.model_validate(updated)
