from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from consultbook.api.deps import ensure_consultant_access, get_current_user, require_roles
from consultbook.api.pagination import DayParam, LimitParam, OffsetParam
from consultbook.db.models import ConsultantProfile, User, UserRole
from consultbook.db.session import get_db
from consultbook.schemas.appointment import AppointmentResponse, ConsultantAppointmentResponse
from consultbook.schemas.availability import (
    AvailabilityDocument,
    AvailabilityResponse,
    BookableSlot,
    SlotPreviewRequest,
)
from consultbook.schemas.consultant import ConsultantProfileCreateRequest, ConsultantProfileResponse
from consultbook.services.appointment_service import list_active_appointments
from consultbook.services.availability_engine import validate_availability
from consultbook.services.availability_service import (
    get_bookable_slots,
    get_consultant,
    load_availability,
    offered_slots,
    save_availability,
)

router = APIRouter(prefix="/consultants", tags=["consultants"])


def _availability_response(consultant_id: int, document: AvailabilityDocument, is_default: bool) -> AvailabilityResponse:
    return AvailabilityResponse(
        consultant_id=consultant_id,
        is_default=is_default,
        **document.model_dump(),
    )


@router.post("/me", response_model=ConsultantProfileResponse, status_code=status.HTTP_201_CREATED)
def create_my_consultant_profile(
    payload: ConsultantProfileCreateRequest,
    current_user: User = Depends(require_roles(UserRole.CONSULTANT)),
    db: Session = Depends(get_db),
) -> ConsultantProfileResponse:
    if db.scalar(select(ConsultantProfile.id).where(ConsultantProfile.user_id == current_user.id)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Consultant profile already exists")

    profile = ConsultantProfile(
        user_id=current_user.id,
        display_name=payload.display_name,
        description=payload.description,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return ConsultantProfileResponse.model_validate(profile)


@router.get("/me", response_model=ConsultantProfileResponse, status_code=status.HTTP_200_OK)
def get_my_consultant_profile(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ConsultantProfileResponse:
    profile = db.scalar(select(ConsultantProfile).where(ConsultantProfile.user_id == current_user.id))
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Consultant profile not found")
    return ConsultantProfileResponse.model_validate(profile)


@router.get("", response_model=list[ConsultantProfileResponse], status_code=status.HTTP_200_OK)
def list_consultants(
    limit: LimitParam = 20,
    offset: OffsetParam = 0,
    db: Session = Depends(get_db),
) -> list[ConsultantProfileResponse]:
    profiles = db.scalars(
        select(ConsultantProfile).order_by(ConsultantProfile.id).limit(limit).offset(offset)
    ).all()
    return [ConsultantProfileResponse.model_validate(profile) for profile in profiles]


@router.post("/availability/preview", response_model=list[BookableSlot], status_code=status.HTTP_200_OK)
def preview_slots(
    payload: SlotPreviewRequest,
    _: User = Depends(require_roles(UserRole.CONSULTANT, UserRole.ADMIN)),
) -> list[BookableSlot]:
    validate_availability(payload.working_hours, payload.session_settings, payload.time_off)
    return offered_slots(payload, payload.date)


@router.get("/{consultant_id}", response_model=ConsultantProfileResponse, status_code=status.HTTP_200_OK)
def get_consultant_profile(consultant_id: int, db: Session = Depends(get_db)) -> ConsultantProfileResponse:
    return ConsultantProfileResponse.model_validate(get_consultant(db, consultant_id))


@router.get("/{consultant_id}/availability", response_model=AvailabilityResponse, status_code=status.HTTP_200_OK)
def get_availability(consultant_id: int, db: Session = Depends(get_db)) -> AvailabilityResponse:
    document, is_default = load_availability(db, consultant_id)
    return _availability_response(consultant_id, document, is_default)


@router.put("/{consultant_id}/availability", response_model=AvailabilityResponse, status_code=status.HTTP_200_OK)
def replace_availability(
    consultant_id: int,
    payload: AvailabilityDocument,
    current_user: User = Depends(require_roles(UserRole.CONSULTANT, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> AvailabilityResponse:
    ensure_consultant_access(get_consultant(db, consultant_id), current_user)
    document = save_availability(db, consultant_id, payload)
    return _availability_response(consultant_id, document, is_default=False)


@router.get("/{consultant_id}/slots", response_model=list[BookableSlot], status_code=status.HTTP_200_OK)
def list_available_slots(
    consultant_id: int,
    day: DayParam,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[BookableSlot]:
    return get_bookable_slots(db, consultant_id, day, viewer_id=current_user.id)


@router.get(
    "/{consultant_id}/appointments",
    response_model=list[ConsultantAppointmentResponse],
    status_code=status.HTTP_200_OK,
)
def list_consultant_day_appointments(
    consultant_id: int,
    day: DayParam,
    current_user: User = Depends(require_roles(UserRole.CONSULTANT, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> list[ConsultantAppointmentResponse]:
    ensure_consultant_access(get_consultant(db, consultant_id), current_user)
    return [
        ConsultantAppointmentResponse(
            **AppointmentResponse.model_validate(appointment).model_dump(),
            client_email=appointment.client.email,
        )
        for appointment in list_active_appointments(db, consultant_id, day)
    ]
