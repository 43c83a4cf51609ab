from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from consultbook.api.deps import FORBIDDEN_DETAIL, enforce_rate_limit, get_current_user, require_roles
from consultbook.core.config import settings
from consultbook.db.models import User, UserRole
from consultbook.db.session import get_db
from consultbook.schemas.availability import SlotSelection
from consultbook.schemas.hold import HoldCreateRequest, HoldResponse
from consultbook.services.hold_service import can_manage_hold, describe_hold, get_hold, place_hold, release_hold

router = APIRouter(prefix="/holds", tags=["holds"])


@router.post("", response_model=HoldResponse, status_code=status.HTTP_201_CREATED)
def hold_slot(
    payload: HoldCreateRequest,
    response: Response,
    current_user: User = Depends(require_roles(UserRole.CLIENT, UserRole.ADMIN)),
    db: Session = Depends(get_db),
) -> HoldResponse:
    enforce_rate_limit(
        scope="hold",
        subject=str(current_user.id),
        limit=settings.hold_max_attempts,
        window_seconds=settings.hold_rate_limit_window_seconds,
        response=response,
    )
    hold = place_hold(
        db=db,
        consultant_id=payload.consultant_id,
        holder_id=current_user.id,
        selection=SlotSelection(date=payload.date, start_time=payload.start_time, end_time=payload.end_time),
    )
    return describe_hold(hold)


@router.get("/{hold_id}", response_model=HoldResponse, status_code=status.HTTP_200_OK)
def get_hold_status(
    hold_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> HoldResponse:
    hold = get_hold(db, hold_id)
    if not can_manage_hold(hold, current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_DETAIL)
    return describe_hold(hold)


@router.delete("/{hold_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_hold(
    hold_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    hold = get_hold(db, hold_id)
    if not can_manage_hold(hold, current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_DETAIL)

    release_hold(db, hold)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
