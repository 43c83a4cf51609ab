from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from consultbook.api.deps import client_ip, enforce_rate_limit
from consultbook.core.config import settings
from consultbook.db.session import get_db
from consultbook.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from consultbook.schemas.user import UserResponse
from consultbook.services.auth_service import login_user, register_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> UserResponse:
    enforce_rate_limit(
        scope="register",
        subject=client_ip(request),
        limit=settings.auth_register_max_attempts,
        window_seconds=settings.auth_rate_limit_window_seconds,
        response=response,
    )
    user = register_user(payload=payload, db=db)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> TokenResponse:
    enforce_rate_limit(
        scope="login",
        subject=client_ip(request),
        limit=settings.auth_login_max_attempts,
        window_seconds=settings.auth_rate_limit_window_seconds,
        response=response,
    )
    return login_user(payload=payload, db=db)
