from typing import Callable

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from consultbook.core.rate_limiter import rate_limiter
from consultbook.core.security import user_id_from_token
from consultbook.db.models import ConsultantProfile
from consultbook.db.models.user import User, UserRole
from consultbook.db.session import get_db

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

FORBIDDEN_DETAIL = "Not enough permissions"


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    unauthorized_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        user_id = user_id_from_token(token)
    except ValueError:
        raise unauthorized_exc

    user = db.scalar(select(User).where(User.id == user_id))
    if not user or not user.is_active:
        raise unauthorized_exc
    return user


def require_roles(*roles: UserRole | str) -> Callable[[User], User]:
    allowed_roles = {role.value if isinstance(role, UserRole) else role for role in roles}

    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_DETAIL)
        return current_user

    return checker


def ensure_consultant_access(consultant: ConsultantProfile, user: User) -> None:
    """Only the consultant themself or an admin may manage a consultant's calendar."""
    if not (user.is_admin or consultant.user_id == user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_DETAIL)


def enforce_rate_limit(
    scope: str,
    subject: str,
    limit: int,
    window_seconds: int,
    response: Response | None = None,
) -> None:
    decision = rate_limiter.allow(key=f"{scope}:{subject}", limit=limit, window_seconds=window_seconds)
    if decision.allowed:
        return

    retry_after = str(decision.retry_after)
    if response is not None:
        response.headers["Retry-After"] = retry_after
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Too many requests. Please try again later.",
        headers={"Retry-After": retry_after},
    )


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"
