from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from consultbook.core.request_context import request_id_ctx_var


class BookingError(Exception):
    """Base class for domain errors raised by the availability and booking services."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "booking_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidConfiguration(BookingError):
    """Working hours or session settings are malformed; nothing is persisted."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "invalid_configuration"


class SlotConflict(BookingError):
    """The requested interval is not free any more. Re-query slots and pick again."""

    status_code = status.HTTP_409_CONFLICT
    code = "slot_conflict"


class InvalidState(BookingError):
    """The appointment's current status does not allow the requested change."""

    status_code = status.HTTP_409_CONFLICT
    code = "invalid_state"


class NotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


def _error_payload(code: str, message: str, detail):
    return {
        "error": {
            "code": code,
            "message": message,
            "detail": detail,
        },
        "detail": detail,
        "request_id": request_id_ctx_var.get(),
    }


async def booking_error_handler(_: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(code=exc.code, message=exc.detail, detail=exc.detail),
    )


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(
            code=f"http_{exc.status_code}",
            message=str(exc.detail),
            detail=exc.detail,
        ),
        headers=exc.headers,
    )


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_payload(
            code="validation_error",
            message="Request validation failed",
            detail=exc.errors(),
        ),
    )
