import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ...domain.errors import (
    Conflict, Forbidden, InvalidCredentials, NotFound, StoreUnavailable,
    TrackerError, Unauthenticated, ValidationFailed,
)

logger = structlog.get_logger(__name__)

STATUS_BY_ERROR = {
    Unauthenticated: status.HTTP_401_UNAUTHORIZED,
    InvalidCredentials: status.HTTP_401_UNAUTHORIZED,
    ValidationFailed: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    Forbidden: status.HTTP_403_FORBIDDEN,
    Conflict: status.HTTP_409_CONFLICT,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    status_code = STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if isinstance(exc, Forbidden):
        # клиент не должен писать в чужие записи
        logger.error("ownership_violation", path=request.url.path)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    if isinstance(exc, StoreUnavailable):
        headers = {"Retry-After": "1"}
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TrackerError, tracker_error_handler)
