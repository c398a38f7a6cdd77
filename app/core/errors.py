# app/core/errors.py
from fastapi import Request, status
from fastapi.responses import JSONResponse


class FeedbackError(Exception):
    """Expected, user-recoverable failure raised by the services."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NoActivePeriod(FeedbackError):
    default_detail = "No active period"


class OutOfPeriodRange(FeedbackError):
    default_detail = "Out of active period range"


class AllowanceExhausted(FeedbackError):
    default_detail = "No pins remaining"


class BadRequest(FeedbackError):
    default_detail = "Bad request"


class Unauthorized(FeedbackError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Unauthorized"


class Forbidden(FeedbackError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFound(FeedbackError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


async def feedback_error_handler(request: Request, exc: FeedbackError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
