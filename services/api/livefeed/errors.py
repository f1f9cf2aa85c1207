"""
Error taxonomy for feed operations and its HTTP normalisation.

Operations raise a `FeedError` subclass; the handlers registered by
`register_error_handlers` turn every error reaching the transport boundary
into `{message, status, data?}`.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "An unknown error has occurred."


class FeedError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = UNKNOWN_ERROR_MESSAGE

    def __init__(self, message: Optional[str] = None, data: Any = None) -> None:
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)

    def to_body(self) -> dict:
        body: dict[str, Any] = {"message": self.message, "status": self.status_code}
        if self.data is not None:
            body["data"] = self.data
        return body


class ValidationFailed(FeedError):
    """Malformed or too-short input; `data` lists `{field, message}` entries."""

    status_code = 422
    default_message = "Invalid input."


class Unauthenticated(FeedError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated."


class Unauthorized(FeedError):
    """Credentials were checked and rejected (wrong password)."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Password is incorrect."


class Forbidden(FeedError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized!"


class NotFound(FeedError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


class Conflict(FeedError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict."


class Internal(FeedError):
    pass


def field_error(field: str, message: str) -> dict[str, str]:
    return {"field": field, "message": message}


async def _feed_error_handler(request: Request, exc: FeedError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    data = [
        field_error(
            ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            err.get("msg", "Invalid value."),
        )
        for err in exc.errors()
    ]
    failure = ValidationFailed(data=data)
    return JSONResponse(status_code=failure.status_code, content=failure.to_body())


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": UNKNOWN_ERROR_MESSAGE, "status": 500},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FeedError, _feed_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
