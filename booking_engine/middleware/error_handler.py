"""
Error handling middleware mapping engine errors to HTTP responses.
"""

import logging
import traceback
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError as PydanticValidationError

from ..utils.exceptions import (
    EngineError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    AccessDeniedError,
    AuthenticationError,
    UnavailableError,
)

logger = logging.getLogger(__name__)


STATUS_MAP = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorCode.TENANT_MISMATCH: status.HTTP_403_FORBIDDEN,
    ErrorCode.DUPLICATE_BOOKING: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_CANCELED: status.HTTP_409_CONFLICT,
    ErrorCode.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_TRANSITION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.IMMUTABLE_FIELD_VIOLATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PAST_EVENT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(exc: EngineError) -> int:
    """Map an engine error code to an HTTP status code."""
    return STATUS_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for error handling and response formatting."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        """Process request and handle any exceptions."""
        error_id = str(uuid4())

        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc, error_id)

    def _handle_exception(self, request: Request, exc: Exception, error_id: str) -> JSONResponse:
        self._log_error(request, exc, error_id)

        if isinstance(exc, EngineError):
            return self._error_response(exc, error_id)
        elif isinstance(exc, PydanticValidationError):
            return self._handle_validation_error(exc, error_id)
        elif isinstance(exc, SQLAlchemyError):
            # Driver text never reaches the caller
            return self._error_response(UnavailableError(), error_id)
        return self._handle_unexpected_error(exc, error_id)

    def _error_response(self, exc: EngineError, error_id: str) -> JSONResponse:
        headers = {}
        if exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)

        return JSONResponse(
            status_code=status_code_for(exc),
            content=self._body(exc, error_id),
            headers=headers
        )

    def _handle_validation_error(self, exc: PydanticValidationError, error_id: str) -> JSONResponse:
        """Handle Pydantic validation errors raised outside request parsing."""
        field_errors = {}

        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            field_errors.setdefault(field_path, []).append(error["msg"])

        validation_error = ValidationError(
            "Request validation failed",
            field_errors=field_errors
        )
        return self._error_response(validation_error, error_id)

    def _handle_unexpected_error(self, exc: Exception, error_id: str) -> JSONResponse:
        engine_error = EngineError(
            "An unexpected error occurred",
            error_code=ErrorCode.INTERNAL_ERROR,
            details={"error_type": type(exc).__name__} if self.debug else None
        )
        response_data = self._body(engine_error, error_id)

        # Include stack trace in debug mode
        if self.debug:
            response_data["debug"] = {
                "exception": str(exc),
                "traceback": traceback.format_exc()
            }

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=response_data
        )

    def _body(self, exc: EngineError, error_id: str) -> dict:
        return {
            "error": exc.to_dict(),
            "error_id": error_id,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    def _log_error(self, request: Request, exc: Exception, error_id: str):
        request_info = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }

        principal = getattr(request.state, "principal", None)
        if principal is not None:
            request_info["principal_id"] = str(principal.id)
            request_info["tenant_id"] = str(principal.tenant_id)

        if isinstance(exc, (ValidationError, NotFoundError, AccessDeniedError, AuthenticationError)):
            logger.warning(
                "Client error [%s]: %s", error_id, exc.message,
                extra={"error_id": error_id, "error_code": exc.error_code.value, "request": request_info}
            )
        elif isinstance(exc, UnavailableError):
            logger.error(
                "Service unavailable [%s]: %s", error_id, exc.message,
                extra={"error_id": error_id, "request": request_info},
                exc_info=exc.__cause__ is not None
            )
        elif isinstance(exc, EngineError):
            logger.info(
                "Booking rule rejected [%s]: %s", error_id, exc.message,
                extra={"error_id": error_id, "error_code": exc.error_code.value, "request": request_info}
            )
        else:
            logger.error(
                "Unexpected error [%s]: %s", error_id, type(exc).__name__,
                extra={"error_id": error_id, "request": request_info},
                exc_info=True
            )
