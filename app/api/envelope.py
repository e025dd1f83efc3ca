"""
Uniform command result envelope.

Every endpoint responds with ``{success, data, error, error_kind, timestamp}``.
On success ``data`` is set; on failure ``error`` and ``error_kind`` are set.
Never both.
"""

import logging
from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from src.core.errors import EtabsVcError

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNPROCESSABLE = 422

# Error kind -> HTTP status
STATUS_BY_KIND = {
    "NotFound": status.HTTP_404_NOT_FOUND,
    "DuplicateName": status.HTTP_409_CONFLICT,
    "HasUncommittedChanges": status.HTTP_409_CONFLICT,
    "AlreadyRunning": status.HTTP_409_CONFLICT,
    "OutputExists": status.HTTP_409_CONFLICT,
    "ProtectedBranch": status.HTTP_403_FORBIDDEN,
    "InvalidName": status.HTTP_400_BAD_REQUEST,
    "InvalidParent": status.HTTP_400_BAD_REQUEST,
    "EmptyMessage": status.HTTP_400_BAD_REQUEST,
    "NoWorkingFile": status.HTTP_400_BAD_REQUEST,
    "NotRunning": status.HTTP_400_BAD_REQUEST,
    "SourceInvalid": status.HTTP_400_BAD_REQUEST,
    "ParseError": UNPROCESSABLE,
    "ToolUnavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    "LaunchFailed": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "CommandFailed": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "IOFailure": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

INVALID_REQUEST = "InvalidRequest"
INTERNAL_ERROR = "InternalError"


class CommandResult(BaseModel, Generic[T]):
    """Response envelope shared by all commands."""

    success: bool = Field(description="Whether the command succeeded")
    data: Optional[T] = Field(default=None, description="Command result on success")
    error: Optional[str] = Field(default=None, description="Error message on failure")
    error_kind: Optional[str] = Field(default=None, description="Error taxonomy entry on failure")
    timestamp: datetime = Field(description="Completion time (UTC)")

    @model_validator(mode="after")
    def data_xor_error(self) -> "CommandResult":
        """A result carries data or an error, never both."""
        if self.success and self.error is not None:
            raise ValueError("a successful result cannot carry an error")
        if not self.success and (self.data is not None or self.error is None):
            raise ValueError("a failed result must carry an error and no data")
        return self


def _now() -> datetime:
    return datetime.now(timezone.utc)


def ok(data: T) -> CommandResult[T]:
    """Successful envelope around ``data``."""
    return CommandResult(success=True, data=data, timestamp=_now())


def failure_response(kind: str, message: str, status_code: int) -> JSONResponse:
    """Failed envelope as a JSON response."""
    envelope = CommandResult(success=False, error=message, error_kind=kind, timestamp=_now())
    return JSONResponse(status_code=status_code, content=envelope.model_dump(mode="json"))


async def domain_error_handler(request: Request, exc: EtabsVcError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.warning(
        "Command failed | path=%s kind=%s error=%s",
        request.url.path,
        exc.kind,
        exc.message,
    )
    return failure_response(exc.kind, exc.message, status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    )
    logger.warning("Invalid request | path=%s errors=%s", request.url.path, problems)
    return failure_response(
        INVALID_REQUEST,
        f"Invalid request: {problems}",
        UNPROCESSABLE,
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected error | path=%s", request.url.path)
    return failure_response(
        INTERNAL_ERROR,
        f"Internal error: {exc}",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def register_error_handlers(target_app: FastAPI) -> None:
    """Translate every failure into the command envelope."""
    target_app.add_exception_handler(EtabsVcError, domain_error_handler)
    target_app.add_exception_handler(RequestValidationError, request_validation_handler)
    target_app.add_exception_handler(Exception, unexpected_error_handler)
