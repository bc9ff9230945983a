"""Lease engine error taxonomy.

Every failure carries a stable ``kind`` and an HTTP status used at the API
boundary. The engine itself never builds HTTP responses.
"""

from typing import Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class LeaseError(Exception):
    """Base class for all lease engine failures."""

    kind = "LeaseError"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"success": False, "kind": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(LeaseError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedError(LeaseError):
    """Actor is not a party to the lease."""

    kind = "Unauthorized"
    status_code = status.HTTP_403_FORBIDDEN


class ForbiddenError(LeaseError):
    """Actor is a party but lacks the role the operation needs."""

    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransitionError(LeaseError):
    kind = "InvalidTransition"
    status_code = status.HTTP_409_CONFLICT


class PreconditionFailedError(LeaseError):
    kind = "PreconditionFailed"
    status_code = status.HTTP_409_CONFLICT


class AlreadyLockedError(PreconditionFailedError):
    kind = "AlreadyLocked"


class AlreadySignedError(PreconditionFailedError):
    kind = "AlreadySigned"


class OutOfOrderError(PreconditionFailedError):
    kind = "OutOfOrder"


class ValidationError(LeaseError):
    kind = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST


class AmountMismatchError(ValidationError):
    kind = "AmountMismatch"


class ConflictError(LeaseError):
    """Concurrent modification detected on the same lease."""

    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT


class UpstreamFailureError(LeaseError):
    kind = "UpstreamFailure"
    status_code = status.HTTP_502_BAD_GATEWAY


HTTP_KINDS = {
    status.HTTP_401_UNAUTHORIZED: "Unauthenticated",
    status.HTTP_403_FORBIDDEN: ForbiddenError.kind,
    status.HTTP_404_NOT_FOUND: NotFoundError.kind,
}


def setup_exception_handlers(app: FastAPI) -> None:
    """Render lease errors as ``{success, kind, message}``."""

    @app.exception_handler(LeaseError)
    async def lease_error_handler(request: Request, exc: LeaseError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "Invalid request"))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "kind": ValidationError.kind, "message": message},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        kind = HTTP_KINDS.get(exc.status_code, "HTTPError")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "kind": kind, "message": str(exc.detail)},
            headers=exc.headers,
        )
