"""
supplies/errors.py

Error kinds raised by the authorization layer and the workflow engine.

Services never recover from these; they raise and the app factory maps
each kind to a JSON response with a stable HTTP status:

    UnauthorizedError         401  no / invalid identity
    ForbiddenError            403  authenticated but policy denies
    NotFoundError             404  entity missing
    InvalidStateError         409  action not valid for the current status
    ConcurrencyConflictError  409  lost the race on a status flip (retry)
    ValidationError           400  missing / malformed input
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import jsonify


class SuppliesError(Exception):
    """Base class. Subclasses set status_code and code."""

    status_code = 500
    code = "ERR_INTERNAL"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class UnauthorizedError(SuppliesError):
    status_code = 401
    code = "ERR_UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)


class ForbiddenError(SuppliesError):
    status_code = 403
    code = "ERR_FORBIDDEN"

    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)


class NotFoundError(SuppliesError):
    """
    Raised when a requested entity does not exist.

    The id is kept on the exception for logs and echoed in the message.
    """

    status_code = 404
    code = "ERR_NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource} not found"
        if resource_id is not None:
            msg = f"{resource} {resource_id} not found"
        super().__init__(msg)


class InvalidStateError(SuppliesError):
    status_code = 409
    code = "ERR_INVALID_STATE"


class ValidationError(SuppliesError):
    """Missing or malformed input. details maps field name -> problem."""

    status_code = 400
    code = "ERR_VALIDATION"


class CommentsRequiredError(ValidationError):
    code = "ERR_COMMENTS_REQUIRED"

    def __init__(self, message: str = "Comments are required when rejecting a request") -> None:
        super().__init__(message, {"comments": "required"})


class ConcurrencyConflictError(SuppliesError):
    status_code = 409
    code = "ERR_CONCURRENCY_CONFLICT"

    def __init__(self, message: str = "The record was modified concurrently, retry the operation") -> None:
        super().__init__(message)


def api_error(code: str, message: str, *, status: int, details: Optional[Dict[str, Any]] = None):
    """Return a standard JSON error response."""
    body: Dict[str, Any] = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status
