"""
Tierbook
Blueprint registry and shared request helpers.
"""

import logging

from flask import request
from werkzeug.exceptions import HTTPException

from tierbook.core.exceptions import (
    ConflictError,
    ConflictStateError,
    NotFoundError,
    ParentTierReadOnlyError,
    PermissionDeniedError,
    UnauthorizedError,
    ValidationError,
)
from tierbook.utils.errors import E, api_error

logger = logging.getLogger(__name__)


class BadRequest(Exception):
    """Malformed request body (missing key, wrong JSON type). Maps to HTTP 400."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


def json_body() -> dict:
    """The request's JSON object, or {} when the body is empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


def optional_int(data: dict, key: str):
    """Integer or None at ``key``; absent keys return None."""
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise BadRequest(f"{key} must be an integer or null", field=key)
    return value


def require_int(data: dict, key: str) -> int:
    if key not in data or data[key] is None:
        raise BadRequest(f"{key} is required", field=key)
    return optional_int(data, key)


def register_error_handlers(bp) -> None:
    """Map the service exception hierarchy onto standard error responses for ``bp``."""

    @bp.errorhandler(BadRequest)
    def _handle_bad_request(error: BadRequest):
        details = {error.field: "invalid"} if error.field else None
        return api_error(E.VALIDATION_REQUIRED, str(error), details=details)

    @bp.errorhandler(UnauthorizedError)
    def _handle_unauthorized(error: UnauthorizedError):
        return api_error(E.UNAUTHORIZED, str(error))

    @bp.errorhandler(PermissionDeniedError)
    def _handle_forbidden(error: PermissionDeniedError):
        return api_error(E.FORBIDDEN, str(error))

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, f"{error.resource} not found")

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(ParentTierReadOnlyError)
    def _handle_read_only(error: ParentTierReadOnlyError):
        return api_error(
            E.PARENT_TIER_READ_ONLY,
            str(error),
            details={"tier_id": error.tier_id, "child_count": error.child_count},
        )

    @bp.errorhandler(ConflictStateError)
    def _handle_conflict_state(error: ConflictStateError):
        return api_error(E.CONFLICT_STATE, str(error), details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, str(error), details={"field": error.field})

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
