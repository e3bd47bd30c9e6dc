"""
Service-layer exception hierarchy.

Services raise these types; blueprints register handlers against them once
(see ``tierbook.blueprints.register_error_handlers``) and get consistent
HTTP status codes everywhere.

Usage:
    from tierbook.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Tier", resource_id=42)
    raise ValidationError("Tier name is required", details={"name": "required"})
"""


class UnauthorizedError(Exception):
    """Raised when no authenticated actor is attached to the request.

    Maps to HTTP 401.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class PermissionDeniedError(Exception):
    """Raised when the actor is authenticated but not allowed to perform the action.

    Covers both admin-only mutations and child creation under a tier whose
    ``allow_child_creation`` flag is off. Maps to HTTP 403.
    """

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    A field looked up under the wrong tier is reported exactly like a missing
    field, so ids never leak across scopes.

    Args:
        resource: Human-readable model/entity name (e.g. "Tier", "TierField").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint): the data
    was well-formed but violated a rule (empty name, unknown field type,
    reparenting a tier under its own descendant).

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ParentTierReadOnlyError(Exception):
    """Raised when values are written to a tier that has children.

    Parent tier values are computed by aggregation only. Maps to HTTP 409.
    """

    def __init__(self, tier_id: int, child_count: int) -> None:
        self.tier_id = tier_id
        self.child_count = child_count
        super().__init__(
            f"Tier id={tier_id} has {child_count} child tier(s); "
            "its values are calculated and cannot be edited"
        )


class ConflictStateError(Exception):
    """Raised when the stored tree no longer matches what the caller expected.

    Example: a reorder request naming a current parent that the tier has
    already been moved away from. Maps to HTTP 409.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)
