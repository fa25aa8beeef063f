"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from portfolio.core.exceptions import NotFoundError, ForbiddenError

    raise NotFoundError(resource="Scenario", resource_id=42)
    raise ForbiddenError("Only administrators and domain managers can publish scenarios")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist or is inactive.

    Args:
        resource: Human-readable model/entity name (e.g. "Scenario", "Project").
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

    Distinct from HTTP 400 (malformed input, caught in blueprint); this
    exception signals that the data was well-formed but violated a business
    rule (e.g. dependency endpoint outside the scenario, duplicate edge).

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would violate a uniqueness rule.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class QuotaExceededError(Exception):
    """Raised when a user already owns the maximum number of planned scenarios.

    User-correctable; never retried. Maps to HTTP 409.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(
            f"You have reached the maximum limit of {limit} planned scenarios. "
            "Please delete or publish an existing scenario before creating a new one."
        )


class ForbiddenError(Exception):
    """Raised on a permission failure. Maps to HTTP 403."""


class InvalidStateError(Exception):
    """Raised when an operation is not valid for the current lifecycle state.

    Maps to HTTP 409.
    """


class AlreadyPublishedError(InvalidStateError):
    """Raised when publishing a scenario that is already published."""
