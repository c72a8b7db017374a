"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them
once (see app.blueprints.register_error_handlers) and get consistent HTTP
status codes everywhere.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ValidationError("name is required", details={"name": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist for the caller.

    Used for BOTH genuinely missing records AND records owned by another
    user. A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable model/entity name (e.g. "Project", "Stage").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ValidationError(Exception):
    """Raised when input fails validation or a business rule.

    Maps to HTTP 400 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class PermissionDeniedError(Exception):
    """Raised when the caller can see a resource but lacks the role to change it.

    Maps to HTTP 403.
    """

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(message)


class LLMUnavailableError(RuntimeError):
    """Raised by the LLM gateway once every configured provider has failed.

    Maps to HTTP 502.
    """

    def __init__(self, purpose: str, last_error: Exception | None = None) -> None:
        self.purpose = purpose
        self.last_error = last_error
        super().__init__(f"AI provider unavailable for {purpose or 'request'}")
