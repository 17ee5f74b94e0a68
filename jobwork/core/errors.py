"""
Domain exceptions raised by services and mapped to HTTP responses in main.
"""
from typing import List, Optional


class DomainError(Exception):
    """Base class for errors surfaced to the client as {error, details?}."""

    http_status = 500

    def __init__(self, message: str, details: Optional[list] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_payload(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class AuthenticationError(DomainError):
    http_status = 401


class PermissionDenied(DomainError):
    http_status = 403


class ValidationFailed(DomainError):
    http_status = 400

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls("Validation failed", details=[{"field": field, "message": message}])


class NotFound(DomainError):
    http_status = 404

    def __init__(self, entity: str):
        super().__init__(f"{entity} not found")


class Conflict(DomainError):
    http_status = 409


class InvalidTransition(ValidationFailed):
    """A status change the lifecycle tables do not allow."""

    def __init__(self, entity: str, current: str, target: str, reason: Optional[str] = None):
        message = f"Cannot move {entity} from '{current}' to '{target}'"
        if reason:
            message += f": {reason}"
        details: List[dict] = [{"field": "status", "message": message}]
        super().__init__(message, details=details)
        self.current = current
        self.target = target
