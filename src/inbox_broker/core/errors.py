"""Error taxonomy shared by every broker operation.

Each error carries the HTTP status and machine-readable code it is rendered
with, so transports other than HTTP can map them the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class BrokerError(RuntimeError):
    """Base exception raised for broker failures."""

    status_code: int = 500
    code: str = "broker_error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.__class__.__doc__ or self.code)
        self.detail = str(self.args[0])

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body describing this error."""
        return {"detail": self.detail, "code": self.code}


class MissingCredentialError(BrokerError):
    """No credential was supplied with the request."""

    status_code = 401
    code = "missing_credential"


class InvalidCredentialError(BrokerError):
    """Inbox not found or invalid credential."""

    status_code = 404
    code = "invalid_credential"


class InboxNotFoundError(InvalidCredentialError):
    """Inbox not found or invalid credential.

    Raised when an inbox disappears between authorization and use. It renders
    exactly like `InvalidCredentialError` so callers cannot tell the two apart.
    """


class MalformedInputError(BrokerError):
    """Request body is not valid JSON."""

    status_code = 400
    code = "malformed_input"


@dataclass(frozen=True)
class FieldError:
    """A single failing envelope field."""

    field: str
    message: str


class ValidationError(BrokerError):
    """Message envelope failed validation."""

    status_code = 422
    code = "validation_error"

    def __init__(self, errors: list[FieldError]) -> None:
        super().__init__("Message envelope failed validation")
        self.errors = list(errors)

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["errors"] = [
            {"field": error.field, "message": error.message} for error in self.errors
        ]
        return payload


class ConflictError(BrokerError):
    """Generated credentials collided with an existing inbox."""

    status_code = 409
    code = "conflict"


class StorageUnavailableError(BrokerError):
    """Message storage is temporarily unavailable."""

    status_code = 503
    code = "storage_unavailable"


__all__ = [
    "BrokerError",
    "ConflictError",
    "FieldError",
    "InboxNotFoundError",
    "InvalidCredentialError",
    "MalformedInputError",
    "MissingCredentialError",
    "StorageUnavailableError",
    "ValidationError",
]
