"""Envelope validation for incoming messages.

Every stored message body is an envelope of the form::

    {"source": str, "topic": str, "ref": str (optional), "payload": any (optional)}

`envelope_errors` is a pure function: it never mutates its input and performs
no I/O. `validate_envelope` wraps it and raises with the full error list.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from inbox_broker.core.errors import FieldError, ValidationError

REQUIRED_STRING_FIELDS = ("source", "topic")
OPTIONAL_STRING_FIELDS = ("ref",)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def envelope_errors(value: Any) -> list[FieldError]:
    """Return every reason `value` is not an acceptable envelope.

    An empty list means the envelope is valid.
    """
    if not isinstance(value, Mapping):
        return [FieldError("body", f"must be a JSON object, got {_type_name(value)}")]

    errors: list[FieldError] = []
    for field in REQUIRED_STRING_FIELDS:
        if field not in value:
            errors.append(FieldError(field, "is required"))
            continue
        item = value[field]
        if not isinstance(item, str):
            errors.append(FieldError(field, f"must be a string, got {_type_name(item)}"))
        elif not item:
            errors.append(FieldError(field, "must not be empty"))

    for field in OPTIONAL_STRING_FIELDS:
        if field in value and not isinstance(value[field], str):
            errors.append(
                FieldError(field, f"must be a string, got {_type_name(value[field])}")
            )

    # `payload` may hold any JSON value, including null.
    return errors


def validate_envelope(value: Any) -> dict[str, Any]:
    """Return `value` as an envelope dict or raise `ValidationError`."""
    errors = envelope_errors(value)
    if errors:
        raise ValidationError(errors)
    return dict(value)


__all__ = ["envelope_errors", "validate_envelope"]
