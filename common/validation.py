"""
Field validation for customer payloads.

Pure functions, no I/O. Each check raises ValidationError with the first
failing condition: the id immutability check, then email, then the other
field shapes, then unknown field names (all reported in one message).
"""

from __future__ import annotations

import re
from typing import Any

from common.errors import ImmutableFieldError, ValidationError
from common.models import CUSTOMER_FIELDS

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_RE = re.compile(r"^[a-zA-Z\s'-]+$", re.ASCII)
ADDRESS_RE = re.compile(r"^[a-zA-Z0-9\s,'-]+$", re.ASCII)
CITY_RE = NAME_RE
COUNTRY_RE = NAME_RE
POSTAL_CODE_RE = re.compile(r"^\d{5}(-\d{4})?$", re.ASCII)

IMMUTABLE_FIELDS = ("id", "id_client")

# (field, pattern, message) evaluated in this order after email
_SHAPE_RULES: tuple[tuple[str, re.Pattern[str], str], ...] = (
    ("name", NAME_RE, "The name field contains invalid characters."),
    ("address", ADDRESS_RE, "The address field contains invalid characters."),
    ("city", CITY_RE, "The city field contains invalid characters."),
    ("postal_code", POSTAL_CODE_RE, "The postal_code field must be a valid postal code."),
    ("country", COUNTRY_RE, "The country field contains invalid characters."),
)


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _matches(pattern: re.Pattern[str], value: Any) -> bool:
    return isinstance(value, str) and pattern.fullmatch(value) is not None


def _check_object(fields: Any) -> dict[str, Any]:
    if not isinstance(fields, dict):
        raise ValidationError("The request body must be a JSON object.")
    return fields


def _validate_fields(fields: dict[str, Any], is_create: bool) -> None:
    email = fields.get("email")
    if (is_create or "email" in fields) and _is_blank(email):
        raise ValidationError("The email field is required.")
    if not _is_blank(email) and not _matches(EMAIL_RE, email):
        raise ValidationError("The email field must be a valid email address.")

    for name, pattern, message in _SHAPE_RULES:
        value = fields.get(name)
        if not _is_blank(value) and not _matches(pattern, value):
            raise ValidationError(message)

    unknown = [key for key in fields if key not in CUSTOMER_FIELDS]
    if unknown:
        raise ValidationError(f"The following fields are not allowed: {', '.join(unknown)}")


def validate_for_create(fields: Any) -> dict[str, Any]:
    """
    Validate a creation payload and return it.

    >>> validate_for_create({"email": "a@example.com", "city": "Lyon"})
    {'email': 'a@example.com', 'city': 'Lyon'}
    """
    fields = _check_object(fields)
    _validate_fields(fields, is_create=True)
    return fields


def validate_for_update(fields: Any) -> dict[str, Any]:
    """
    Validate a partial update payload and return it. Email is optional, but
    any attempt to touch the identifier is rejected before anything else.
    """
    fields = _check_object(fields)
    for key in IMMUTABLE_FIELDS:
        if key in fields:
            raise ImmutableFieldError(f"The {key} field cannot be modified.")
    _validate_fields(fields, is_create=False)
    return fields
