"""Shared utilities used across the lending agents."""

import re
import uuid

# Dominican Republic shares the North American numbering plan (+1).
COUNTRY_CODE = "1"
DOMINICAN_AREA_CODES = frozenset({"809", "829", "849"})


class InvalidPhoneError(ValueError):
    """Raised when a phone number cannot be canonicalized."""


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("809 123 4567")
        '8091234567'
        >>> normalize_phone("+1 (809) 123-4567")
        '+18091234567'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def to_canonical_phone(value: str) -> str:
    """Validate a Dominican phone number and return it in E.164 form.

    Examples:
        >>> to_canonical_phone("809-123-4567")
        '+18091234567'
        >>> to_canonical_phone("18291234567")
        '+18291234567'

    Raises:
        InvalidPhoneError: If the number is not a valid Dominican number.
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidPhoneError("Phone number is empty")

    digits = normalize_phone(value).lstrip("+")
    if len(digits) == 10:
        digits = COUNTRY_CODE + digits
    if len(digits) != 11 or not digits.startswith(COUNTRY_CODE):
        raise InvalidPhoneError(f"Phone number must be a valid Dominican Republic number: {value!r}")
    if digits[1:4] not in DOMINICAN_AREA_CODES:
        raise InvalidPhoneError(f"Phone number must be a valid Dominican Republic number: {value!r}")
    return "+" + digits


def mask_phone(phone: str) -> str:
    """Mask the middle digits of a phone number for log output.

    Examples:
        >>> mask_phone("+18091234567")
        '+1809***4567'
    """
    if len(phone) <= 8:
        return "***"
    return f"{phone[:5]}***{phone[-4:]}"


def is_uuid(value: object) -> bool:
    """Return True if the value is a string in canonical UUID form."""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False
