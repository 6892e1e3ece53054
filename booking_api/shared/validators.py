"""Shared validation utilities"""

import re
from typing import Optional


def require_text(value: Optional[str], message: str) -> str:
    """Trim a required string field. Raises ValueError when blank."""
    if value is None or not str(value).strip():
        raise ValueError(message)
    return str(value).strip()


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a phone number.

    Accepts Indian 10-digit mobiles (optionally prefixed with 0 or +91) and
    other international numbers of 8-15 digits.

    Returns:
        Normalized phone number in E.164 format, or None when blank

    Raises:
        ValueError: If phone number is invalid
    """
    if phone is None or not phone.strip():
        return None

    has_plus = phone.strip().startswith("+")
    digits = re.sub(r"\D", "", phone)

    if not has_plus:
        if len(digits) == 11 and digits.startswith("0"):
            digits = digits[1:]
        if len(digits) == 10:
            return f"+91{digits}"

    if not 8 <= len(digits) <= 15:
        raise ValueError("Phone number must have between 8 and 15 digits")
    return f"+{digits}"
