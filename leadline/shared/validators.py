"""Shared validation utilities"""

import re
from typing import Optional

US_COUNTRY_CODE = "1"


def normalize_e164(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to E.164, assuming US numbers.

    Accepts digits, spaces, dashes, parens and a leading + or 1.

    Args:
        phone: Phone number string in various formats

    Returns:
        Phone number as +1XXXXXXXXXX, or None if empty or not plausibly a US number
    """
    if not phone or not isinstance(phone, str):
        return None

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", phone)

    if len(digits) == 10 and not digits.startswith("0"):
        return f"+{US_COUNTRY_CODE}{digits}"
    if len(digits) == 11 and digits.startswith(US_COUNTRY_CODE):
        return f"+{digits}"
    if len(digits) > 11 and digits.startswith(US_COUNTRY_CODE):
        return f"+{digits[:11]}"
    if len(digits) >= 10:
        return f"+{US_COUNTRY_CODE}{digits[-10:]}"
    return None


def validate_us_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize an optional phone number.

    Returns:
        None for empty input, otherwise the E.164 form

    Raises:
        ValueError: If a non-empty phone number cannot be normalized
    """
    if phone is None or not phone.strip():
        return None

    normalized = normalize_e164(phone)
    if normalized is None:
        raise ValueError("Phone number must be a valid US number")
    return normalized


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email
