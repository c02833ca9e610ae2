"""
utils/validation_utils.py

Purpose: Input validation

- Phone number sanitizing and format validation
- Verification code format validation
- Password strength rules
- Phone masking for logs
"""

import re
from typing import Optional, Tuple

from utils.constants import CODE_LENGTH


PHONE_PATTERN = r"^\+[1-9]\d{6,14}$"
PASSWORD_STRENGTH_PATTERN = r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)"
MIN_PASSWORD_LENGTH = 6


def sanitize_phone_number(phone: Optional[str]) -> Optional[str]:
    """
    Normalizes a phone number to +<digits> form.

    Drops everything except digits and '+'. A bare 10-digit number is
    treated as a US number and gets +1.

    Args:
        phone: Raw phone number input

    Returns:
        Sanitized phone number, or the input unchanged if empty
    """
    if not phone:
        return phone

    cleaned = re.sub(r"[^\d+]", "", phone.strip())

    if not cleaned.startswith("+"):
        if len(cleaned) == 10:
            cleaned = f"+1{cleaned}"
        else:
            cleaned = f"+{cleaned}"

    return cleaned


def validate_phone_number(phone: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Validates an international phone number.

    Args:
        phone: Phone number (sanitized or raw)

    Returns:
        (is_valid, error_message)
    """
    if not phone:
        return False, "Phone number is required"

    digits = re.sub(r"\D", "", phone)
    if len(digits) < 7 or len(digits) > 15:
        return False, "Phone number must be between 7 and 15 digits"

    if not re.match(PHONE_PATTERN, sanitize_phone_number(phone)):
        return False, "Please provide a valid phone number"

    return True, None


def validate_verification_code_format(code: Optional[str]) -> bool:
    """
    Validates verification code format (exactly 6 digits).
    """
    if not code:
        return False

    return bool(re.match(rf"^\d{{{CODE_LENGTH}}}$", code))


def validate_password_strength(password: str) -> Tuple[bool, Optional[str]]:
    """
    Checks registration password rules.

    Returns:
        (is_valid, error_message)
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"

    if not re.match(PASSWORD_STRENGTH_PATTERN, password):
        return False, (
            "Password must contain at least one uppercase letter, "
            "one lowercase letter, and one number"
        )

    return True, None


def mask_phone(phone: Optional[str]) -> str:
    """
    Masks the middle of a phone number for logging.

    +15551230000 -> +1555***0000
    """
    if not phone:
        return "unknown"
    if len(phone) <= 8:
        return phone[:2] + "***"
    return f"{phone[:5]}***{phone[-4:]}"
