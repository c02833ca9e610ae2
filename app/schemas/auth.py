"""
app/schemas/auth.py

Purpose: Auth request payloads

- Phone numbers are trimmed, sanitized and validated before use
- Verification codes must be exactly 6 digits
- Registration passwords must meet the strength rules
"""

from pydantic import BaseModel, Field, validator
from typing import Optional

from utils.validation_utils import (
    sanitize_phone_number,
    validate_phone_number,
    validate_verification_code_format,
    validate_password_strength,
)


class PhoneNumberRequest(BaseModel):
    """
    Base payload carrying a phone number.
    """
    phone_number: str = Field(..., description="Phone number, normalized to +<digits>")

    @validator("phone_number", pre=True)
    def normalize_phone_number(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Phone number is required")

        phone = sanitize_phone_number(v)
        is_valid, error = validate_phone_number(phone)
        if not is_valid:
            raise ValueError(error)
        return phone

    class Config:
        json_schema_extra = {
            "example": {"phone_number": "+15551230000"}
        }


class RegisterRequest(PhoneNumberRequest):
    password: Optional[str] = None

    @validator("password")
    def check_password_strength(cls, v):
        if v is None:
            return v
        is_valid, error = validate_password_strength(v)
        if not is_valid:
            raise ValueError(error)
        return v


class LoginRequest(PhoneNumberRequest):
    password: Optional[str] = None

    @validator("password")
    def check_password_present(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Password is required when provided")
        return v


class VerificationCodeRequest(PhoneNumberRequest):
    pass


class VerificationConfirmRequest(PhoneNumberRequest):
    verification_code: str = Field(..., description="6-digit code received by SMS")

    @validator("verification_code", pre=True)
    def check_code_format(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("Verification code is required")
        v = v.strip()
        if not validate_verification_code_format(v):
            raise ValueError("Verification code must be exactly 6 digits")
        return v

    class Config:
        json_schema_extra = {
            "example": {"phone_number": "+15551230000", "verification_code": "123456"}
        }
