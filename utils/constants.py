"""
utils/constants.py

Purpose: Centralized static content

- Verification policy constants (attempt cap, cooldown, code shape)
- All user-facing messages
- Error codes shared by the service and API layers

(Prevents hardcoding across the codebase)
"""

from datetime import timedelta

# ============================================================
# VERIFICATION POLICY
# ============================================================

MAX_VERIFICATION_ATTEMPTS = 5
VERIFICATION_COOLDOWN = timedelta(minutes=15)

CODE_LENGTH = 6
CODE_MIN_VALUE = 100000
CODE_MAX_VALUE = 999999

DEFAULT_CODE_EXPIRY_MS = 120000  # 2 minutes

# ============================================================
# SESSION CREDENTIALS
# ============================================================

DEFAULT_TOKEN_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days
DEFAULT_TOKEN_REFRESH_THRESHOLD_SECONDS = 60 * 60  # 1 hour
TOKEN_ISSUER = "phone-verification-api"
NEW_TOKEN_HEADER = "X-New-Token"

# ============================================================
# VERIFICATION OUTCOMES
# ============================================================

NO_CODE_ISSUED = "NO_CODE_ISSUED"
CODE_EXPIRED = "CODE_EXPIRED"
CODE_MISMATCH = "CODE_MISMATCH"
RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

VERIFICATION_FAILURE_MESSAGES = {
    NO_CODE_ISSUED: "No verification code found",
    CODE_EXPIRED: "Verification code has expired",
    CODE_MISMATCH: "Invalid verification code",
}

VERIFICATION_SUCCESS_MESSAGE = "Phone number verified successfully"

RATE_LIMIT_MESSAGE = (
    "Too many attempts. Please wait {minutes} minutes before requesting a new code."
)
IP_RATE_LIMIT_MESSAGE = "Too many requests. Please try again in {minutes} minutes."

# ============================================================
# SMS CONTENT
# ============================================================

VERIFICATION_SMS_TEMPLATE = (
    "Your verification code is: {code}. "
    "This code will expire in {minutes} minutes. "
    "Do not share this code with anyone."
)

SMS_SENT_MESSAGE = "Verification code sent successfully"
SMS_SENT_MOCK_MESSAGE = "Verification code sent successfully (mock mode)"
SMS_SEND_FAILED_MESSAGE = "Failed to send verification code"

# Twilio error code -> (message, error code)
TWILIO_ERROR_MAP = {
    21211: ("Invalid phone number format", "INVALID_PHONE_NUMBER"),
    21408: ("Permission to send SMS to this number denied", "SMS_PERMISSION_DENIED"),
    21610: ("Phone number is unsubscribed from SMS", "PHONE_UNSUBSCRIBED"),
    20003: ("Authentication failed - check Twilio credentials", "TWILIO_AUTH_FAILED"),
}

# ============================================================
# ACCOUNT / AUTH MESSAGES
# ============================================================

USER_ALREADY_EXISTS_MESSAGE = "User with this phone number already exists"
DUPLICATE_PHONE_MESSAGE = "Phone number already registered"
INVALID_CREDENTIALS_MESSAGE = "Invalid phone number or user not found"
INVALID_PASSWORD_MESSAGE = "Invalid password"
PASSWORD_REQUIRED_MESSAGE = "Password is required for this account"
USER_NOT_FOUND_MESSAGE = "No verification request found for this phone number"
PHONE_NOT_VERIFIED_MESSAGE = "Phone number verification required"

MISSING_TOKEN_MESSAGE = "Access token required"
TOKEN_EXPIRED_MESSAGE = "Token has expired"
TOKEN_MALFORMED_MESSAGE = "Malformed token"
TOKEN_INVALID_MESSAGE = "Invalid token"
TOKEN_ACCOUNT_INVALID_MESSAGE = "Invalid token or user not found"

# Next step hints returned to clients
NEXT_STEP_PHONE_VERIFICATION = "phone_verification"
NEXT_STEP_DASHBOARD = "dashboard"
