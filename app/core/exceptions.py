from typing import Optional, Any, Dict

class PhoneVerifyError(Exception):
    """
    Base exception for the phone verification service.
    """
    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        self.headers = headers
        super().__init__(self.message)

class ResourceNotFoundError(PhoneVerifyError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", code: str = "NOT_FOUND", details: Optional[Any] = None):
        super().__init__(message, code=code, status_code=404, details=details)

class AuthenticationError(PhoneVerifyError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Authentication failed", code: str = "AUTHENTICATION_FAILED", details: Optional[Any] = None):
        super().__init__(message, code=code, status_code=401, details=details)

class ExternalServiceError(PhoneVerifyError):
    """
    Raised when an external service (e.g., Twilio) fails.
    """
    def __init__(self, message: str = "External service error", code: str = "EXTERNAL_SERVICE_ERROR", details: Optional[Any] = None):
        super().__init__(message, code=code, status_code=502, details=details)

class TransportFailureError(ExternalServiceError):
    """
    Raised when the SMS could not be delivered. The generated code stays valid.
    """
    def __init__(self, message: str = "Failed to send verification code", details: Optional[Any] = None):
        super().__init__(message, code="TRANSPORT_FAILURE", details=details)

class RateLimitExceededError(PhoneVerifyError):
    """
    Raised when a caller is over its request or code-generation budget.
    """
    def __init__(self, message: str = "Too many requests", retry_after_minutes: int = 1):
        self.retry_after_minutes = retry_after_minutes
        super().__init__(
            message,
            code="RATE_LIMIT_EXCEEDED",
            status_code=429,
            details={"retry_after_minutes": retry_after_minutes},
            headers={"Retry-After": str(retry_after_minutes * 60)},
        )

class VerificationFailedError(PhoneVerifyError):
    """
    Raised when a submitted code is rejected. `code` carries the reason
    (NO_CODE_ISSUED, CODE_EXPIRED, CODE_MISMATCH).
    """
    def __init__(self, message: str, reason: str):
        self.reason = reason
        super().__init__(message, code=reason, status_code=400)

class PhoneNotVerifiedError(PhoneVerifyError):
    """
    Raised when a route requires a verified phone number.
    """
    def __init__(self, message: str = "Phone number verification required"):
        super().__init__(message, code="PHONE_NOT_VERIFIED", status_code=403)

class DuplicateAccountError(PhoneVerifyError):
    """
    Raised by the account store when a phone number is already taken.
    """
    def __init__(self, message: str = "Phone number already registered", code: str = "DUPLICATE_ACCOUNT"):
        super().__init__(message, code=code, status_code=409)

class CredentialError(AuthenticationError):
    """
    Base for session token failures.
    """

class CredentialExpiredError(CredentialError):
    def __init__(self, message: str = "Token has expired"):
        super().__init__(message, code="CREDENTIAL_EXPIRED")

class CredentialMalformedError(CredentialError):
    def __init__(self, message: str = "Malformed token"):
        super().__init__(message, code="CREDENTIAL_MALFORMED")

class CredentialInvalidError(CredentialError):
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, code="CREDENTIAL_INVALID")
