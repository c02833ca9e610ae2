"""
app/services/sms_service.py

Purpose: Verification SMS delivery

- Sends verification codes via the Twilio REST API
- Mock transport for development that returns the code instead
- Maps Twilio error codes to user-facing messages
"""

import httpx
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, Optional

from app.core.config import Settings
from app.core.logging import get_logger
from utils.constants import (
    VERIFICATION_SMS_TEMPLATE,
    SMS_SENT_MESSAGE,
    SMS_SENT_MOCK_MESSAGE,
    SMS_SEND_FAILED_MESSAGE,
    TWILIO_ERROR_MAP,
)
from utils.validation_utils import sanitize_phone_number, mask_phone

logger = get_logger(__name__)


@dataclass(frozen=True)
class SMSResult:
    success: bool
    message: str
    phone_number: Optional[str] = None
    message_id: Optional[str] = None
    status: Optional[str] = None
    mock_mode: bool = False
    verification_code: Optional[str] = None
    error: Optional[str] = None


class SMSTransport(ABC):
    """Delivers a verification code to a phone number."""

    mock_mode = False

    @abstractmethod
    async def send(self, phone_number: str, code: str) -> SMSResult:
        ...

    def status(self) -> Dict[str, Any]:
        return {"mock_mode": self.mock_mode}


class MockSMSTransport(SMSTransport):
    """
    Logs the code and hands it back to the caller. Never use in production.
    """

    mock_mode = True

    async def send(self, phone_number: str, code: str) -> SMSResult:
        formatted = sanitize_phone_number(phone_number)
        logger.info(f"MOCK SMS MODE - verification code for {mask_phone(formatted)}: {code}")

        return SMSResult(
            success=True,
            message=SMS_SENT_MOCK_MESSAGE,
            phone_number=formatted,
            mock_mode=True,
            verification_code=code,
        )

    def status(self) -> Dict[str, Any]:
        return {"mock_mode": True, "provider": "mock", "is_initialized": True}


class TwilioSMSTransport(SMSTransport):
    """Sends verification codes as plain SMS via Twilio"""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: Optional[str],
        code_ttl_ms: int,
        timeout: float = 10.0,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.code_ttl_ms = code_ttl_ms
        self.timeout = timeout
        self.base_url = f"https://api.twilio.com/2010-04-01/Accounts/{self.account_sid}"

    def build_message(self, code: str) -> str:
        minutes = max(1, self.code_ttl_ms // 60000)
        return VERIFICATION_SMS_TEMPLATE.format(code=code, minutes=minutes)

    async def send(self, phone_number: str, code: str) -> SMSResult:
        """
        Sends the verification SMS.

        Args:
            phone_number: Recipient phone (+15551230000)
            code: 6-digit verification code

        Returns:
            SMSResult; failures are reported, never raised
        """
        formatted = sanitize_phone_number(phone_number)

        try:
            url = f"{self.base_url}/Messages.json"

            data = {
                "From": self.from_number,
                "To": formatted,
                "Body": self.build_message(code)
            }

            logger.info(f"📤 Sending verification SMS to {mask_phone(formatted)}")

            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url,
                    data=data,
                    auth=(self.account_sid, self.auth_token),
                    timeout=self.timeout
                )

            if response.status_code in [200, 201]:
                result = response.json()
                logger.info(f"✅ SMS sent: SID={result.get('sid')}")

                return SMSResult(
                    success=True,
                    message=SMS_SENT_MESSAGE,
                    phone_number=formatted,
                    message_id=result.get("sid"),
                    status=result.get("status"),
                )

            return self._error_result(response, formatted)

        except httpx.TimeoutException:
            logger.error("Twilio API timeout")
            return SMSResult(
                success=False,
                message=SMS_SEND_FAILED_MESSAGE,
                phone_number=formatted,
                error="SMS_SEND_TIMEOUT",
            )
        except httpx.HTTPError as e:
            logger.error(f"Error sending verification SMS: {e}", exc_info=True)
            return SMSResult(
                success=False,
                message=SMS_SEND_FAILED_MESSAGE,
                phone_number=formatted,
                error="SMS_SEND_FAILED",
            )

    def _error_result(self, response: httpx.Response, formatted: str) -> SMSResult:
        try:
            twilio_code = response.json().get("code")
        except ValueError:
            twilio_code = None

        logger.error(f"❌ Twilio API error: {response.status_code} (code={twilio_code})")

        message, error = TWILIO_ERROR_MAP.get(twilio_code, (SMS_SEND_FAILED_MESSAGE, "SMS_SEND_FAILED"))
        return SMSResult(
            success=False,
            message=message,
            phone_number=formatted,
            error=error,
        )

    def status(self) -> Dict[str, Any]:
        return {
            "mock_mode": False,
            "provider": "Twilio",
            "is_initialized": True,
            "configuration": {
                "has_account_sid": bool(self.account_sid),
                "has_auth_token": bool(self.auth_token),
                "has_phone_number": bool(self.from_number),
            }
        }


def build_sms_transport(settings: Settings) -> SMSTransport:
    """
    Picks the transport for the current configuration. Falls back to mock
    mode when Twilio credentials are missing.
    """
    if settings.SMS_MOCK_MODE:
        logger.warning("SMS_MOCK_MODE enabled - verification codes will be returned, not sent")
        return MockSMSTransport()

    if not settings.twilio_configured:
        logger.warning("Twilio credentials not found. SMS service will use mock mode.")
        return MockSMSTransport()

    logger.info("Twilio SMS service initialized")
    return TwilioSMSTransport(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        from_number=settings.TWILIO_PHONE_NUMBER,
        code_ttl_ms=settings.VERIFICATION_CODE_EXPIRY_MS,
        timeout=settings.TWILIO_TIMEOUT_SECONDS,
    )
