"""
app/services/auth_service.py

Purpose: Phone verification and login workflow

- Registration and login
- Verification code request (admission -> generate -> persist -> send)
- Verification code confirmation (verify -> persist -> issue token)
- Token refresh

Each operation re-reads the account right before applying the state
machine, then persists the returned snapshot explicitly.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from app.core.exceptions import (
    AuthenticationError,
    DuplicateAccountError,
    RateLimitExceededError,
    ResourceNotFoundError,
    TransportFailureError,
    VerificationFailedError,
)
from app.core.logging import get_logger, LogContext
from app.core.security import hash_password, verify_password
from app.flow import verification
from app.models.account import Account
from app.services.account_service import AccountStore
from app.services.session_service import SessionIssuer
from app.services.sms_service import SMSTransport, SMSResult
from utils.constants import (
    DEFAULT_CODE_EXPIRY_MS,
    USER_ALREADY_EXISTS_MESSAGE,
    DUPLICATE_PHONE_MESSAGE,
    INVALID_CREDENTIALS_MESSAGE,
    INVALID_PASSWORD_MESSAGE,
    PASSWORD_REQUIRED_MESSAGE,
    USER_NOT_FOUND_MESSAGE,
)
from utils.time_utils import utcnow
from utils.validation_utils import mask_phone

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthenticatedSession:
    account: Account
    token: str


@dataclass(frozen=True)
class CodeDispatch:
    account: Account
    sms: SMSResult
    expires_in_seconds: int
    attempts_remaining: int


class AuthService:
    """Coordinates the account store, state machine, SMS transport and token issuer."""

    def __init__(
        self,
        store: AccountStore,
        transport: SMSTransport,
        issuer: SessionIssuer,
        clock: Callable[[], datetime] = utcnow,
        code_ttl_ms: int = DEFAULT_CODE_EXPIRY_MS,
    ):
        self.store = store
        self.transport = transport
        self.issuer = issuer
        self.clock = clock
        self.code_ttl_ms = code_ttl_ms

    async def register(self, phone_number: str, password: Optional[str] = None) -> AuthenticatedSession:
        """
        Creates an unverified account.

        Raises:
            DuplicateAccountError: number already registered
        """
        with LogContext(phone_number=mask_phone(phone_number)):
            if await self.store.find_by_phone(phone_number):
                raise DuplicateAccountError(USER_ALREADY_EXISTS_MESSAGE, code="USER_ALREADY_EXISTS")

            account = Account.new(
                phone_number,
                password_hash=hash_password(password) if password else None,
                now=self.clock(),
            )

            try:
                account = await self.store.save(account)
            except DuplicateAccountError:
                raise DuplicateAccountError(DUPLICATE_PHONE_MESSAGE, code="DUPLICATE_PHONE_NUMBER")

            logger.info("New account registered")
            return AuthenticatedSession(account=account, token=self.issuer.issue(account, now=self.clock()))

    async def login(self, phone_number: str, password: Optional[str] = None) -> AuthenticatedSession:
        """
        Logs in by phone number; a password is required only if one is set.
        """
        with LogContext(phone_number=mask_phone(phone_number)):
            account = await self.store.find_by_phone(phone_number)
            if not account or not account.is_active:
                raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE, code="INVALID_CREDENTIALS")

            if account.password_hash:
                if not password:
                    raise AuthenticationError(PASSWORD_REQUIRED_MESSAGE, code="PASSWORD_REQUIRED")
                if not verify_password(password, account.password_hash):
                    raise AuthenticationError(INVALID_PASSWORD_MESSAGE, code="INVALID_PASSWORD")

            now = self.clock()
            account = await self.store.save(account.update(last_login_at=now, updated_at=now))

            logger.info("Account logged in")
            return AuthenticatedSession(account=account, token=self.issuer.issue(account, now=now))

    async def request_verification_code(self, phone_number: str) -> CodeDispatch:
        """
        Issues and sends a verification code.

        Unknown numbers get a provisional account, persisted together with
        the first code. If sending fails, the code stays stored and valid.

        Raises:
            RateLimitExceededError: attempt cap reached within the cooldown
            TransportFailureError: SMS could not be delivered
        """
        now = self.clock()
        account = await self.store.find_by_phone(phone_number)
        if account is None:
            account = Account.new(phone_number, now=now)

        with LogContext(phone_number=mask_phone(phone_number), state=verification.verification_state(account, now).value):
            decision, account = verification.can_request_code(account, now)
            if not decision.allowed:
                logger.warning(f"Code request refused, retry in {decision.retry_after_minutes} min")
                raise RateLimitExceededError(decision.message, retry_after_minutes=decision.retry_after_minutes)

            code, account = verification.generate_code(account, now, ttl_ms=self.code_ttl_ms)
            account = await self.store.save(account)

            sms = await self.transport.send(account.phone_number, code)
            if not sms.success:
                logger.error(f"Verification SMS failed: {sms.error}")
                raise TransportFailureError(sms.message, details={"reason": sms.error})

            logger.info("Verification code sent")
            return CodeDispatch(
                account=account,
                sms=sms,
                expires_in_seconds=self.code_ttl_ms // 1000,
                attempts_remaining=verification.attempts_remaining(account),
            )

    async def confirm_verification_code(self, phone_number: str, code: str) -> AuthenticatedSession:
        """
        Confirms a code and issues a token reflecting the verified state.

        Raises:
            ResourceNotFoundError: no account for this number
            VerificationFailedError: NO_CODE_ISSUED, CODE_EXPIRED or CODE_MISMATCH
        """
        account = await self.store.find_by_phone(phone_number)
        if account is None:
            raise ResourceNotFoundError(USER_NOT_FOUND_MESSAGE, code="USER_NOT_FOUND")

        now = self.clock()
        with LogContext(phone_number=mask_phone(phone_number), state=verification.verification_state(account, now).value):
            result, account = verification.verify_code(account, code, now)
            if not result.success:
                logger.info(f"Verification failed: {result.reason}")
                raise VerificationFailedError(result.message, reason=result.reason)

            account = await self.store.save(account)

            logger.info("Phone number verified")
            return AuthenticatedSession(account=account, token=self.issuer.issue(account, now=now))

    def refresh_token(self, account: Account) -> str:
        return self.issuer.issue(account, now=self.clock())
