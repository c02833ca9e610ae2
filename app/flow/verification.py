"""
app/flow/verification.py

Purpose: Verification code state machine

- Admission check (attempt cap + sliding cooldown)
- Code generation with expiry and attempt tracking
- Code verification
- Expired-code clearing

Every operation takes an Account snapshot and the current time and returns
its result together with the next snapshot. Nothing here touches the
database; callers persist the returned account.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from app.flow.states import VerificationState
from app.models.account import Account
from utils.constants import (
    MAX_VERIFICATION_ATTEMPTS,
    VERIFICATION_COOLDOWN,
    CODE_MIN_VALUE,
    CODE_MAX_VALUE,
    DEFAULT_CODE_EXPIRY_MS,
    NO_CODE_ISSUED,
    CODE_EXPIRED,
    CODE_MISMATCH,
    RATE_LIMIT_EXCEEDED,
    RATE_LIMIT_MESSAGE,
    VERIFICATION_FAILURE_MESSAGES,
    VERIFICATION_SUCCESS_MESSAGE,
)
from utils.time_utils import calculate_code_expiry, is_code_expired, minutes_remaining


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    retry_after_minutes: Optional[int] = None
    reason: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    reason: Optional[str]
    message: str


def verification_state(account: Account, now: datetime) -> VerificationState:
    """
    Derives the state of an account at `now`.
    """
    if account.is_phone_verified:
        return VerificationState.VERIFIED
    if account.has_outstanding_code and not is_code_expired(account.verification_code_expiry, now):
        return VerificationState.CODE_ACTIVE
    return VerificationState.NO_CODE


def can_request_code(account: Account, now: datetime) -> Tuple[AdmissionDecision, Account]:
    """
    Decides whether a new code may be generated.

    Once the attempt cap is reached, requests are refused until the cooldown
    has elapsed since the most recent generation; after that the counter is
    reset in the returned snapshot.

    Returns:
        (decision, account) where account may have its attempts reset
    """
    if account.verification_attempts >= MAX_VERIFICATION_ATTEMPTS:
        last_attempt = account.last_verification_attempt or now
        elapsed = now - last_attempt

        if elapsed < VERIFICATION_COOLDOWN:
            retry_after = minutes_remaining(VERIFICATION_COOLDOWN - elapsed)
            return AdmissionDecision(
                allowed=False,
                retry_after_minutes=retry_after,
                reason=RATE_LIMIT_EXCEEDED,
                message=RATE_LIMIT_MESSAGE.format(minutes=retry_after),
            ), account

        account = account.update(verification_attempts=0)

    return AdmissionDecision(allowed=True), account


def generate_verification_code() -> str:
    """
    Uniform 6-digit code in [100000, 999999].
    """
    return str(CODE_MIN_VALUE + secrets.randbelow(CODE_MAX_VALUE - CODE_MIN_VALUE + 1))


def generate_code(
    account: Account,
    now: datetime,
    ttl_ms: int = DEFAULT_CODE_EXPIRY_MS
) -> Tuple[str, Account]:
    """
    Issues a new code, replacing any outstanding one.

    Does not consult `can_request_code`; callers run the admission check first.
    """
    code = generate_verification_code()
    updated = account.update(
        verification_code=code,
        verification_code_expiry=calculate_code_expiry(now, ttl_ms),
        verification_attempts=account.verification_attempts + 1,
        last_verification_attempt=now,
        updated_at=now,
    )
    return code, updated


def _failure(reason: str) -> VerificationResult:
    return VerificationResult(
        success=False,
        reason=reason,
        message=VERIFICATION_FAILURE_MESSAGES[reason],
    )


def verify_code(account: Account, candidate: str, now: datetime) -> Tuple[VerificationResult, Account]:
    """
    Checks a submitted code against the outstanding one.

    Expiry is checked before the value, so a late correct code and a late
    wrong code both report CODE_EXPIRED. Failed attempts leave the account
    unchanged.
    """
    if not account.has_outstanding_code:
        return _failure(NO_CODE_ISSUED), account

    if is_code_expired(account.verification_code_expiry, now):
        return _failure(CODE_EXPIRED), account

    if candidate != account.verification_code:
        return _failure(CODE_MISMATCH), account

    updated = account.update(
        is_phone_verified=True,
        verification_code=None,
        verification_code_expiry=None,
        verification_attempts=0,
        updated_at=now,
    )
    return VerificationResult(success=True, reason=None, message=VERIFICATION_SUCCESS_MESSAGE), updated


def clear_expired_code(account: Account, now: datetime) -> Account:
    """
    Drops an expired code and its expiry; anything else is returned as is.
    """
    if account.has_outstanding_code and is_code_expired(account.verification_code_expiry, now):
        return account.update(verification_code=None, verification_code_expiry=None)
    return account


def attempts_remaining(account: Account) -> int:
    return max(0, MAX_VERIFICATION_ATTEMPTS - account.verification_attempts)
