from datetime import datetime, timedelta

import pytest

from app.flow import verification
from app.flow.states import VerificationState
from app.flow.verification import (
    can_request_code,
    clear_expired_code,
    generate_code,
    verification_state,
    verify_code,
)
from app.models.account import Account

NOW = datetime(2026, 1, 15, 12, 0, 0)


def new_account(**changes):
    return Account.new("+15551230000", now=NOW).update(**changes)


def test_generated_codes_are_six_digits():
    account = new_account()
    for _ in range(500):
        code, account = generate_code(account, NOW)
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999


@pytest.mark.parametrize("drawn, expected", [(0, "100000"), (899999, "999999"), (23456, "123456")])
def test_generated_code_range_bounds(monkeypatch, drawn, expected):
    monkeypatch.setattr(verification.secrets, "randbelow", lambda n: drawn)
    assert verification.generate_verification_code() == expected


def test_code_draws_from_full_range(monkeypatch):
    seen = []

    def fake_randbelow(n):
        seen.append(n)
        return 0

    monkeypatch.setattr(verification.secrets, "randbelow", fake_randbelow)
    verification.generate_verification_code()
    assert seen == [900000]


def test_generate_code_updates_tracking_fields():
    account = new_account()
    code, updated = generate_code(account, NOW, ttl_ms=120000)

    assert updated.verification_code == code
    assert updated.verification_code_expiry == NOW + timedelta(minutes=2)
    assert updated.verification_attempts == 1
    assert updated.last_verification_attempt == NOW
    # snapshot is immutable
    assert account.verification_code is None
    assert account.verification_attempts == 0


def test_generate_code_replaces_outstanding_code():
    _, account = generate_code(new_account(), NOW)
    first_code = account.verification_code
    later = NOW + timedelta(seconds=30)
    second_code, account = generate_code(account, later)

    assert account.verification_code == second_code
    assert account.verification_attempts == 2
    assert account.last_verification_attempt == later
    if first_code != second_code:
        result, _ = verify_code(account, first_code, later)
        assert result.reason == "CODE_MISMATCH"


def test_verify_succeeds_once_then_reports_no_code():
    code, account = generate_code(new_account(), NOW)

    result, account = verify_code(account, code, NOW + timedelta(seconds=10))
    assert result.success
    assert result.reason is None
    assert account.is_phone_verified
    assert account.verification_code is None
    assert account.verification_code_expiry is None
    assert account.verification_attempts == 0

    result, _ = verify_code(account, code, NOW + timedelta(seconds=20))
    assert not result.success
    assert result.reason == "NO_CODE_ISSUED"


def test_verify_without_code():
    result, account = verify_code(new_account(), "123456", NOW)
    assert not result.success
    assert result.reason == "NO_CODE_ISSUED"
    assert result.message == "No verification code found"


def test_verify_with_code_but_missing_expiry_reports_no_code():
    account = new_account(verification_code="123456")
    result, _ = verify_code(account, "123456", NOW)
    assert result.reason == "NO_CODE_ISSUED"


def test_expired_code_reports_expired_even_when_correct():
    code, account = generate_code(new_account(), NOW, ttl_ms=120000)

    result, after = verify_code(account, code, NOW + timedelta(minutes=3))
    assert not result.success
    assert result.reason == "CODE_EXPIRED"
    assert not after.is_phone_verified


def test_expired_code_reports_expired_for_wrong_value():
    code, account = generate_code(new_account(), NOW, ttl_ms=120000)
    wrong = "100000" if code != "100000" else "100001"

    result, _ = verify_code(account, wrong, NOW + timedelta(minutes=3))
    assert result.reason == "CODE_EXPIRED"


def test_code_is_expired_at_exact_expiry_instant():
    code, account = generate_code(new_account(), NOW, ttl_ms=120000)

    result, _ = verify_code(account, code, NOW + timedelta(milliseconds=119999))
    assert result.success

    result, _ = verify_code(account, code, NOW + timedelta(milliseconds=120000))
    assert result.reason == "CODE_EXPIRED"


@pytest.mark.parametrize("candidate", [" 123456", "123456 ", "0123456", "12345", ""])
def test_candidate_is_not_normalized(candidate):
    account = new_account(
        verification_code="123456",
        verification_code_expiry=NOW + timedelta(minutes=2),
        verification_attempts=1,
        last_verification_attempt=NOW,
    )
    result, after = verify_code(account, candidate, NOW)
    assert result.reason == "CODE_MISMATCH"
    assert after == account


def test_failed_confirmations_do_not_count_as_attempts():
    code, account = generate_code(new_account(), NOW)
    wrong = "100000" if code != "100000" else "100001"

    for _ in range(10):
        _, account = verify_code(account, wrong, NOW)

    assert account.verification_attempts == 1
    result, _ = verify_code(account, code, NOW)
    assert result.success


@pytest.mark.parametrize("attempts", [0, 1, 2, 3, 4])
def test_below_attempt_cap_always_allowed(attempts):
    account = new_account(verification_attempts=attempts, last_verification_attempt=NOW)
    decision, after = can_request_code(account, NOW)
    assert decision.allowed
    assert decision.retry_after_minutes is None
    assert after.verification_attempts == attempts


def test_sixth_request_within_window_is_denied():
    account = new_account()
    now = NOW
    for _ in range(5):
        decision, account = can_request_code(account, now)
        assert decision.allowed
        _, account = generate_code(account, now)
        now += timedelta(seconds=20)

    decision, after = can_request_code(account, now)
    assert not decision.allowed
    assert decision.reason == "RATE_LIMIT_EXCEEDED"
    assert decision.retry_after_minutes >= 1
    assert "Too many attempts" in decision.message
    assert after.verification_attempts == 5


@pytest.mark.parametrize("elapsed, expected_minutes", [
    (timedelta(0), 15),
    (timedelta(seconds=30), 15),
    (timedelta(minutes=1), 14),
    (timedelta(minutes=14, seconds=1), 1),
    (timedelta(minutes=14, seconds=59), 1),
])
def test_retry_after_rounds_up(elapsed, expected_minutes):
    account = new_account(verification_attempts=5, last_verification_attempt=NOW)
    decision, _ = can_request_code(account, NOW + elapsed)
    assert not decision.allowed
    assert decision.retry_after_minutes == expected_minutes


def test_cooldown_elapsed_resets_attempts():
    account = new_account(verification_attempts=5, last_verification_attempt=NOW)

    decision, after = can_request_code(account, NOW + timedelta(minutes=15))
    assert decision.allowed
    assert after.verification_attempts == 0
    # the input snapshot is untouched
    assert account.verification_attempts == 5


def test_cooldown_slides_from_last_generation():
    account = new_account(verification_attempts=4, last_verification_attempt=NOW)
    later = NOW + timedelta(minutes=10)
    _, account = generate_code(account, later)

    decision, _ = can_request_code(account, NOW + timedelta(minutes=16))
    assert not decision.allowed
    assert decision.retry_after_minutes == 9


def test_verified_flag_is_sticky():
    code, account = generate_code(new_account(), NOW)
    _, account = verify_code(account, code, NOW)
    assert verification_state(account, NOW) == VerificationState.VERIFIED

    code, account = generate_code(account, NOW + timedelta(minutes=1))
    assert verification_state(account, NOW + timedelta(minutes=1)) == VerificationState.VERIFIED

    result, account = verify_code(account, code, NOW + timedelta(hours=1))
    assert result.reason == "CODE_EXPIRED"
    assert account.is_phone_verified


def test_verification_state_derivation():
    account = new_account()
    assert verification_state(account, NOW) == VerificationState.NO_CODE

    _, account = generate_code(account, NOW, ttl_ms=120000)
    assert verification_state(account, NOW) == VerificationState.CODE_ACTIVE
    assert verification_state(account, NOW + timedelta(minutes=2)) == VerificationState.NO_CODE

    code, account = generate_code(account, NOW + timedelta(minutes=3))
    _, account = verify_code(account, code, NOW + timedelta(minutes=3))
    assert verification_state(account, NOW + timedelta(minutes=3)) == VerificationState.VERIFIED


def test_clear_expired_code():
    _, account = generate_code(new_account(), NOW, ttl_ms=120000)

    assert clear_expired_code(account, NOW + timedelta(minutes=1)) is account

    swept = clear_expired_code(account, NOW + timedelta(minutes=2))
    assert swept.verification_code is None
    assert swept.verification_code_expiry is None
    assert swept.verification_attempts == account.verification_attempts
    assert swept.last_verification_attempt == account.last_verification_attempt
