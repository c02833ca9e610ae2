import asyncio
from datetime import timedelta

from app.api import deps
from app.core.config import settings
from app.main import app
from app.services.cleanup_service import run_code_cleanup
from app.services.rate_limit_service import RequestCounter

PREFIX = settings.API_PREFIX


def request_code(client, phone):
    return client.post(f"{PREFIX}/verify-phone/request", json={"phone_number": phone})


def confirm_code(client, phone, code):
    return client.post(
        f"{PREFIX}/verify-phone/confirm",
        json={"phone_number": phone, "verification_code": code}
    )


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def other_code(code):
    return "100000" if code != "100000" else "100001"


# ---------------------------------------------------------------------------
# Verification flow
# ---------------------------------------------------------------------------

def test_request_then_confirm_happy_path(client, store):
    response = request_code(client, "+15551230000")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["mock_mode"] is True
    assert data["expires_in"] == 120
    assert data["attempts_remaining"] == 4
    code = data["verification_code"]
    assert len(code) == 6 and code.isdigit()

    response = confirm_code(client, "+15551230000", code)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["is_phone_verified"] is True
    assert data["next_step"] == "dashboard"
    assert data["token"]

    account = asyncio.run(store.find_by_phone("+15551230000"))
    assert account.is_phone_verified
    assert account.verification_code is None
    assert account.verification_attempts == 0

    response = confirm_code(client, "+15551230000", code)
    assert response.status_code == 400
    assert response.json()["code"] == "NO_CODE_ISSUED"


def test_request_creates_provisional_account(client, store):
    assert asyncio.run(store.find_by_phone("+15550001111")) is None
    request_code(client, "(555) 000-1111")

    account = asyncio.run(store.find_by_phone("+15550001111"))
    assert account is not None
    assert account.id is not None
    assert account.verification_attempts == 1
    assert not account.is_phone_verified


def test_sixth_request_in_window_is_rate_limited(client, clock):
    for _ in range(5):
        response = request_code(client, "+15559998888")
        assert response.status_code == 200
        clock.advance(seconds=30)

    response = request_code(client, "+15559998888")
    assert response.status_code == 429
    body = response.json()
    assert body["code"] == "RATE_LIMIT_EXCEEDED"
    assert body["details"]["retry_after_minutes"] >= 1
    assert int(response.headers["Retry-After"]) >= 60


def test_cooldown_elapsed_allows_new_request(client, clock, store):
    for _ in range(5):
        request_code(client, "+15559998888")

    clock.advance(minutes=15)
    response = request_code(client, "+15559998888")
    assert response.status_code == 200
    assert response.json()["data"]["attempts_remaining"] == 4

    account = asyncio.run(store.find_by_phone("+15559998888"))
    assert account.verification_attempts == 1


def test_code_confirmed_after_expiry_fails(client, clock):
    code = request_code(client, "+15551234567").json()["data"]["verification_code"]

    clock.advance(minutes=3)
    response = confirm_code(client, "+15551234567", code)
    assert response.status_code == 400
    assert response.json()["code"] == "CODE_EXPIRED"


def test_wrong_code_is_rejected_without_counting(client, store):
    code = request_code(client, "+15551230000").json()["data"]["verification_code"]

    response = confirm_code(client, "+15551230000", other_code(code))
    assert response.status_code == 400
    assert response.json()["code"] == "CODE_MISMATCH"
    assert response.json()["error"] == "Invalid verification code"

    account = asyncio.run(store.find_by_phone("+15551230000"))
    assert account.verification_attempts == 1
    assert account.verification_code == code


def test_confirm_for_unknown_number(client):
    response = confirm_code(client, "+15550009999", "123456")
    assert response.status_code == 404
    assert response.json()["code"] == "USER_NOT_FOUND"


def test_confirm_requires_six_digit_code(client):
    response = confirm_code(client, "+15551230000", "12ab56")
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_transport_failure_keeps_code_valid(client, store, failing_transport):
    app.dependency_overrides[deps.get_sms_transport] = lambda: failing_transport

    response = request_code(client, "+15551230000")
    assert response.status_code == 502
    body = response.json()
    assert body["code"] == "TRANSPORT_FAILURE"
    assert body["details"]["reason"] == "INVALID_PHONE_NUMBER"

    account = asyncio.run(store.find_by_phone("+15551230000"))
    assert account.verification_code is not None

    response = confirm_code(client, "+15551230000", account.verification_code)
    assert response.status_code == 200


def test_cleanup_clears_expired_codes(client, clock, store):
    request_code(client, "+15551230000")
    request_code(client, "+15551230001")

    assert asyncio.run(run_code_cleanup(store, clock)) == 0

    clock.advance(minutes=2)
    assert asyncio.run(run_code_cleanup(store, clock)) == 2

    account = asyncio.run(store.find_by_phone("+15551230000"))
    assert account.verification_code is None
    assert account.verification_code_expiry is None
    assert account.verification_attempts == 1


# ---------------------------------------------------------------------------
# Registration and login
# ---------------------------------------------------------------------------

def test_register_and_duplicate(client):
    response = client.post(f"{PREFIX}/register", json={"phone_number": "+15551230000"})
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["is_phone_verified"] is False
    assert data["next_step"] == "phone_verification"
    assert data["token"]

    response = client.post(f"{PREFIX}/register", json={"phone_number": "5551230000"})
    assert response.status_code == 409
    assert response.json()["code"] == "USER_ALREADY_EXISTS"


def test_register_rejects_weak_password(client):
    response = client.post(
        f"{PREFIX}/register",
        json={"phone_number": "+15551230000", "password": "weakpass"}
    )
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_register_rejects_bad_phone(client):
    response = client.post(f"{PREFIX}/register", json={"phone_number": "12345"})
    assert response.status_code == 422


def test_login_with_password(client):
    client.post(
        f"{PREFIX}/register",
        json={"phone_number": "+15551230000", "password": "Secret123"}
    )

    response = client.post(f"{PREFIX}/login", json={"phone_number": "+15551230000"})
    assert response.status_code == 401
    assert response.json()["code"] == "PASSWORD_REQUIRED"

    response = client.post(
        f"{PREFIX}/login",
        json={"phone_number": "+15551230000", "password": "Wrong123"}
    )
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_PASSWORD"

    response = client.post(
        f"{PREFIX}/login",
        json={"phone_number": "+15551230000", "password": "Secret123"}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["token"]
    assert data["user"]["last_login_at"] is not None
    assert data["next_step"] == "phone_verification"


def test_login_without_password_account(client):
    client.post(f"{PREFIX}/register", json={"phone_number": "+15551230000"})
    response = client.post(f"{PREFIX}/login", json={"phone_number": "+15551230000"})
    assert response.status_code == 200


def test_login_unknown_or_inactive(client, store):
    response = client.post(f"{PREFIX}/login", json={"phone_number": "+15550009999"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"

    client.post(f"{PREFIX}/register", json={"phone_number": "+15551230000"})
    account = asyncio.run(store.find_by_phone("+15551230000"))
    asyncio.run(store.save(account.update(is_active=False)))

    response = client.post(f"{PREFIX}/login", json={"phone_number": "+15551230000"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"


# ---------------------------------------------------------------------------
# Protected routes
# ---------------------------------------------------------------------------

def register(client, phone="+15551230000"):
    return client.post(f"{PREFIX}/register", json={"phone_number": phone}).json()["data"]["token"]


def test_profile_requires_token(client):
    response = client.get(f"{PREFIX}/profile")
    assert response.status_code == 401
    assert response.json()["code"] == "MISSING_TOKEN"


def test_profile_with_token(client):
    token = register(client)
    response = client.get(f"{PREFIX}/profile", headers=auth_header(token))
    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["phone_number"] == "+15551230000"
    assert "password_hash" not in user
    assert "verification_code" not in user
    assert "X-New-Token" not in response.headers


def test_malformed_and_invalid_tokens(client, issuer, store):
    response = client.get(f"{PREFIX}/profile", headers=auth_header("garbage"))
    assert response.status_code == 401
    assert response.json()["code"] == "CREDENTIAL_MALFORMED"

    token = register(client)
    tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")
    response = client.get(f"{PREFIX}/profile", headers=auth_header(tampered))
    assert response.status_code == 401
    assert response.json()["code"] == "CREDENTIAL_INVALID"


def test_expired_token(client, issuer, store, clock):
    register(client)
    account = asyncio.run(store.find_by_phone("+15551230000"))
    token = issuer.issue(account, now=clock() - timedelta(days=8))

    response = client.get(f"{PREFIX}/profile", headers=auth_header(token))
    assert response.status_code == 401
    assert response.json()["code"] == "CREDENTIAL_EXPIRED"


def test_token_for_inactive_account_is_rejected(client, store):
    token = register(client)
    account = asyncio.run(store.find_by_phone("+15551230000"))
    asyncio.run(store.save(account.update(is_active=False)))

    response = client.get(f"{PREFIX}/profile", headers=auth_header(token))
    assert response.status_code == 401
    assert response.json()["code"] == "CREDENTIAL_INVALID"


def test_token_near_expiry_gets_refreshed_header(client, issuer, store, clock):
    register(client)
    account = asyncio.run(store.find_by_phone("+15551230000"))
    token = issuer.issue(account, now=clock() - timedelta(days=7) + timedelta(minutes=30))

    response = client.get(f"{PREFIX}/profile", headers=auth_header(token))
    assert response.status_code == 200
    new_token = response.headers["X-New-Token"]
    assert issuer.verify(new_token)["sub"] == account.id


def test_refresh_token_endpoint(client, issuer):
    token = register(client)
    response = client.post(f"{PREFIX}/refresh-token", headers=auth_header(token))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["expires_in"] == 7 * 24 * 3600
    assert issuer.verify(data["token"])["phone_number"] == "+15551230000"


def test_dashboard_requires_verified_phone(client):
    token = register(client)
    response = client.get(f"{PREFIX}/dashboard", headers=auth_header(token))
    assert response.status_code == 403
    assert response.json()["code"] == "PHONE_NOT_VERIFIED"

    code = request_code(client, "+15551230000").json()["data"]["verification_code"]
    verified_token = confirm_code(client, "+15551230000", code).json()["data"]["token"]

    # the old token still loads the (now verified) account
    response = client.get(f"{PREFIX}/dashboard", headers=auth_header(token))
    assert response.status_code == 200

    response = client.get(f"{PREFIX}/dashboard", headers=auth_header(verified_token))
    assert response.status_code == 200
    assert response.json()["data"]["user"]["is_phone_verified"] is True


# ---------------------------------------------------------------------------
# Per-client limiting and health
# ---------------------------------------------------------------------------

def test_client_rate_limit(client):
    counter = RequestCounter(max_requests=2, window=timedelta(minutes=15))
    app.dependency_overrides[deps.get_request_counter] = lambda: counter

    assert request_code(client, "+15551230000").status_code == 200
    assert request_code(client, "+15551230001").status_code == 200

    response = request_code(client, "+15551230002")
    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"
    assert "Too many requests" in response.json()["error"]


def test_auth_health(client):
    response = client.get(f"{PREFIX}/health")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "healthy"
    assert data["sms"]["mock_mode"] is True
