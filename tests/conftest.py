import uuid
from datetime import datetime, timedelta
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient

from app.api import deps
from app.core.exceptions import DuplicateAccountError
from app.core.tokens import TokenCodec
from app.flow.verification import clear_expired_code
from app.main import app
from app.models.account import Account
from app.services.account_service import AccountStore
from app.services.rate_limit_service import RequestCounter
from app.services.session_service import SessionIssuer
from app.services.sms_service import MockSMSTransport, SMSResult, SMSTransport
from utils.time_utils import utcnow

TEST_SECRET = "test-secret"
TEST_ISSUER = "phone-verification-api"


class FakeClock:
    """Controllable clock; starts at the real time so JWT expiry checks stay sane."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class InMemoryAccountStore(AccountStore):
    def __init__(self):
        self.accounts: Dict[str, Account] = {}

    async def find_by_phone(self, phone_number: str) -> Optional[Account]:
        return self.accounts.get(phone_number)

    async def find_by_id(self, account_id: str) -> Optional[Account]:
        for account in self.accounts.values():
            if account.id == account_id:
                return account
        return None

    async def save(self, account: Account) -> Account:
        if account.id is None:
            if account.phone_number in self.accounts:
                raise DuplicateAccountError()
            account = account.update(id=uuid.uuid4().hex)
        self.accounts[account.phone_number] = account
        return account

    async def cleanup_expired_codes(self, now: datetime) -> int:
        cleared = 0
        for phone, account in list(self.accounts.items()):
            swept = clear_expired_code(account, now)
            if swept is not account:
                self.accounts[phone] = swept
                cleared += 1
        return cleared


class FailingSMSTransport(SMSTransport):
    async def send(self, phone_number, code):
        return SMSResult(
            success=False,
            message="Invalid phone number format",
            phone_number=phone_number,
            error="INVALID_PHONE_NUMBER",
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryAccountStore()


@pytest.fixture
def transport():
    return MockSMSTransport()


@pytest.fixture
def issuer():
    return SessionIssuer(
        codec=TokenCodec(secret=TEST_SECRET, algorithm="HS256", issuer=TEST_ISSUER),
        ttl=timedelta(days=7),
        refresh_threshold=timedelta(hours=1),
    )


@pytest.fixture
def request_counter():
    return RequestCounter(max_requests=1000, window=timedelta(minutes=15))


@pytest.fixture
def client(clock, store, transport, issuer, request_counter):
    app.dependency_overrides[deps.get_clock] = lambda: clock
    app.dependency_overrides[deps.get_account_store] = lambda: store
    app.dependency_overrides[deps.get_sms_transport] = lambda: transport
    app.dependency_overrides[deps.get_session_issuer] = lambda: issuer
    app.dependency_overrides[deps.get_request_counter] = lambda: request_counter

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def failing_transport():
    return FailingSMSTransport()
