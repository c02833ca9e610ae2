"""
app/api/deps.py

Purpose: Request-scoped dependencies

- Collaborator providers (store, SMS transport, token issuer, clock,
  request counter), each overridable through `app.dependency_overrides`
- Bearer token authentication with proactive refresh
- Per-client request limiting
"""

from datetime import datetime
from typing import Callable, Dict, Any, Optional

from fastapi import Depends, Header, Request, Response

from app.core.config import settings
from app.core.exceptions import (
    AuthenticationError,
    CredentialInvalidError,
    PhoneNotVerifiedError,
    RateLimitExceededError,
)
from app.core.logging import get_logger
from app.db.mongo import get_accounts_collection
from app.models.account import Account
from app.services.account_service import AccountStore, MongoAccountStore
from app.services.auth_service import AuthService
from app.services.rate_limit_service import RequestCounter
from app.services.session_service import SessionIssuer
from app.services.sms_service import SMSTransport
from utils.constants import (
    IP_RATE_LIMIT_MESSAGE,
    MISSING_TOKEN_MESSAGE,
    NEW_TOKEN_HEADER,
    TOKEN_ACCOUNT_INVALID_MESSAGE,
)
from utils.time_utils import utcnow

logger = get_logger(__name__)


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_account_store() -> AccountStore:
    return MongoAccountStore(get_accounts_collection())


def get_sms_transport(request: Request) -> SMSTransport:
    return request.app.state.sms_transport


def get_session_issuer(request: Request) -> SessionIssuer:
    return request.app.state.session_issuer


def get_request_counter(request: Request) -> RequestCounter:
    return request.app.state.request_counter


def get_auth_service(
    store: AccountStore = Depends(get_account_store),
    transport: SMSTransport = Depends(get_sms_transport),
    issuer: SessionIssuer = Depends(get_session_issuer),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AuthService:
    return AuthService(
        store=store,
        transport=transport,
        issuer=issuer,
        clock=clock,
        code_ttl_ms=settings.VERIFICATION_CODE_EXPIRY_MS,
    )


def enforce_client_rate_limit(
    request: Request,
    counter: RequestCounter = Depends(get_request_counter),
):
    """
    Caps auth requests per client address.
    """
    key = request.client.host if request.client else "unknown"
    decision = counter.hit(key)
    if not decision.allowed:
        raise RateLimitExceededError(
            IP_RATE_LIMIT_MESSAGE.format(minutes=decision.retry_after_minutes),
            retry_after_minutes=decision.retry_after_minutes,
        )


def get_token_claims(
    authorization: Optional[str] = Header(default=None),
    issuer: SessionIssuer = Depends(get_session_issuer),
) -> Dict[str, Any]:
    """
    Extracts and verifies the bearer token.
    """
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError(MISSING_TOKEN_MESSAGE, code="MISSING_TOKEN")

    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError(MISSING_TOKEN_MESSAGE, code="MISSING_TOKEN")

    return issuer.verify(token)


async def get_current_account(
    response: Response,
    claims: Dict[str, Any] = Depends(get_token_claims),
    store: AccountStore = Depends(get_account_store),
    issuer: SessionIssuer = Depends(get_session_issuer),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> Account:
    """
    Loads the token's account and rejects missing or disabled accounts.
    Tokens close to expiry get a replacement in the X-New-Token header.
    """
    account = await store.find_by_id(claims.get("sub"))
    if not account or not account.is_active:
        raise CredentialInvalidError(TOKEN_ACCOUNT_INVALID_MESSAGE)

    new_token = issuer.maybe_refresh(claims, account, now=clock())
    if new_token:
        response.headers[NEW_TOKEN_HEADER] = new_token

    return account


def require_verified_account(account: Account = Depends(get_current_account)) -> Account:
    if not account.is_phone_verified:
        raise PhoneNotVerifiedError()
    return account
