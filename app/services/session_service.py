"""
app/services/session_service.py

Purpose: Session token issuance

- Issues signed tokens from an account snapshot
- Proactively reissues tokens close to expiry
- Verifies tokens (expired / malformed / invalid)

Tokens are a snapshot: `is_phone_verified` reflects the account at issue
time and is not upgraded by a later verification.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from app.core.config import Settings
from app.core.logging import get_logger
from app.core.tokens import TokenCodec
from app.models.account import Account
from utils.constants import DEFAULT_TOKEN_TTL_SECONDS, DEFAULT_TOKEN_REFRESH_THRESHOLD_SECONDS
from utils.time_utils import utcnow, to_timestamp

logger = get_logger(__name__)


class SessionIssuer:
    """Binds an account snapshot to a signed, time-bounded credential."""

    def __init__(
        self,
        codec: TokenCodec,
        ttl: timedelta = timedelta(seconds=DEFAULT_TOKEN_TTL_SECONDS),
        refresh_threshold: timedelta = timedelta(seconds=DEFAULT_TOKEN_REFRESH_THRESHOLD_SECONDS),
    ):
        self.codec = codec
        self.ttl = ttl
        self.refresh_threshold = refresh_threshold

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionIssuer":
        return cls(
            codec=TokenCodec(
                secret=settings.JWT_SECRET,
                algorithm=settings.JWT_ALGORITHM,
                issuer=settings.JWT_ISSUER,
            ),
            ttl=timedelta(seconds=settings.JWT_EXPIRES_IN_SECONDS),
            refresh_threshold=timedelta(seconds=settings.TOKEN_REFRESH_THRESHOLD_SECONDS),
        )

    @property
    def expires_in_seconds(self) -> int:
        return int(self.ttl.total_seconds())

    def issue(self, account: Account, now: Optional[datetime] = None) -> str:
        """
        Signs {sub, phone_number, is_phone_verified} for the given snapshot.
        """
        claims = {
            "sub": account.id,
            "phone_number": account.phone_number,
            "is_phone_verified": account.is_phone_verified,
        }
        return self.codec.sign(claims, self.ttl, now=now)

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Decodes a bearer token.

        Raises:
            CredentialExpiredError, CredentialMalformedError, CredentialInvalidError
        """
        return self.codec.decode(token)

    def needs_refresh(self, claims: Dict[str, Any], now: Optional[datetime] = None) -> bool:
        exp = claims.get("exp")
        if exp is None:
            return False
        remaining = exp - to_timestamp(now or utcnow())
        return remaining < self.refresh_threshold.total_seconds()

    def maybe_refresh(
        self,
        claims: Dict[str, Any],
        account: Account,
        now: Optional[datetime] = None
    ) -> Optional[str]:
        """
        Returns a fresh token carrying current account state when the
        presented one has less than the refresh threshold left, else None.

        Refreshing is advisory: a failure is logged and yields None.
        """
        if not self.needs_refresh(claims, now):
            return None

        try:
            token = self.issue(account, now=now)
        except Exception as e:
            logger.warning(f"Token refresh failed: {e}", extra={"account_id": account.id})
            return None

        logger.debug("Issued refreshed token", extra={"account_id": account.id})
        return token
