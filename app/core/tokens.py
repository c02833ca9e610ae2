"""
app/core/tokens.py

Purpose: Session token codec

- Signs identity claims into a JWT with issued-at / expiry / issuer
- Verifies signature and expiry
- Distinguishes expired, malformed and otherwise invalid tokens
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from jose import jwt, JWTError, ExpiredSignatureError

from app.core.exceptions import (
    CredentialExpiredError,
    CredentialInvalidError,
    CredentialMalformedError,
)
from utils.time_utils import utcnow

RESERVED_CLAIMS = ("iat", "exp", "iss")


class TokenCodec:
    """Signs and verifies bearer tokens with a process-wide secret."""

    def __init__(self, secret: str, algorithm: str = "HS256", issuer: Optional[str] = None):
        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer

    def sign(
        self,
        claims: Dict[str, Any],
        ttl: timedelta,
        now: Optional[datetime] = None
    ) -> str:
        """
        Encodes claims plus iat/exp (and iss when configured).

        Args:
            claims: Identity claims; must not contain reserved names
            ttl: Token lifetime
            now: Issue time (defaults to current UTC time)

        Returns:
            Signed compact JWT

        Raises:
            ValueError: claims include iat, exp or iss
        """
        reserved = sorted(set(claims) & set(RESERVED_CLAIMS))
        if reserved:
            raise ValueError(f"Reserved claims are set by the codec: {', '.join(reserved)}")

        issued_at = now or utcnow()
        to_encode = dict(claims)
        to_encode.update({"iat": issued_at, "exp": issued_at + ttl})
        if self.issuer:
            to_encode["iss"] = self.issuer
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> Dict[str, Any]:
        """
        Verifies a token and returns its claims.

        Raises:
            CredentialMalformedError: token is not a structurally valid JWT
            CredentialExpiredError: signature is valid but exp has passed
            CredentialInvalidError: bad signature, issuer or claims
        """
        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError:
            raise CredentialMalformedError()

        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
            )
        except ExpiredSignatureError:
            raise CredentialExpiredError()
        except JWTError:
            raise CredentialInvalidError()
