# app/core/security.py
# Password hashing for optional account passwords.
from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a login password against the stored hash."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)
