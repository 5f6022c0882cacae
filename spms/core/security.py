"""
Security utilities for authentication and CSRF protection.
"""
import hashlib
import secrets
from typing import Optional

from passlib.context import CryptContext

from ..core.config import settings

# bcrypt is salted and CPU-hard; verification is constant time
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against a hash."""
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # Malformed or unknown hash in the store
        return False


def get_password_hash(password: str) -> str:
    """Generate a password hash."""
    return pwd_context.hash(password)


def dummy_verify() -> None:
    """Burn the same time as a real verification for unknown users."""
    pwd_context.dummy_verify()


def generate_token(nbytes: int = 32) -> str:
    """Generate a secure random hex token."""
    return secrets.token_hex(nbytes)


def hash_token(token: str) -> str:
    """One-way hash for tokens that are persisted server-side."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def constant_time_compare(expected: str, candidate: str) -> bool:
    """Compare two strings without leaking the position of the first mismatch."""
    return secrets.compare_digest(expected.encode("utf-8"), candidate.encode("utf-8"))


def attempt_key(username: str, client_address: str) -> str:
    """Key of the login attempt record for a username/client pair."""
    return hashlib.sha256(f"{username}{client_address}".encode("utf-8")).hexdigest()
