# community_gate/core/security.py
"""
Password hashing, CSRF token and API key helpers.
"""
import secrets
from passlib.context import CryptContext

# Argon2 only; hashes from older schemes would be flagged for rehash
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

# Session key holding the CSRF token, and the header clients echo it back in
CSRF_SESSION_KEY = "csrfToken"
CSRF_HEADER = "X-CSRF-Token"
# Header carrying the game-server key for the GET /api feed
API_KEY_HEADER = "X-API-Key"


def hash_password(plain: str) -> str:
    """Return the Argon2 hash stored as UserRecord.passwordHash."""
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """
    Check a login / change-password attempt against a stored hash.

    Args:
        plain: Password as typed by the user
        hashed: UserRecord.passwordHash

    Returns:
        True if password matches, False otherwise
    """
    return pwd_context.verify(plain, hashed)


def new_csrf_token() -> str:
    """
    Mint a random CSRF token.

    The token is stored in the session once per session and must be sent back
    in the X-CSRF-Token header on every mutating request.
    """
    return secrets.token_urlsafe(32)


def tokens_match(provided: str | None, expected: str | None) -> bool:
    """
    Constant-time comparison for CSRF tokens and the game-server API key.
    A missing value on either side never matches.
    """
    if not provided or not expected:
        return False
    return secrets.compare_digest(provided.encode(), expected.encode())
