"""Security utilities for access tokens, refresh tokens and password hashing."""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
import jwt

from helpdesk.core.async_utils import run_blocking
from helpdesk.core.config import settings

JWT_ALGORITHM = "HS256"


# =============================================================================
# Access Token (JWT bearer)
# =============================================================================

def create_access_token(
    user_id: UUID,
    role: str,
    session_id: UUID,
    now: datetime | None = None,
) -> tuple[str, datetime]:
    """
    Create signed access JWT.

    Always signs with current secret (JWT_SECRET).
    Token carries identity, role and the refresh-token family (sid) it was
    minted from, so revoking the family also stops the access token.

    Returns:
        (token, expires_at)
    """
    issued_at = now or datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRES_MINUTES)
    payload = {
        "sub": str(user_id),
        "role": role,
        "sid": str(session_id),
        "iat": issued_at,
        "exp": expires_at,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=JWT_ALGORITHM), expires_at


def decode_access_token(token: str) -> dict:
    """
    Decode and verify access JWT.

    Tries current secret first, then previous (for rotation support).
    Signature, expiry, issuer and audience are all required.

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                audience=settings.JWT_AUDIENCE,
                issuer=settings.JWT_ISSUER,
                leeway=settings.JWT_LEEWAY_SECONDS,
                options={"require": ["exp", "iat", "sub", "iss", "aud"]},
            )
        except jwt.InvalidSignatureError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# Refresh Token (opaque, hashed at rest)
# =============================================================================

def generate_refresh_token() -> str:
    """Generate cryptographically random refresh token (48 bytes, URL-safe base64)."""
    return secrets.token_urlsafe(48)


def hash_token(token: str) -> str:
    """Create SHA256 hash of a token for storage and lookup."""
    return hashlib.sha256(token.encode()).hexdigest()


# =============================================================================
# Passwords (bcrypt)
# =============================================================================

# bcrypt only reads the first 72 bytes; longer secrets are rejected upstream
MAX_PASSWORD_BYTES = 72


def _hash_password_sync(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def _verify_password_sync(password: str, password_hash: str) -> bool:
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def hash_password(password: str) -> str:
    """Hash a password with a per-call salt. Raises OperationTimeoutError if hashing stalls."""
    return run_blocking(
        _hash_password_sync, password, timeout=settings.PASSWORD_HASH_TIMEOUT_SECONDS
    )


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time bcrypt comparison. Raises OperationTimeoutError if hashing stalls."""
    return run_blocking(
        _verify_password_sync,
        password,
        password_hash,
        timeout=settings.PASSWORD_HASH_TIMEOUT_SECONDS,
    )
