"""
Security utilities: password hashing and opaque token generation.

Secrets are never logged. All comparisons are timing-safe.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

import bcrypt


# ── Password ──────────────────────────────────────────────────────────── #


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    normalized = hashlib.sha256(plain.encode("utf-8")).hexdigest().encode("utf-8")
    return bcrypt.hashpw(normalized, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """
    Verify a plaintext password against a stored hash.

    Returns False (never raises) on any error; prevents timing oracles.
    """
    try:
        normalized = hashlib.sha256(plain.encode("utf-8")).hexdigest().encode("utf-8")
        return bcrypt.checkpw(normalized, hashed.encode("utf-8"))
    except Exception:
        return False


def generate_placeholder_password() -> str:
    """Random password for federated accounts; nobody ever learns it."""
    return secrets.token_urlsafe(32)


# ── Opaque tokens ─────────────────────────────────────────────────────── #


def generate_bearer_token() -> str:
    """Bearer token value: 16 random bytes, base64 encoded."""
    return base64.b64encode(secrets.token_bytes(16)).decode("ascii")


def generate_reset_token() -> str:
    """Password reset token value: 32 random bytes, base32 encoded (URL safe)."""
    return base64.b32encode(secrets.token_bytes(32)).decode("ascii").rstrip("=")


def generate_session_id() -> str:
    return secrets.token_urlsafe(32)


def generate_csrf_token() -> str:
    """Generate a cryptographically secure CSRF token."""
    return secrets.token_urlsafe(32)


def generate_oauth_state() -> str:
    return secrets.token_urlsafe(24)


def safe_str_compare(a: str, b: str) -> bool:
    """Constant-time string comparison to prevent timing attacks."""
    return secrets.compare_digest(a.encode(), b.encode())


__all__ = [
    "generate_bearer_token",
    "generate_csrf_token",
    "generate_oauth_state",
    "generate_placeholder_password",
    "generate_reset_token",
    "generate_session_id",
    "hash_password",
    "safe_str_compare",
    "verify_password",
]
