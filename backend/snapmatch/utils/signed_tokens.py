"""Signed bearer token utilities

Provides time-limited, scope-bound token generation and verification.
Uses HMAC-SHA256 signing to prevent tampering. A token only asserts who it was
issued for; callers re-check authorization against current state.
"""
import base64
import hmac
import hashlib
import time
from dataclasses import dataclass
from typing import Optional


class InvalidTokenError(ValueError):
    """Raised when a token is malformed, tampered with, expired, or out of scope"""


@dataclass(frozen=True)
class TokenClaims:
    scope: str
    subject: str
    issued_at: int
    expires_at: int


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode().rstrip('=')


def _b64decode(value: str) -> bytes:
    padding = '=' * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode())


def _sign(secret: str, message: str) -> str:
    signature = hmac.new(secret.encode(), message.encode(), hashlib.sha256).digest()
    return _b64encode(signature)


def generate_signed_token(
    scope: str,
    subject: str,
    secret: str,
    expires_in_seconds: int,
    now: Optional[int] = None
) -> str:
    """Generate a signed token for ``subject`` within ``scope``

    The token carries scope, subject, issued-at and expiry, followed by an HMAC
    signature over those four fields.

    Args:
        scope: Token audience (e.g. "purchase", "photographer")
        subject: Identifier the token is issued for
        secret: Signing secret
        expires_in_seconds: Validity window
        now: Override for the current unix time (tests)

    Returns:
        URL-safe token string

    Raises:
        ValueError: If secret is empty
    """
    if not secret:
        raise ValueError("Token signing secret is required")

    issued_at = int(time.time()) if now is None else int(now)
    expires_at = issued_at + int(expires_in_seconds)
    payload = f"{scope}:{subject}:{issued_at}:{expires_at}"
    message = _b64encode(payload.encode())
    return f"{message}.{_sign(secret, message)}"


def verify_signed_token(
    token: str,
    secret: str,
    scope: str,
    now: Optional[int] = None
) -> TokenClaims:
    """Verify a signed token and return its claims

    Raises:
        InvalidTokenError: If the token is malformed, the signature does not
            match, the scope differs, or the token has expired
    """
    if not token or not secret:
        raise InvalidTokenError("Token is missing")

    try:
        message, signature = token.split('.')
    except ValueError:
        raise InvalidTokenError("Malformed token")

    # Constant-time comparison to prevent timing attacks
    if not hmac.compare_digest(signature, _sign(secret, message)):
        raise InvalidTokenError("Invalid token signature")

    try:
        head, issued_at, expires_at = _b64decode(message).decode().rsplit(':', 2)
        token_scope, subject = head.split(':', 1)
        claims = TokenClaims(
            scope=token_scope,
            subject=subject,
            issued_at=int(issued_at),
            expires_at=int(expires_at)
        )
    except (ValueError, UnicodeDecodeError):
        raise InvalidTokenError("Malformed token")

    if claims.scope != scope:
        raise InvalidTokenError("Token scope mismatch")

    current = int(time.time()) if now is None else int(now)
    if claims.expires_at <= current:
        raise InvalidTokenError("Token expired")

    return claims
