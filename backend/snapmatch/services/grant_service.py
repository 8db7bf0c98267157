"""Purchase access grants: short-lived bearer tokens scoped to one purchase

A grant proves which purchase the bearer completed checkout for. It carries no
entitlement; the delivery gate re-reads payment state on every use.
"""
import logging
from typing import Optional

from snapmatch.core.config import settings
from snapmatch.core.errors import NotConfigured, Unauthorized
from snapmatch.utils.signed_tokens import (
    InvalidTokenError, TokenClaims, generate_signed_token, verify_signed_token
)

security_logger = logging.getLogger("security")

GRANT_SCOPE = "purchase"
GRANT_TTL_SECONDS = 12 * 60 * 60


def _grant_secret() -> str:
    secret = settings.PURCHASE_ACCESS_TOKEN_SECRET or settings.SECRET_KEY
    if not secret:
        raise NotConfigured("Purchase access tokens are not configured.")
    return secret


def issue_access_grant(purchase_id: str, now: Optional[int] = None) -> str:
    """Sign a 12 hour grant for ``purchase_id``"""
    return generate_signed_token(GRANT_SCOPE, purchase_id, _grant_secret(), GRANT_TTL_SECONDS, now=now)


def verify_access_grant(purchase_id: str, token: Optional[str], now: Optional[int] = None) -> TokenClaims:
    """Check signature, expiry, and that the grant names ``purchase_id``

    Raises:
        Unauthorized: If the token is missing or invalid for this purchase
    """
    if not token:
        raise Unauthorized("Purchase access token is required.")

    try:
        claims = verify_signed_token(token, _grant_secret(), GRANT_SCOPE, now=now)
    except InvalidTokenError as e:
        security_logger.warning(f"Rejected purchase access token for purchase {purchase_id}: {e}")
        raise Unauthorized("Invalid purchase access token.")

    if claims.subject != purchase_id:
        security_logger.warning(
            f"Purchase access token for {claims.subject} presented against purchase {purchase_id}"
        )
        raise Unauthorized("Invalid purchase access token.")

    return claims
