"""Security dependencies, rate limiting, and API access logging"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from snapmatch.core.config import settings
from snapmatch.core.errors import NotConfigured, Unauthorized
from snapmatch.db.redis import check_rate_limit as redis_check_rate_limit
from snapmatch.db.session import get_db
from snapmatch.models.user import User
from snapmatch.utils.signed_tokens import InvalidTokenError, generate_signed_token, verify_signed_token

security_logger = logging.getLogger("security")
api_access_logger = logging.getLogger("api_access")

PHOTOGRAPHER_SCOPE = "photographer"
PHOTOGRAPHER_TOKEN_TTL_SECONDS = 60 * 60 * 24 * 7  # 7 days


def get_client_identifier(request: Request) -> str:
    """Get a unique identifier for rate limiting"""
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


def check_rate_limit(identifier: str, strict: bool = False) -> bool:
    """Check if request is within rate limit

    Args:
        identifier: Client identifier (IP)
        strict: If True, use the stricter window for expensive operations

    Returns:
        True if within limit, False if exceeded
    """
    return redis_check_rate_limit(identifier, strict=strict)


def rate_limit_selfie_search(request: Request) -> None:
    """Dependency: strict per-client limit on selfie searches"""
    identifier = get_client_identifier(request)
    if not check_rate_limit(f"find-me:{identifier}", strict=True):
        security_logger.warning(f"Selfie search rate limit exceeded - Identifier: {identifier}")
        raise HTTPException(429, "Rate limit exceeded. Please try again later.")


def get_bearer_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def issue_photographer_token(user_id: str, expires_in_seconds: int = PHOTOGRAPHER_TOKEN_TTL_SECONDS) -> str:
    if not settings.SECRET_KEY:
        raise NotConfigured("SECRET_KEY is not configured.")
    return generate_signed_token(PHOTOGRAPHER_SCOPE, user_id, settings.SECRET_KEY, expires_in_seconds)


def require_photographer(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency: Require a photographer bearer token, return the user"""
    token = get_bearer_token(request)
    if not token:
        raise Unauthorized("Unauthorized")
    if not settings.SECRET_KEY:
        raise NotConfigured("SECRET_KEY is not configured.")

    try:
        claims = verify_signed_token(token, settings.SECRET_KEY, PHOTOGRAPHER_SCOPE)
    except InvalidTokenError as e:
        security_logger.warning(
            f"Photographer token rejected - IP: {request.client.host if request.client else 'unknown'}, "
            f"Path: {request.url.path}, Reason: {e}"
        )
        raise Unauthorized("Unauthorized")

    user = db.query(User).filter(User.id == claims.subject).first()
    if not user:
        raise Unauthorized("Unauthorized")
    return user


def log_api_access(
    request: Request,
    status_code: int = 200,
    error: Optional[str] = None
):
    """Log detailed API access information"""
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"

    # No query string: download links carry purchase tokens there
    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "path": request.url.path,
        "client_ip": client_ip,
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "origin": request.headers.get("Origin", "none"),
        "status_code": status_code,
        "error": error
    }

    if error or status_code >= 400:
        api_access_logger.warning(f"API Access: {json.dumps(log_data)}")
    else:
        api_access_logger.info(f"API Access: {json.dumps(log_data)}")


def extract_grant_token(request: Request) -> Optional[str]:
    """Purchase grant from the bearer header, then ``?token=``, then ``X-Purchase-Token``"""
    return (
        get_bearer_token(request)
        or request.query_params.get("token")
        or request.headers.get("X-Purchase-Token")
        or None
    )
