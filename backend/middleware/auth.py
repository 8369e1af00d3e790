"""
Caller authentication helpers.

Access tokens are issued by the account service; this service only verifies
them. Tokens are HS256 JWTs whose `sub` is the caller's account id.

    Authorization: Bearer <jwt>
"""
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from domain.errors import UnauthorizedError

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def decode_access_token(token: str) -> dict:
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=500,
            detail="Server auth misconfigured (JWT secret missing).",
        )
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Access token expired.")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid access token.")


def issue_access_token(*, account_id: int, ttl_minutes: int = 15) -> str:
    """Mint a token the way the account service does (tests and local tooling)."""
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=500,
            detail="Server auth misconfigured (JWT secret missing).",
        )
    now = _now_utc()
    exp = now.replace(microsecond=0) + timedelta(minutes=ttl_minutes)
    payload = {
        "iss": settings.jwt_issuer,
        "sub": str(account_id),
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


async def require_account(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
):
    """
    Dependency resolving the calling Account from its bearer token.

    401 when the header is missing, the token is invalid, or the account
    no longer exists.
    """
    from services import directory_service

    token = _parse_bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Authentication required. Provide Authorization: Bearer <token>.")
    payload = decode_access_token(token)
    try:
        account_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid access token subject.")

    account = await directory_service.get_account(db, account_id)
    if account is None:
        logger.warning(f"Token for unknown account {account_id}")
        raise UnauthorizedError("Account not found for access token.")
    return account
