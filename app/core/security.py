# app/core/security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from app.core.config import Settings, get_settings
from app.core.errors import AuthenticationError


def create_access_token(
    user_id: int,
    *,
    organization_id: Optional[int] = None,
    role: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
    settings: Optional[Settings] = None,
) -> str:
    """Issue an HS256 token; `sub` carries the user id."""
    settings = settings or get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims: Dict[str, Any] = {"sub": str(user_id), "exp": expire}
    if organization_id is not None:
        claims["org"] = organization_id
    if role is not None:
        claims["role"] = role
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        raise AuthenticationError("Could not validate credentials")
    if not payload.get("sub"):
        raise AuthenticationError("Could not validate credentials")
    return payload
