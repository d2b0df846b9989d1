# app/core/auth.py
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.errors import AuthenticationError, AuthorizationError
from app.core.security import decode_access_token
from app.db.session import SessionLocal
from app.models.user import User

# Bearer scheme for Swagger "Authorize" button and DI
bearer_scheme = HTTPBearer(auto_error=False)


def get_db(request: Request):
    """Yield a session from the app's factory (app.state.session_factory) and close it afterwards."""
    factory = getattr(request.app.state, "session_factory", None) or SessionLocal
    db = factory()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Decode JWT and load the user from DB or raise 401.
    Additionally:
      - reject deactivated users (403)
      - store user context on request.state (for request logging)
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Could not validate credentials")

    user = db.get(User, user_id)
    if user is None:
        raise AuthenticationError("Could not validate credentials")

    if user.is_active is False:
        raise AuthorizationError("User is disabled")

    # Expose user context to middleware/loggers
    request.state.user_id = user.id
    request.state.organization_id = user.organization_id

    return user
