"""
Request dependencies: bearer token extraction, current user, role and capability checks.
"""
import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ems_api.database import get_db
from ems_api.models import User
from ems_api.security import TOKEN_TYPE_ACCESS, TokenError, decode_token
from ems_client.models import UserRole
from ems_client.permissions import Action, Ownership, can

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Extract Bearer token from Authorization header. Raises 401 if missing or not Bearer."""
    if credentials is None:
        raise _unauthorized("Authorization header missing")
    if credentials.scheme.lower() != "bearer":
        raise _unauthorized("Bearer scheme required")
    return credentials.credentials


def get_current_user(
    token: Annotated[str, Depends(get_bearer_token)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Valid access token -> active user. Refresh tokens are rejected here."""
    try:
        claims = decode_token(token, TOKEN_TYPE_ACCESS)
    except TokenError as e:
        raise _unauthorized(str(e))
    user = db.get(User, claims["userId"])
    if user is None or user.status != "ACTIVE":
        raise _unauthorized("User not found or inactive")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: UserRole):
    """Dependency factory: require one of the given roles."""
    allowed = {r.value for r in roles}

    def _check(user: CurrentUser) -> User:
        if user.role not in allowed:
            logger.info("User %s (%s) denied; requires one of %s", user.username, user.role, sorted(allowed))
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return user

    return Depends(_check)


def authorize(user: User, resource: str, action: Action, ownership: Ownership | None = None) -> None:
    """Raise 403 unless the capability table allows the action."""
    if not can(user, resource, action, ownership):
        logger.info("User %s (%s) denied %s on %s", user.username, user.role, action.value, resource)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
