"""
Token issuing and password handling for the EMS API.
Access and refresh tokens are HS256 JWTs; passwords arrive SHA-256 pre-hashed from the
client and are stored as bcrypt over that digest.
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from ems_api.config import ACCESS_TOKEN_EXPIRES, JWT_ALGORITHM, JWT_SECRET_KEY, REFRESH_TOKEN_EXPIRES
from ems_api.models import User

logger = logging.getLogger(__name__)

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"


class TokenError(Exception):
    """Token is missing, malformed, expired, or of the wrong type."""


def hash_password(password: str) -> str:
    # Bcrypt has a 72-byte limit
    raw = password.encode("utf-8")
    if len(raw) > 72:
        raw = raw[:72]
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    raw = plain.encode("utf-8")[:72]
    return bcrypt.checkpw(raw, hashed.encode("utf-8"))


def hash_token(token: str) -> str:
    """SHA-256 hex of an invite/reset token; only this is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def new_account_token() -> str:
    return secrets.token_urlsafe(32)


def _encode(payload: dict) -> str:
    token = jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
    if isinstance(token, bytes):
        token = token.decode("utf-8")
    return token


def issue_access_token(user: User) -> str:
    now = datetime.now(timezone.utc)
    employee = user.employee
    payload = {
        "sub": user.username,
        "type": TOKEN_TYPE_ACCESS,
        "role": user.role,
        "userId": user.id,
        "employeeId": user.employee_id,
        "departmentId": employee.department_id if employee else None,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ACCESS_TOKEN_EXPIRES)).timestamp()),
        # Two tokens issued in the same second still differ
        "jti": secrets.token_hex(8),
    }
    return _encode(payload)


def issue_refresh_token(user: User) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.username,
        "type": TOKEN_TYPE_REFRESH,
        "userId": user.id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=REFRESH_TOKEN_EXPIRES)).timestamp()),
        "jti": secrets.token_hex(8),
    }
    return _encode(payload)


def auth_response(user: User) -> dict:
    """Body returned by login and refresh."""
    return {
        "token": issue_access_token(user),
        "refreshToken": issue_refresh_token(user),
        "user": user.to_dict(),
        "expiresIn": ACCESS_TOKEN_EXPIRES,
    }


def decode_token(token: str, expected_type: str) -> dict:
    """
    Verify signature and exp and check the type claim.
    Raises TokenError on any failure.
    """
    try:
        claims = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug("JWT verification failed: %s", e)
        raise TokenError("Token verification failed")
    if claims.get("type") != expected_type:
        raise TokenError(f"Expected {expected_type} token")
    if not claims.get("userId"):
        raise TokenError("Token has no userId")
    return claims
