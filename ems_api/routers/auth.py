"""
Auth endpoints under /api/auth: login, refresh, register, logout, activation, password reset.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ems_api import accounts
from ems_api.audit import (
    EVENT_ACCOUNT_ACTIVATED,
    EVENT_LOGIN_FAIL,
    EVENT_LOGIN_OK,
    EVENT_LOGIN_RATE_LIMITED,
    EVENT_LOGOUT,
    EVENT_PASSWORD_RESET,
    EVENT_PASSWORD_RESET_REQUESTED,
    EVENT_REFRESH_FAIL,
    EVENT_TOKEN_REFRESHED,
    EVENT_USER_REGISTERED,
    OUTCOME_FAIL,
    get_client_ip,
    log_audit,
)
from ems_api.database import get_db
from ems_api.deps import require_roles, security
from ems_api.errors import INVALID_CREDENTIALS_MESSAGE
from ems_api.models import User
from ems_api.rate_limit import login_limiter
from ems_api.schemas import (
    ActivateRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from ems_api.security import (
    TOKEN_TYPE_ACCESS,
    TOKEN_TYPE_REFRESH,
    TokenError,
    auth_response,
    decode_token,
    hash_password,
    verify_password,
)
from ems_client.models import UserRole

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Password is the client-side pre-hash; compared against bcrypt(pre-hash)."""
    ip = get_client_ip(request)
    retry_after = login_limiter.hit(ip or "unknown")
    if retry_after is not None:
        log_audit(db, EVENT_LOGIN_RATE_LIMITED, username=body.username, ip=ip, outcome=OUTCOME_FAIL)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
            headers={"Retry-After": str(retry_after)},
        )

    user = db.query(User).filter(User.username == body.username).first()
    if user is None or user.status != accounts.STATUS_ACTIVE or not verify_password(body.password, user.password_hash):
        log_audit(db, EVENT_LOGIN_FAIL, username=body.username, ip=ip, outcome=OUTCOME_FAIL)
        logger.info("Login failed for %s", body.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS_MESSAGE)

    user.last_login = datetime.now(timezone.utc)
    db.commit()
    log_audit(db, EVENT_LOGIN_OK, user_id=user.id, username=user.username, ip=ip)
    logger.info("Login ok for %s", user.username)
    return auth_response(user)


@router.post("/refresh")
def refresh(body: RefreshRequest, request: Request, db: Session = Depends(get_db)):
    """Exchange a refresh token for a new access/refresh pair."""
    ip = get_client_ip(request)
    try:
        claims = decode_token(body.refresh_token, TOKEN_TYPE_REFRESH)
    except TokenError as e:
        log_audit(db, EVENT_REFRESH_FAIL, ip=ip, outcome=OUTCOME_FAIL)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid refresh token: {e}")
    user = db.get(User, claims["userId"])
    if user is None or user.status != accounts.STATUS_ACTIVE:
        log_audit(db, EVENT_REFRESH_FAIL, user_id=claims["userId"], ip=ip, outcome=OUTCOME_FAIL)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token: user inactive")
    log_audit(db, EVENT_TOKEN_REFRESHED, user_id=user.id, username=user.username, ip=ip)
    return auth_response(user)


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    dependencies=[require_roles(UserRole.SYSTEM_ADMIN)],
)
def register(body: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    """Create an active user with the given role (system administrators only)."""
    if db.query(User).filter(User.username == body.username).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
    if db.query(User).filter(User.email == body.email).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
    user = User(
        username=body.username,
        email=body.email,
        password_hash=hash_password(body.password),
        role=body.role.value,
        status=accounts.STATUS_ACTIVE,
    )
    db.add(user)
    db.commit()
    log_audit(db, EVENT_USER_REGISTERED, user_id=user.id, username=user.username, ip=get_client_ip(request))
    return {"user": user.to_dict()}


@router.post("/logout")
def logout(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
):
    """
    Stateless tokens: nothing to revoke. Records the event when a valid token is presented;
    always 200 so a client can log out with an expired token.
    """
    user_id = username = None
    if credentials is not None:
        try:
            claims = decode_token(credentials.credentials, TOKEN_TYPE_ACCESS)
            user_id, username = claims["userId"], claims.get("sub")
        except TokenError as e:
            logger.debug("Logout with unusable token: %s", e)
    log_audit(db, EVENT_LOGOUT, user_id=user_id, username=username, ip=get_client_ip(request))
    return {"message": "Logged out"}


@router.post("/activate")
def activate(body: ActivateRequest, request: Request, db: Session = Depends(get_db)):
    try:
        user = accounts.activate_account(db, body.token, body.password)
    except accounts.AccountTokenError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    log_audit(db, EVENT_ACCOUNT_ACTIVATED, user_id=user.id, username=user.username, ip=get_client_ip(request))
    return {"message": "Account activated"}


@router.post("/forgot-password")
def forgot_password(body: ForgotPasswordRequest, request: Request, db: Session = Depends(get_db)):
    """Same response whether or not the email is known."""
    accounts.request_password_reset(db, body.email)
    log_audit(db, EVENT_PASSWORD_RESET_REQUESTED, ip=get_client_ip(request))
    return {"message": "If the email exists, a reset link has been sent"}


@router.post("/reset-password")
def reset_password(body: ResetPasswordRequest, request: Request, db: Session = Depends(get_db)):
    try:
        user = accounts.reset_password(db, body.token, body.password)
    except accounts.AccountTokenError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    log_audit(db, EVENT_PASSWORD_RESET, user_id=user.id, username=user.username, ip=get_client_ip(request))
    return {"message": "Password has been reset"}
