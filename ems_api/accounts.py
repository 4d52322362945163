"""
Account provisioning: invites for new employees, activation, and password reset.
Tokens are single use, expire after ACCOUNT_TOKEN_EXPIRES, and are stored hashed.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from ems_api.audit import EVENT_USER_INVITED, log_audit
from ems_api.config import ACCOUNT_TOKEN_EXPIRES
from ems_api.mailer import mailer
from ems_api.models import AccountToken, Employee, User
from ems_api.security import hash_password, hash_token, new_account_token
from ems_client.models import UserRole

logger = logging.getLogger(__name__)

PURPOSE_INVITE = "invite"
PURPOSE_RESET = "reset"

STATUS_ACTIVE = "ACTIVE"
STATUS_INVITED = "INVITED"


class AccountTokenError(Exception):
    """Token unknown, already used, expired, or issued for another purpose."""


def _issue(db: Session, user: User, purpose: str) -> str:
    raw = new_account_token()
    db.add(
        AccountToken(
            token_hash=hash_token(raw),
            purpose=purpose,
            user_id=user.id,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=ACCOUNT_TOKEN_EXPIRES),
        )
    )
    db.commit()
    return raw


def _consume(db: Session, raw: str, purpose: str) -> User:
    record = db.query(AccountToken).filter(AccountToken.token_hash == hash_token(raw)).first()
    if record is None or record.used or record.purpose != purpose:
        raise AccountTokenError("Invalid or expired token")
    if record.expires_at.replace(tzinfo=timezone.utc) < datetime.now(timezone.utc):
        raise AccountTokenError("Invalid or expired token")
    record.used = True
    return record.user


def invite_employee(db: Session, employee: Employee) -> str | None:
    """
    Create an INVITED user (username = email, role EMPLOYEE) linked to the employee and
    mail the activation link. Returns the raw token, or None when a user already exists.
    """
    existing = db.query(User).filter((User.email == employee.email) | (User.username == employee.email)).first()
    if existing is not None:
        logger.info("User for %s already exists; no invite sent", employee.email)
        return None
    user = User(
        username=employee.email,
        email=employee.email,
        role=UserRole.EMPLOYEE.value,
        status=STATUS_INVITED,
        employee_id=employee.id,
    )
    db.add(user)
    db.commit()
    raw = _issue(db, user, PURPOSE_INVITE)
    mailer.send_invite(user.email, raw)
    log_audit(db, EVENT_USER_INVITED, user_id=user.id, username=user.username)
    return raw


def activate_account(db: Session, raw: str, password: str) -> User:
    """password is the client pre-hash; stored as bcrypt over it."""
    user = _consume(db, raw, PURPOSE_INVITE)
    user.password_hash = hash_password(password)
    user.status = STATUS_ACTIVE
    db.commit()
    logger.info("Account activated: %s", user.username)
    return user


def request_password_reset(db: Session, email: str) -> str | None:
    """Mail a reset link. Unknown emails are ignored so callers cannot discover which accounts exist."""
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        logger.info("Password reset requested for unknown email")
        return None
    raw = _issue(db, user, PURPOSE_RESET)
    mailer.send_password_reset(user.email, raw)
    return raw


def reset_password(db: Session, raw: str, password: str) -> User:
    user = _consume(db, raw, PURPOSE_RESET)
    user.password_hash = hash_password(password)
    user.status = STATUS_ACTIVE
    db.commit()
    logger.info("Password reset: %s", user.username)
    return user
