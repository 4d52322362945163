"""
Seed the initial system administrator from environment. No hardcoded credentials.
Set EMS_SEED_ADMIN_USER + EMS_SEED_ADMIN_PASSWORD (+ optional EMS_SEED_ADMIN_EMAIL).
"""
import logging
import os

from sqlalchemy.orm import Session

from ems_api.accounts import STATUS_ACTIVE
from ems_api.models import User
from ems_api.security import hash_password
from ems_client.hashing import hash_password as client_prehash
from ems_client.models import UserRole

logger = logging.getLogger(__name__)


def create_user(db: Session, username: str, password: str, role: UserRole, email: str | None = None, **extra) -> User:
    """
    Create an active user from a plaintext password. Stored as bcrypt over the same
    pre-hash the client sends at login.
    """
    user = User(
        username=username,
        email=email or f"{username}@ems.example.com",
        password_hash=hash_password(client_prehash(password)),
        role=role.value,
        status=STATUS_ACTIVE,
        **extra,
    )
    db.add(user)
    db.commit()
    return user


def seed_from_env(db: Session) -> None:
    """Create the system administrator from env if set and missing."""
    username = os.environ.get("EMS_SEED_ADMIN_USER")
    password = os.environ.get("EMS_SEED_ADMIN_PASSWORD")
    if not (username and password):
        logger.debug("No seed admin configured")
        return
    if db.query(User).filter(User.username == username).first() is not None:
        logger.debug("User already exists: %s", username)
        return
    create_user(db, username, password, UserRole.SYSTEM_ADMIN, email=os.environ.get("EMS_SEED_ADMIN_EMAIL"))
    logger.info("Seeded system administrator: %s", username)
