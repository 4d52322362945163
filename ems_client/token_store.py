"""
Token Store: the only component that reads or writes the persisted session
(access token, refresh token, cached user). Without a storage backend every read
returns None and every write is dropped, so callers never special-case that environment.
"""
import json
import logging
import time

import jwt

from ems_client.config import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY
from ems_client.models import AuthResponse, Session, UserProfile
from ems_client.storage import Storage

logger = logging.getLogger(__name__)


def decode_expiry(token: str) -> float | None:
    """
    Read the exp claim without verifying the signature (the server validates tokens).
    None when the token is not a decodable JWT or has no exp.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError:
        return None
    exp = payload.get("exp")
    if isinstance(exp, (int, float)):
        return float(exp)
    return None


class TokenStore:
    def __init__(self, storage: Storage | None = None):
        self._storage = storage

    @property
    def available(self) -> bool:
        return self._storage is not None

    def _get(self, key: str) -> str | None:
        if self._storage is None:
            return None
        return self._storage.get_item(key)

    def _set(self, key: str, value: str) -> None:
        if self._storage is None:
            return
        self._storage.set_item(key, value)

    def _remove(self, key: str) -> None:
        if self._storage is None:
            return
        self._storage.remove_item(key)

    def get_access_token(self) -> str | None:
        return self._get(ACCESS_TOKEN_KEY)

    def set_access_token(self, token: str) -> None:
        self._set(ACCESS_TOKEN_KEY, token)

    def get_refresh_token(self) -> str | None:
        return self._get(REFRESH_TOKEN_KEY)

    def set_refresh_token(self, token: str) -> None:
        self._set(REFRESH_TOKEN_KEY, token)

    def get_user(self) -> UserProfile | None:
        raw = self._get(USER_KEY)
        if not raw:
            return None
        try:
            return UserProfile.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cached user: %s", e)
            return None

    def set_user(self, user: UserProfile) -> None:
        self._set(USER_KEY, json.dumps(user.to_dict()))

    def save(self, response: AuthResponse) -> Session:
        """Replace the whole session with a login/refresh response."""
        self.set_access_token(response.token)
        self.set_refresh_token(response.refresh_token)
        self.set_user(response.user)
        return Session.from_auth_response(response)

    def clear(self) -> None:
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY):
            self._remove(key)

    def get_session(self) -> Session | None:
        """Current session rebuilt from storage; expires_at comes from the token's exp claim."""
        access = self.get_access_token()
        refresh = self.get_refresh_token()
        user = self.get_user()
        if not access or not refresh or user is None:
            return None
        expires_at = decode_expiry(access)
        return Session(access_token=access, refresh_token=refresh, user=user, expires_at=expires_at or 0.0)

    def has_valid_token(self, now: float | None = None) -> bool:
        token = self.get_access_token()
        if not token:
            return False
        exp = decode_expiry(token)
        if exp is None:
            return False
        return (time.time() if now is None else now) < exp
