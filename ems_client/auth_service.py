"""
Auth Service: session lifecycle against /auth (login, register, refresh, logout,
activation, password reset) and role checks. Keeps the Token Store and the
current_user / authenticated streams consistent with server state.
"""
import asyncio
import logging
import time
from typing import Iterable

import httpx

from ems_client.config import LOGIN_ROUTE, TOKEN_REFRESH_LEAD_SECONDS
from ems_client.errors import ApiError, NoRefreshTokenError
from ems_client.hashing import PasswordHasher, default_hasher
from ems_client.http import send
from ems_client.models import ADMIN_ROLES, AuthResponse, Session, UserProfile, UserRole
from ems_client.navigation import Navigator
from ems_client.observable import Observable
from ems_client.token_store import TokenStore, decode_expiry

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(
        self,
        http: httpx.AsyncClient,
        token_store: TokenStore,
        navigator: Navigator | None = None,
        hasher: PasswordHasher = default_hasher,
    ):
        self._http = http
        self._store = token_store
        self._navigator = navigator
        self._hasher = hasher
        self._background: set[asyncio.Task] = set()
        self.current_user: Observable[UserProfile | None] = Observable(None)
        self.authenticated: Observable[bool] = Observable(False)
        if token_store.available:
            self.current_user.emit(token_store.get_user())
            self.authenticated.emit(token_store.has_valid_token())

    # --- Session lifecycle ---

    async def login(self, username: str, password: str) -> Session:
        """Username stays plain; only the password is pre-hashed."""
        body = {"username": username, "password": self._hasher.hash_password(password)}
        try:
            data = await send(self._http, "POST", "/auth/login", json=body)
        except ApiError as e:
            logger.info("Login failed for %s: %s", username, e)
            raise
        session = self._establish(AuthResponse.from_dict(data))
        logger.info("Logged in as %s", username)
        return session

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        role: UserRole | str | None = None,
    ) -> UserProfile:
        """Create a user (SYSTEM_ADMIN only). The current session is kept."""
        body = {"username": username, "email": email, "password": self._hasher.hash_password(password)}
        if role is not None:
            body["role"] = role.value if isinstance(role, UserRole) else role
        data = await send(self._http, "POST", "/auth/register", json=body)
        user = UserProfile.from_dict(data["user"])
        logger.info("User created: %s", user.username)
        return user

    async def refresh_token(self) -> Session:
        """
        Exchange the stored refresh token for a new session.
        No refresh token: NoRefreshTokenError, no network call, no logout.
        Any other failure logs out before re-raising.
        """
        refresh = self._store.get_refresh_token()
        if not refresh:
            raise NoRefreshTokenError()
        try:
            data = await send(self._http, "POST", "/auth/refresh", json={"refreshToken": refresh})
            response = AuthResponse.from_dict(data)
        except Exception as e:
            logger.warning("Token refresh failed: %s", e)
            self.logout(expired=True)
            raise
        logger.info("Access token refreshed for %s", response.user.username)
        return self._establish(response)

    def logout(self, *, expired: bool = False) -> None:
        """
        End the session locally; never raises. The server-side logout call is
        fire-and-forget and runs only when storage is available.
        """
        token = self._store.get_access_token()
        if self._store.available and token:
            self._notify_server(token)

        self._store.clear()
        self.current_user.emit(None)
        self.authenticated.emit(False)

        if self._store.available and self._navigator is not None:
            self._navigator.navigate(LOGIN_ROUTE, {"expired": "true"} if expired else None)

    async def check_token_expiration(self, now: float | None = None) -> None:
        """Refresh once when the stored access token is expired or expires within the lead time."""
        if not self._store.available:
            return
        token = self._store.get_access_token()
        if not token:
            return
        exp = decode_expiry(token)
        if exp is None:
            logger.warning("Stored access token is unreadable; logging out")
            self.logout()
            return
        remaining = exp - (time.time() if now is None else now)
        if remaining >= TOKEN_REFRESH_LEAD_SECONDS:
            return

        logger.info("Access token expires in %ds; refreshing", int(remaining))
        try:
            await self.refresh_token()
        except NoRefreshTokenError:
            self.logout(expired=True)
        except Exception as e:
            # refresh_token has already logged out
            logger.info("Startup refresh failed: %s", e)

    async def aclose(self) -> None:
        """Wait for outstanding fire-and-forget calls."""
        if not self._background:
            return
        results = await asyncio.gather(*self._background, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Background auth call failed: %s", result)

    def _establish(self, response: AuthResponse) -> Session:
        session = self._store.save(response)
        self.current_user.emit(response.user)
        self.authenticated.emit(True)
        return session

    def _notify_server(self, token: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; skipping server-side logout")
            return
        task = loop.create_task(self._post_logout(token))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _post_logout(self, token: str) -> None:
        try:
            await send(self._http, "POST", "/auth/logout", headers={"Authorization": f"Bearer {token}"})
        except Exception as e:
            logger.warning("Logout API call failed: %s", e)

    # --- Account provisioning (exempt endpoints) ---

    async def activate_account(self, token: str, password: str) -> None:
        await send(
            self._http,
            "POST",
            "/auth/activate",
            json={"token": token, "password": self._hasher.hash_password(password)},
        )

    async def forgot_password(self, email: str) -> None:
        await send(self._http, "POST", "/auth/forgot-password", json={"email": email})

    async def reset_password(self, token: str, password: str) -> None:
        await send(
            self._http,
            "POST",
            "/auth/reset-password",
            json={"token": token, "password": self._hasher.hash_password(password)},
        )

    # --- Reads ---

    def get_token(self) -> str | None:
        return self._store.get_access_token()

    def get_refresh_token(self) -> str | None:
        return self._store.get_refresh_token()

    def get_current_user(self) -> UserProfile | None:
        return self.current_user.value

    def is_authenticated(self) -> bool:
        return self.authenticated.value

    def has_role(self, role: UserRole | str) -> bool:
        user = self.get_current_user()
        return user is not None and user.role is not None and user.role == UserRole.from_value(role)

    def has_any_role(self, roles: Iterable[UserRole | str]) -> bool:
        user = self.get_current_user()
        if user is None or user.role is None:
            return False
        return user.role in {UserRole.from_value(r) for r in roles}

    def is_admin(self) -> bool:
        return self.has_any_role(ADMIN_ROLES)

    def is_system_admin(self) -> bool:
        return self.has_role(UserRole.SYSTEM_ADMIN)

    def is_hr_manager(self) -> bool:
        return self.has_role(UserRole.HR_MANAGER)

    def is_department_manager(self) -> bool:
        return self.has_role(UserRole.DEPARTMENT_MANAGER)
