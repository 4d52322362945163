"""
Route guard: decides whether the current user may open a route, redirecting otherwise.
"""
import logging
from typing import Iterable

from ems_client.auth_service import AuthService
from ems_client.config import DASHBOARD_ROUTE, LOGIN_ROUTE
from ems_client.models import UserRole
from ems_client.navigation import Navigator

logger = logging.getLogger(__name__)


class RoleGuard:
    def __init__(self, auth_service: AuthService, navigator: Navigator):
        self._auth = auth_service
        self._navigator = navigator

    def can_activate(self, required_roles: Iterable[UserRole | str] | None, url: str) -> bool:
        """
        Not authenticated: redirect to login with returnUrl. Authenticated without one of
        required_roles: redirect to the dashboard. No required roles: any signed-in user.
        """
        if not self._auth.is_authenticated():
            self._navigator.navigate(LOGIN_ROUTE, {"returnUrl": url})
            return False
        roles = list(required_roles or ())
        if not roles or self._auth.has_any_role(roles):
            return True
        user = self._auth.get_current_user()
        logger.info("Route %s denied for role %s", url, user.role if user else None)
        self._navigator.navigate(DASHBOARD_ROUTE)
        return False
