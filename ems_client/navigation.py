"""
Navigation seam between the auth layer and whatever UI drives the client.
"""
import logging
from typing import Protocol
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


class Navigator(Protocol):
    def navigate(self, route: str, params: dict[str, str] | None = None) -> None: ...


class HistoryNavigator:
    """Keeps the current route and the route history."""

    def __init__(self, start: str = "/"):
        self.history: list[str] = [start]

    @property
    def current(self) -> str:
        return self.history[-1]

    def navigate(self, route: str, params: dict[str, str] | None = None) -> None:
        url = f"{route}?{urlencode(params)}" if params else route
        logger.debug("Navigating to %s", url)
        self.history.append(url)
