"""
ApiClient: wires the token store, auth service, interceptor and resource wrappers
around one shared httpx.AsyncClient.

    async with ApiClient(storage=FileStorage(STORAGE_PATH)) as api:
        await api.auth.login("admin", "secret")
        page = await api.employees.query(size=50)
"""
import logging
from typing import Any

import httpx

from ems_client.auth_service import AuthService
from ems_client.config import API_BASE_URL, REQUEST_TIMEOUT
from ems_client.guards import RoleGuard
from ems_client.hashing import PasswordHasher, default_hasher
from ems_client.http import send
from ems_client.interceptor import AuthInterceptor
from ems_client.navigation import HistoryNavigator, Navigator
from ems_client.resources import AssignmentResource, EmployeeResource, ResourceClient
from ems_client.storage import Storage
from ems_client.token_store import TokenStore

logger = logging.getLogger(__name__)


class ApiClient:
    def __init__(
        self,
        base_url: str = API_BASE_URL,
        *,
        storage: Storage | None = None,
        navigator: Navigator | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = REQUEST_TIMEOUT,
        hasher: PasswordHasher = default_hasher,
    ):
        self.navigator = navigator if navigator is not None else HistoryNavigator()
        self.token_store = TokenStore(storage)
        self.http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        self.auth = AuthService(self.http, self.token_store, self.navigator, hasher=hasher)
        self.interceptor = AuthInterceptor(self.auth)
        self.http.auth = self.interceptor
        self.guard = RoleGuard(self.auth, self.navigator)

        self.employees = EmployeeResource(self.http)
        self.departments = ResourceClient(self.http, "departments")
        self.locations = ResourceClient(self.http, "locations")
        self.projects = ResourceClient(self.http, "projects")
        self.tasks = ResourceClient(self.http, "tasks")
        self.assignments = AssignmentResource(self.http)

    async def __aenter__(self) -> "ApiClient":
        await self.auth.check_token_expiration()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.auth.aclose()
        await self.http.aclose()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await send(self.http, "GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await send(self.http, "POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await send(self.http, "PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await send(self.http, "DELETE", path)

    async def audit_events(self, limit: int = 50) -> list[dict[str, Any]]:
        """Recent security events (SYSTEM_ADMIN only)."""
        return await send(self.http, "GET", "/audit", params={"limit": limit})
