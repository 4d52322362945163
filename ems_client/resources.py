"""
CRUD wrappers over the REST resources. Every call goes through the shared intercepted
client, so bearer tokens and refresh cycles are handled below this layer.
"""
from typing import Any

import httpx

from ems_client.config import DEFAULT_PAGE_SIZE, LIST_ALL_PAGE_SIZE
from ems_client.http import send
from ems_client.models import Page, PageRequest


class ResourceClient:
    def __init__(self, http: httpx.AsyncClient, name: str):
        self._http = http
        self.name = name
        self.path = f"/{name}"

    async def query(
        self,
        page: int = 0,
        size: int = DEFAULT_PAGE_SIZE,
        sort_by: str | None = None,
        sort_dir: str = "ASC",
    ) -> Page:
        """Paginated query; the response also carries the available filter options."""
        request = PageRequest(page=page, size=size, sort_by=sort_by, sort_dir=sort_dir)
        data = await send(self._http, "POST", self.path, json=request.to_body())
        return Page.from_dict(data)

    async def list_page(
        self,
        page: int = 0,
        size: int = DEFAULT_PAGE_SIZE,
        sort_by: str | None = None,
        sort_dir: str = "ASC",
    ) -> Page:
        params = {"page": page, "size": size, "sortBy": sort_by or None, "sortDir": sort_dir.upper()}
        data = await send(self._http, "GET", self.path, params=params)
        return Page.from_dict(data)

    async def list_all(self) -> list[dict[str, Any]]:
        """Every record, for dropdowns. Follows pages until the last one."""
        items: list[dict[str, Any]] = []
        page = 0
        while True:
            result = await self.list_page(page=page, size=LIST_ALL_PAGE_SIZE)
            items.extend(result.content)
            if result.last or not result.content:
                return items
            page += 1

    async def get(self, item_id: str) -> dict[str, Any]:
        return await send(self._http, "GET", f"{self.path}/{item_id}")

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        return await send(self._http, "POST", f"{self.path}/create", json=data)

    async def update(self, item_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return await send(self._http, "PUT", f"{self.path}/{item_id}", json=data)

    async def delete(self, item_id: str) -> None:
        await send(self._http, "DELETE", f"{self.path}/{item_id}")


class EmployeeResource(ResourceClient):
    def __init__(self, http: httpx.AsyncClient):
        super().__init__(http, "employees")

    async def search(
        self,
        q: str,
        department_id: str | None = None,
        exclude_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Name/email search, e.g. for the manager picker."""
        params = {"q": q, "departmentId": department_id, "excludeId": exclude_id}
        return await send(self._http, "GET", f"{self.path}/search", params=params)


class AssignmentResource(ResourceClient):
    """Employee-project assignments, addressed by (employee_id, project_id)."""

    def __init__(self, http: httpx.AsyncClient):
        super().__init__(http, "employee-projects")

    async def get(self, employee_id: str, project_id: str) -> dict[str, Any] | None:
        """None when the employee is not assigned to the project."""
        return await send(self._http, "GET", f"{self.path}/{employee_id}/{project_id}")

    async def assign(
        self,
        employee_id: str,
        project_id: str,
        role: str | None = None,
        assigned_date: str | None = None,
    ) -> dict[str, Any]:
        body = {"employeeId": employee_id, "projectId": project_id, "role": role, "assignedDate": assigned_date}
        return await self.create(body)

    async def update(self, employee_id: str, project_id: str, data: dict[str, Any]) -> dict[str, Any]:
        body = {**data, "employeeId": employee_id, "projectId": project_id}
        return await send(self._http, "PUT", f"{self.path}/{employee_id}/{project_id}", json=body)

    async def delete(self, employee_id: str, project_id: str) -> None:
        await send(self._http, "DELETE", f"{self.path}/{employee_id}/{project_id}")
