"""Tests for the resource wrappers and error mapping of ordinary API calls."""
import asyncio
import json

import httpx
import pytest

from ems_client.errors import ConflictError, NotFoundError, PermissionDeniedError, RateLimitedError, ValidationError


def _page(content, page=0, last=True, filters=None):
    return {
        "content": content,
        "page": page,
        "size": len(content),
        "totalElements": 3,
        "totalPages": 2,
        "first": page == 0,
        "last": last,
        "hasNext": not last,
        "hasPrevious": page > 0,
        "filters": filters or {},
    }


def test_query_posts_page_request_and_parses_filters(make_client, fake_api, seed_session):
    seed_session(valid=True)
    fake_api.routes[("POST", "/api/projects")] = httpx.Response(
        200,
        json=_page(
            [{"id": "p1"}],
            filters={"statuses": [{"id": "Active", "label": "Active", "value": "Active"}]},
        ),
    )

    async def run():
        api = make_client()
        try:
            return await api.projects.query(page=1, size=10, sort_by="name", sort_dir="desc")
        finally:
            await api.aclose()

    page = asyncio.run(run())
    assert json.loads(fake_api.calls_to("/api/projects")[0].content) == {
        "page": 1,
        "size": 10,
        "sortBy": "name",
        "sortDir": "DESC",
    }
    assert page.content == [{"id": "p1"}]
    assert page.filters["statuses"][0].label == "Active"


def test_query_omits_blank_sort_by(make_client, fake_api, seed_session):
    seed_session(valid=True)
    fake_api.routes[("POST", "/api/tasks")] = httpx.Response(200, json=_page([]))

    async def run():
        api = make_client()
        try:
            await api.tasks.query(sort_by="  ")
        finally:
            await api.aclose()

    asyncio.run(run())
    assert "sortBy" not in json.loads(fake_api.calls_to("/api/tasks")[0].content)


def test_list_all_follows_pages(make_client, fake_api, seed_session):
    seed_session(valid=True)
    pages = iter([_page([{"id": "l1"}, {"id": "l2"}], last=False), _page([{"id": "l3"}], page=1)])
    fake_api.routes[("GET", "/api/locations")] = lambda request: httpx.Response(200, json=next(pages))

    async def run():
        api = make_client()
        try:
            return await api.locations.list_all()
        finally:
            await api.aclose()

    items = asyncio.run(run())
    assert [i["id"] for i in items] == ["l1", "l2", "l3"]
    assert [r.url.params["page"] for r in fake_api.calls_to("/api/locations")] == ["0", "1"]


def test_crud_paths(make_client, fake_api, seed_session):
    seed_session(valid=True)
    fake_api.routes[("POST", "/api/departments/create")] = httpx.Response(201, json={"id": "d1"})
    fake_api.routes[("PUT", "/api/departments/d1")] = httpx.Response(200, json={"id": "d1", "name": "Ops"})
    fake_api.routes[("DELETE", "/api/departments/d1")] = httpx.Response(204)
    fake_api.routes[("GET", "/api/employees/search")] = httpx.Response(200, json=[{"id": "e2"}])

    async def run():
        api = make_client()
        try:
            created = await api.departments.create({"name": "Ops"})
            updated = await api.departments.update("d1", {"name": "Ops"})
            deleted = await api.departments.delete("d1")
            found = await api.employees.search("ann", department_id="d1")
            return created, updated, deleted, found
        finally:
            await api.aclose()

    created, updated, deleted, found = asyncio.run(run())
    assert created == {"id": "d1"}
    assert updated["name"] == "Ops"
    assert deleted is None
    assert found == [{"id": "e2"}]
    params = fake_api.calls_to("/api/employees/search")[0].url.params
    assert params["q"] == "ann" and params["departmentId"] == "d1"
    assert "excludeId" not in params


@pytest.mark.parametrize(
    "status,body,headers,error",
    [
        (403, {"message": "Access denied"}, {}, PermissionDeniedError),
        (404, {"message": "Employee not found"}, {}, NotFoundError),
        (409, {"message": "Email already exists"}, {}, ConflictError),
        (429, {"message": "Too many"}, {"Retry-After": "30"}, RateLimitedError),
    ],
)
def test_status_mapping(make_client, fake_api, seed_session, status, body, headers, error):
    seed_session(valid=True)
    fake_api.routes[("GET", "/api/employees/x")] = httpx.Response(status, json=body, headers=headers)

    async def run():
        api = make_client()
        try:
            with pytest.raises(error) as exc_info:
                await api.employees.get("x")
            return exc_info.value
        finally:
            await api.aclose()

    err = asyncio.run(run())
    assert err.status == status
    assert err.message == body["message"]
    if status == 429:
        assert err.retry_after == 30
    assert fake_api.refresh_calls == 0


def test_validation_errors_carry_field_messages(make_client, fake_api, seed_session):
    seed_session(valid=True)
    fake_api.routes[("POST", "/api/employees/create")] = httpx.Response(
        400,
        json={
            "status": 400,
            "error": "Bad Request",
            "message": "Validation failed",
            "path": "/api/employees/create",
            "fieldErrors": [
                {"field": "email", "rejectedValue": "nope", "message": "value is not a valid email address"},
                {"field": "salary", "rejectedValue": -1, "message": "Input should be greater than or equal to 0"},
            ],
        },
    )

    async def run():
        api = make_client()
        try:
            with pytest.raises(ValidationError) as exc_info:
                await api.employees.create({"email": "nope", "salary": -1})
            return exc_info.value
        finally:
            await api.aclose()

    err = asyncio.run(run())
    assert err.status == 400
    assert set(err.messages_by_field()) == {"email", "salary"}
    assert err.field_errors[1].rejected_value == -1
    assert fake_api.refresh_calls == 0 and fake_api.logout_calls == 0


def test_assignment_paths(make_client, fake_api, seed_session):
    seed_session(valid=True)
    fake_api.routes[("GET", "/api/employee-projects/e1/p1")] = httpx.Response(
        200, content=b"null", headers={"content-type": "application/json"}
    )
    fake_api.routes[("POST", "/api/employee-projects/create")] = httpx.Response(
        201, json={"employeeId": "e1", "projectId": "p1", "role": "Dev"}
    )
    fake_api.routes[("DELETE", "/api/employee-projects/e1/p1")] = httpx.Response(204)

    async def run():
        api = make_client()
        try:
            missing = await api.assignments.get("e1", "p1")
            created = await api.assignments.assign("e1", "p1", role="Dev")
            await api.assignments.delete("e1", "p1")
            return missing, created
        finally:
            await api.aclose()

    missing, created = asyncio.run(run())
    assert missing is None
    assert created["role"] == "Dev"
    body = json.loads(fake_api.calls_to("/api/employee-projects/create")[0].content)
    assert body == {"employeeId": "e1", "projectId": "p1", "role": "Dev", "assignedDate": None}
