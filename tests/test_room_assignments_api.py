from typing import Dict

import pytest
from httpx import AsyncClient
from sqlalchemy import text

from conftest import auth_headers

BASE = "/api/v1/room-assignments"

A_PAYLOAD = {
    "room_id": 1,
    "course_id": 10,
    "teacher_id": 5,
    "start_time": "08:00:00",
    "end_time": "10:00:00",
    "weekdays": ["Monday", "Wednesday"],
}


async def _create(client: AsyncClient, headers: Dict[str, str], **overrides) -> Dict:
    response = await client.post(BASE, json={**A_PAYLOAD, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_assignment(client: AsyncClient, admin_headers, audit_sink) -> None:
    data = await _create(client, admin_headers, notes="First term")

    assert data["status"] == "active"
    assert data["start_time"] == "08:00:00"
    assert data["end_time"] == "10:00:00"
    assert data["weekdays"] == "Monday,Wednesday"
    assert data["notes"] == "First term"
    assert data["room"]["code"] == "A-101"
    assert data["course"]["name"] == "Algebra"
    assert data["teacher"]["full_name"] == "Ana Torres"
    assert data["enrolled_students"] == 9
    assert data["occupancy_percentage"] == 30

    assert len(audit_sink.events) == 1
    assert audit_sink.events[0].actor_id == "user-1"
    assert audit_sink.events[0].actor_role == "SUPER_ADMIN"


@pytest.mark.asyncio
async def test_create_conflict_returns_409_with_details(client: AsyncClient, admin_headers) -> None:
    a = await _create(client, admin_headers)

    response = await client.post(
        BASE,
        json={**A_PAYLOAD, "course_id": 11, "teacher_id": 6, "start_time": "09:00:00",
              "end_time": "11:00:00", "weekdays": "Monday"},
        headers=admin_headers,
    )

    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "schedule_conflict"
    assert body["dimension"] == "room"
    assert body["conflict"]["assignment_id"] == a["id"]
    assert body["conflict"]["course_name"] == "Algebra"
    assert body["conflict"]["teacher_name"] == "Ana Torres"
    assert body["conflict"]["weekdays"] == "Monday,Wednesday"
    assert "08:00:00-10:00:00" in body["detail"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"start_time": "8:00"},
        {"end_time": "25:00:00"},
        {"weekdays": []},
        {"weekdays": "Lunes"},
        {"room_id": None},
    ],
)
async def test_malformed_input_is_422(client: AsyncClient, admin_headers, overrides) -> None:
    response = await client.post(BASE, json={**A_PAYLOAD, **overrides}, headers=admin_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_error_kinds_are_distinguishable(client: AsyncClient, admin_headers) -> None:
    invalid = await client.post(
        BASE, json={**A_PAYLOAD, "start_time": "11:00:00"}, headers=admin_headers
    )
    missing = await client.post(BASE, json={**A_PAYLOAD, "teacher_id": 999}, headers=admin_headers)
    unavailable = await client.post(BASE, json={**A_PAYLOAD, "room_id": 3}, headers=admin_headers)

    assert (invalid.status_code, invalid.json()["error_code"]) == (400, "validation_error")
    assert (missing.status_code, missing.json()["error_code"]) == (404, "not_found")
    assert (unavailable.status_code, unavailable.json()["error_code"]) == (409, "unavailable")


@pytest.mark.asyncio
async def test_get_update_and_cancel(client: AsyncClient, admin_headers, audit_sink) -> None:
    a = await _create(client, admin_headers)

    response = await client.put(f"{BASE}/{a['id']}", json={"notes": "Projector needed"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["notes"] == "Projector needed"
    assert response.json()["weekdays"] == "Monday,Wednesday"

    response = await client.delete(f"{BASE}/{a['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Room assignment cancelled"}

    response = await client.get(f"{BASE}/{a['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    assert [e.action.value for e in audit_sink.events] == ["create", "update", "cancel"]


@pytest.mark.asyncio
async def test_update_rejects_null_for_required_fields(client: AsyncClient, admin_headers) -> None:
    a = await _create(client, admin_headers)

    response = await client.put(f"{BASE}/{a['id']}", json={"room_id": None}, headers=admin_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_assignment_is_404(client: AsyncClient, admin_headers) -> None:
    assert (await client.get(f"{BASE}/999", headers=admin_headers)).status_code == 404
    assert (await client.put(f"{BASE}/999", json={"notes": "x"}, headers=admin_headers)).status_code == 404
    assert (await client.delete(f"{BASE}/999", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_listing_and_schedules(client: AsyncClient, admin_headers) -> None:
    a = await _create(client, admin_headers)
    b = await _create(client, admin_headers, course_id=11, teacher_id=6, weekdays="Tuesday")

    response = await client.get(BASE, params={"page": 1, "page_size": 1}, headers=admin_headers)
    assert response.status_code == 200
    page = response.json()
    assert page["total"] == 2
    assert page["total_pages"] == 2
    assert [item["id"] for item in page["items"]] == [b["id"]]

    response = await client.get(BASE, params={"teacher_id": 5, "status": "active"}, headers=admin_headers)
    assert [item["id"] for item in response.json()["items"]] == [a["id"]]

    response = await client.get(f"{BASE}/rooms/1", headers=admin_headers)
    assert [item["id"] for item in response.json()] == [a["id"], b["id"]]

    response = await client.get(f"{BASE}/teachers/6", headers=admin_headers)
    assert [item["id"] for item in response.json()] == [b["id"]]


@pytest.mark.asyncio
async def test_listing_rejects_oversized_page(client: AsyncClient, admin_headers) -> None:
    response = await client.get(BASE, params={"page_size": 1000}, headers=admin_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_availability_endpoint(client: AsyncClient, admin_headers) -> None:
    a = await _create(client, admin_headers)
    params = {"room_id": 1, "start_time": "09:00:00", "end_time": "11:00:00", "weekdays": "Monday"}

    busy = await client.get(f"{BASE}/availability", params=params, headers=admin_headers)
    assert busy.status_code == 200
    assert busy.json()["available"] is False
    assert busy.json()["conflicts"][0]["assignment_id"] == a["id"]
    assert busy.json()["conflicts"][0]["dimension"] == "room"

    own = await client.get(
        f"{BASE}/availability", params={**params, "exclude_id": a["id"]}, headers=admin_headers
    )
    assert own.json() == {"available": True, "conflicts": []}

    bad = await client.get(
        f"{BASE}/availability", params={**params, "weekdays": "Someday"}, headers=admin_headers
    )
    assert bad.status_code == 422

    backwards = await client.get(
        f"{BASE}/availability", params={**params, "end_time": "08:00:00"}, headers=admin_headers
    )
    assert backwards.status_code == 400


@pytest.mark.asyncio
async def test_statistics_endpoint(client: AsyncClient, admin_headers) -> None:
    await _create(client, admin_headers)

    response = await client.get(f"{BASE}/statistics", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {
        "total": 1,
        "active": 1,
        "inactive": 0,
        "cancelled": 0,
        "rooms_in_use": 1,
        "teachers_assigned": 1,
    }


@pytest.mark.asyncio
async def test_requires_token(client: AsyncClient) -> None:
    assert (await client.get(BASE)).status_code == 401
    bad = await client.get(BASE, headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401


@pytest.mark.asyncio
async def test_permissions_are_enforced(client: AsyncClient) -> None:
    reader = auth_headers(role="TEACHER", permissions={"room_assignments": {"read": True}})

    assert (await client.get(BASE, headers=reader)).status_code == 200
    response = await client.post(BASE, json=A_PAYLOAD, headers=reader)
    assert response.status_code == 403

    writer = auth_headers(
        role="COORDINATOR", permissions={"room_assignments": {"read": True, "create": True}}
    )
    assert (await client.post(BASE, json=A_PAYLOAD, headers=writer)).status_code == 201


@pytest.mark.asyncio
async def test_storage_failures_return_503(client: AsyncClient, admin_headers, engine) -> None:
    a = await _create(client, admin_headers)
    async with engine.begin() as conn:
        await conn.execute(text("DROP TABLE room_assignments"))

    responses = [
        await client.get(f"{BASE}/{a['id']}", headers=admin_headers),
        await client.get(BASE, headers=admin_headers),
        await client.get(f"{BASE}/statistics", headers=admin_headers),
        await client.get(f"{BASE}/rooms/1", headers=admin_headers),
        await client.put(f"{BASE}/{a['id']}", json={"notes": "x"}, headers=admin_headers),
        await client.delete(f"{BASE}/{a['id']}", headers=admin_headers),
        await client.post(BASE, json=A_PAYLOAD, headers=admin_headers),
    ]

    for response in responses:
        assert response.status_code == 503, response.text
        assert response.json()["error_code"] == "storage_error"
