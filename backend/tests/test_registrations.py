"""
Tests for registration endpoints: the lifecycle over HTTP.
"""

import pytest
from httpx import AsyncClient

from conftest import bearer, make_event, make_user


async def register(client: AsyncClient, event_id: int, headers: dict):
    return await client.post(f"/api/v1/registrations/{event_id}", headers=headers)


async def cancel(client: AsyncClient, registration_id: int, headers: dict):
    return await client.put(f"/api/v1/registrations/{registration_id}/cancel", headers=headers)


async def available_seats(client: AsyncClient, event_id: int) -> int:
    response = await client.get(f"/api/v1/events/{event_id}/availability")
    return response.json()["available_seats"]


@pytest.mark.asyncio
async def test_register_for_event(client: AsyncClient, auth_headers, test_user, test_event):
    """Successful registration is confirmed and takes one seat."""
    response = await register(client, test_event.id, auth_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["event_id"] == test_event.id
    assert data["user_id"] == test_user.id
    assert data["status"] == "confirmed"

    assert await available_seats(client, test_event.id) == 99


@pytest.mark.asyncio
async def test_register_unauthenticated(client: AsyncClient, test_event):
    response = await client.post(f"/api/v1/registrations/{test_event.id}")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_register_nonexistent_event(client: AsyncClient, auth_headers):
    response = await register(client, 99999, auth_headers)
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


@pytest.mark.asyncio
async def test_register_twice(client: AsyncClient, auth_headers, test_event):
    """Registering while confirmed is a conflict."""
    assert (await register(client, test_event.id, auth_headers)).status_code == 201

    response = await register(client, test_event.id, auth_headers)
    assert response.status_code == 409
    assert response.json()["kind"] == "already_registered"
    assert await available_seats(client, test_event.id) == 99


@pytest.mark.asyncio
async def test_register_full_event(client: AsyncClient, auth_headers, other_headers, single_seat_event):
    assert (await register(client, single_seat_event.id, auth_headers)).status_code == 201

    response = await register(client, single_seat_event.id, other_headers)
    assert response.status_code == 409
    assert response.json()["kind"] == "full"
    assert await available_seats(client, single_seat_event.id) == 0


@pytest.mark.asyncio
async def test_cancel_registration(client: AsyncClient, auth_headers, test_event):
    """Cancelling gives the seat back on the next availability read."""
    registration = (await register(client, test_event.id, auth_headers)).json()
    assert await available_seats(client, test_event.id) == 99

    response = await cancel(client, registration["id"], auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert await available_seats(client, test_event.id) == 100


@pytest.mark.asyncio
async def test_cancel_already_cancelled(client: AsyncClient, auth_headers, test_event):
    registration = (await register(client, test_event.id, auth_headers)).json()
    await cancel(client, registration["id"], auth_headers)

    response = await cancel(client, registration["id"], auth_headers)
    assert response.status_code == 409
    assert response.json()["kind"] == "already_cancelled"
    assert await available_seats(client, test_event.id) == 100


@pytest.mark.asyncio
async def test_cancel_someone_elses_registration(client: AsyncClient, auth_headers, other_headers, test_event):
    registration = (await register(client, test_event.id, auth_headers)).json()

    response = await cancel(client, registration["id"], other_headers)
    assert response.status_code == 403
    assert await available_seats(client, test_event.id) == 99


@pytest.mark.asyncio
async def test_admin_can_cancel_any_registration(client: AsyncClient, auth_headers, admin_headers, test_event):
    registration = (await register(client, test_event.id, auth_headers)).json()

    response = await cancel(client, registration["id"], admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_cancel_unknown_registration(client: AsyncClient, auth_headers):
    response = await cancel(client, 99999, auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reregister_reuses_registration(client: AsyncClient, auth_headers, test_event):
    """Registering after cancelling re-activates the same record with a new date."""
    first = (await register(client, test_event.id, auth_headers)).json()
    await cancel(client, first["id"], auth_headers)

    response = await register(client, test_event.id, auth_headers)
    assert response.status_code == 200
    second = response.json()
    assert second["id"] == first["id"]
    assert second["status"] == "confirmed"
    assert second["registration_date"] != first["registration_date"]

    mine = (await client.get("/api/v1/registrations/mine", headers=auth_headers)).json()
    assert len(mine) == 1


@pytest.mark.asyncio
async def test_check_registration_status(client: AsyncClient, auth_headers, test_event):
    url = f"/api/v1/registrations/check/{test_event.id}"

    response = await client.get(url, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["registered"] is False
    assert response.json()["registration_id"] is None

    registration = (await register(client, test_event.id, auth_headers)).json()
    data = (await client.get(url, headers=auth_headers)).json()
    assert data["registered"] is True
    assert data["status"] == "confirmed"
    assert data["registration_id"] == registration["id"]
    assert data["registration_date"] is not None

    await cancel(client, registration["id"], auth_headers)
    data = (await client.get(url, headers=auth_headers)).json()
    assert data["registered"] is False
    assert data["status"] == "cancelled"
    assert data["registration_id"] == registration["id"]


@pytest.mark.asyncio
async def test_list_my_registrations(client: AsyncClient, db_session, admin_user, auth_headers, test_event):
    """User sees their own registrations, most recent first."""
    later = await make_event(db_session, admin_user, title="Second Event")
    await register(client, test_event.id, auth_headers)
    await register(client, later.id, auth_headers)

    response = await client.get("/api/v1/registrations/mine", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert [r["event_id"] for r in data] == [later.id, test_event.id]
    assert data[0]["event"]["title"] == "Second Event"
    assert data[1]["event"]["location"] == "Test Venue"


@pytest.mark.asyncio
async def test_list_event_registrations_admin_only(
    client: AsyncClient, auth_headers, other_headers, admin_headers, test_event
):
    await register(client, test_event.id, auth_headers)
    second = (await register(client, test_event.id, other_headers)).json()

    url = f"/api/v1/registrations/event/{test_event.id}"
    assert (await client.get(url, headers=auth_headers)).status_code == 403

    response = await client.get(url, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 2
    assert data[0]["id"] == second["id"]
    assert data[0]["user"]["username"] == "otheruser"
    assert data[1]["user"]["email"] == "test@example.com"


@pytest.mark.asyncio
async def test_list_event_registrations_unknown_event(client: AsyncClient, admin_headers):
    response = await client.get("/api/v1/registrations/event/99999", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_status_override(client: AsyncClient, auth_headers, admin_headers, test_event):
    registration = (await register(client, test_event.id, auth_headers)).json()
    url = f"/api/v1/registrations/{registration['id']}/status"

    response = await client.put(url, json={"status": "waitlisted"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "waitlisted"
    assert await available_seats(client, test_event.id) == 100

    response = await client.put(url, json={"status": "confirmed"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    assert await available_seats(client, test_event.id) == 99


@pytest.mark.asyncio
async def test_admin_status_override_invalid_status(client: AsyncClient, auth_headers, admin_headers, test_event):
    registration = (await register(client, test_event.id, auth_headers)).json()

    response = await client.put(
        f"/api/v1/registrations/{registration['id']}/status",
        json={"status": "pending"},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "invalid_input"


@pytest.mark.asyncio
async def test_admin_status_override_requires_admin(client: AsyncClient, auth_headers, test_event):
    registration = (await register(client, test_event.id, auth_headers)).json()

    response = await client.put(
        f"/api/v1/registrations/{registration['id']}/status",
        json={"status": "cancelled"},
        headers=auth_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_status_override_unknown_registration(client: AsyncClient, admin_headers):
    response = await client.put(
        "/api/v1/registrations/99999/status",
        json={"status": "cancelled"},
        headers=admin_headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_confirm_on_full_event_rejected(
    client: AsyncClient, auth_headers, other_headers, admin_headers, single_seat_event
):
    """The override cannot push an event past its capacity."""
    first = (await register(client, single_seat_event.id, auth_headers)).json()
    await cancel(client, first["id"], auth_headers)
    assert (await register(client, single_seat_event.id, other_headers)).status_code == 201

    response = await client.put(
        f"/api/v1/registrations/{first['id']}/status",
        json={"status": "confirmed"},
        headers=admin_headers,
    )
    assert response.status_code == 409
    assert response.json()["kind"] == "full"
    assert await available_seats(client, single_seat_event.id) == 0


@pytest.mark.asyncio
async def test_waitlisted_user_can_register(client: AsyncClient, auth_headers, admin_headers, test_event):
    """A waitlisted lineage is re-activated by registering."""
    registration = (await register(client, test_event.id, auth_headers)).json()
    await client.put(
        f"/api/v1/registrations/{registration['id']}/status",
        json={"status": "waitlisted"},
        headers=admin_headers,
    )

    response = await register(client, test_event.id, auth_headers)
    assert response.status_code == 200
    assert response.json()["id"] == registration["id"]
    assert response.json()["status"] == "confirmed"


@pytest.mark.asyncio
async def test_registration_stats(client: AsyncClient, auth_headers, other_headers, admin_headers, test_event):
    first = (await register(client, test_event.id, auth_headers)).json()
    await register(client, test_event.id, other_headers)
    await cancel(client, first["id"], auth_headers)

    assert (await client.get("/api/v1/registrations/stats", headers=auth_headers)).status_code == 403

    response = await client.get("/api/v1/registrations/stats", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"total": 2, "confirmed": 1, "cancelled": 1, "waitlisted": 0}


@pytest.mark.asyncio
async def test_two_seat_scenario(client: AsyncClient, db_session, small_event):
    """
    A registers, B registers, C is turned away, A cancels, C gets the seat.
    """
    a = bearer(await make_user(db_session, "alice"))
    b = bearer(await make_user(db_session, "bob"))
    c = bearer(await make_user(db_session, "carol"))

    a_registration = await register(client, small_event.id, a)
    assert a_registration.status_code == 201
    assert await available_seats(client, small_event.id) == 1

    assert (await register(client, small_event.id, b)).status_code == 201
    assert await available_seats(client, small_event.id) == 0

    rejected = await register(client, small_event.id, c)
    assert rejected.status_code == 409
    assert rejected.json()["kind"] == "full"

    assert (await cancel(client, a_registration.json()["id"], a)).status_code == 200
    assert await available_seats(client, small_event.id) == 1

    c_registration = await register(client, small_event.id, c)
    assert c_registration.status_code == 201
    assert c_registration.json()["status"] == "confirmed"
    assert await available_seats(client, small_event.id) == 0
