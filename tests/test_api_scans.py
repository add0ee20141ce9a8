"""HTTP surface of the check-in flow and its error envelope."""

from contextlib import asynccontextmanager

import pytest

from checkin.core.exceptions import TransientStoreError
from checkin.services.scans import station_link

pytestmark = pytest.mark.asyncio


async def test_scan_awards_points(client, login, make_user, make_station):
    make_user("u1")
    station = make_station(points=20)
    login(client, "u1")

    r = await client.post("/v1/scans", json={"payload": station_link(station.id), "station_id": station.id})

    assert r.status_code == 200
    body = r.json()
    assert body["points_awarded"] == 20
    assert body["total_points"] == 20
    assert body["station_id"] == station.id
    assert "X-Request-ID" in r.headers


async def test_rescan_conflict(client, login, make_user, make_station):
    make_user("u1")
    station = make_station(points=20)
    login(client, "u1")
    body = {"payload": station_link(station.id), "station_id": station.id}
    await client.post("/v1/scans", json=body)

    r = await client.post("/v1/scans", json=body)

    assert r.status_code == 409
    err = r.json()["error"]
    assert err["code"] == "ALREADY_SCANNED"
    assert err["message"] == "Already scanned."
    assert err["retryable"] is False


@pytest.mark.parametrize(
    "payload_for,status,code",
    [
        ("other", 400, "STATION_MISMATCH"),
        ("garbage", 400, "INVALID_FORMAT"),
    ],
)
async def test_rejections(client, login, make_user, make_station, store, payload_for, status, code):
    make_user("u1")
    station = make_station()
    other = make_station("Other")
    login(client, "u1")
    payload = station_link(other.id) if payload_for == "other" else "hello"

    r = await client.post("/v1/scans", json={"payload": payload, "station_id": station.id})

    assert r.status_code == status
    assert r.json()["error"]["code"] == code
    assert store.scans == {}


async def test_unknown_station(client, login, make_user):
    make_user("u1")
    login(client, "u1")

    r = await client.post("/v1/scans", json={"payload": station_link("gone"), "station_id": "gone"})

    assert r.status_code == 404
    assert r.json()["error"]["code"] == "STATION_NOT_FOUND"


async def test_scan_requires_session(client, make_station):
    station = make_station()

    r = await client.post("/v1/scans", json={"payload": station_link(station.id), "station_id": station.id})

    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Login required."


async def test_deleted_user_mid_session(client, login, make_station):
    station = make_station()
    login(client, "deleted-uid")

    r = await client.post("/v1/scans", json={"payload": station_link(station.id), "station_id": station.id})

    assert r.status_code == 404
    assert r.json()["error"]["code"] == "USER_NOT_FOUND"


async def test_store_failure_is_retryable(client, login, make_user, make_station, store, monkeypatch):
    make_user("u1")
    station = make_station()
    login(client, "u1")

    @asynccontextmanager
    async def failing_transaction():
        raise TransientStoreError()
        yield

    monkeypatch.setattr(store, "transaction", failing_transaction)

    r = await client.post("/v1/scans", json={"payload": station_link(station.id), "station_id": station.id})

    assert r.status_code == 503
    err = r.json()["error"]
    assert err == {
        "message": "Scan failed. Try again.",
        "code": "STORE_UNAVAILABLE",
        "details": {},
        "retryable": True,
    }
    assert store.users["u1"].total_points == 0


async def test_my_scans_and_progress(client, login, make_user, make_station):
    make_user("u1")
    a = make_station("A", points=20)
    make_station("B", points=5)
    login(client, "u1")
    await client.post("/v1/scans", json={"payload": station_link(a.id), "station_id": a.id})

    r = await client.get("/v1/scans/me")
    assert r.status_code == 200
    items = r.json()["items"]
    assert [(i["station_id"], i["points_earned"]) for i in items] == [(a.id, 20)]

    r = await client.get("/v1/scans/progress")
    body = r.json()
    assert body["total_points"] == 20
    assert sorted(s["completed"] for s in body["stations"]) == [False, True]
