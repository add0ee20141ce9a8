"""Station registry operations."""

import pytest

from checkin.core.config import get_settings
from checkin.core.exceptions import BadRequestError, ConflictError, StationNotFoundError
from checkin.services import stations as stations_service
from checkin.services.scans import ScanService, station_link

pytestmark = pytest.mark.asyncio


async def test_create_station(store):
    station = await stations_service.create_station(
        store, name=" Robotics ", points=25, description=" demo ", created_by="mod-1"
    )

    assert station.name == "Robotics"
    assert station.description == "demo"
    assert station.active is True
    assert store.stations[station.id].created_by == "mod-1"
    assert store.audit_log[-1].event_type == "station_created"


@pytest.mark.parametrize("name,points", [("  ", 10), ("Booth", -1)])
async def test_create_station_validation(store, name, points):
    with pytest.raises(BadRequestError):
        await stations_service.create_station(store, name=name, points=points)


async def test_station_cap(store, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_stations", 2)
    await stations_service.create_station(store, name="A", points=1)
    await stations_service.create_station(store, name="B", points=1)

    with pytest.raises(ConflictError, match="Maximum of 2"):
        await stations_service.create_station(store, name="C", points=1)


async def test_toggle_active(store, make_station):
    station = make_station(active=True)

    off = await stations_service.toggle_active(store, station.id)
    on = await stations_service.toggle_active(store, station.id)

    assert (off.active, on.active) == (False, True)


async def test_update_ignores_unset_fields(store, make_station):
    station = make_station(name="Old", points=10)

    updated = await stations_service.update_station(store, station.id, name="New", points=None)

    assert (updated.name, updated.points) == ("New", 10)


async def test_delete_missing_station(store):
    with pytest.raises(StationNotFoundError):
        await stations_service.delete_station(store, "missing")


async def test_progress_lists_active_stations(store, make_user, make_station):
    make_user("u1")
    done = make_station("Done", points=20)
    todo = make_station("Todo", points=5)
    make_station("Hidden", active=False)
    await ScanService(store).check_in(station_link(done.id), done.id, "u1")

    rows = {r["station_id"]: r for r in await stations_service.progress(store, "u1")}

    assert set(rows) == {done.id, todo.id}
    assert rows[done.id]["completed"] is True
    assert rows[done.id]["points_earned"] == 20
    assert rows[todo.id]["completed"] is False
