"""Station registry: create, edit, activate/deactivate and delete check-in points."""

from checkin.core.audit import log_event
from checkin.core.config import get_settings
from checkin.core.exceptions import BadRequestError, ConflictError, StationNotFoundError
from checkin.core.logging import get_logger
from checkin.store.base import DocumentStore
from checkin.store.records import StationRecord

log = get_logger(__name__)


def _validate(name: str | None, points: int | None) -> None:
    if name is not None and not name.strip():
        raise BadRequestError("Station name is required")
    if points is not None and points < 0:
        raise BadRequestError("Points must be zero or more")


async def create_station(
    store: DocumentStore,
    name: str,
    points: int,
    description: str = "",
    active: bool = True,
    created_by: str | None = None,
) -> StationRecord:
    _validate(name, points)
    cap = get_settings().max_stations
    if cap and await store.count_stations() >= cap:
        raise ConflictError(f"Maximum of {cap} stations already created.")
    station = await store.insert_station(
        name=name.strip(),
        points=points,
        description=(description or "").strip(),
        active=active,
        created_by=created_by,
    )
    log.info("station_created", station_id=station.id, points=station.points, actor_id=created_by)
    await log_event(store, created_by, "station_created", "station", station.id, {"points": station.points})
    return station


async def get_station(store: DocumentStore, station_id: str) -> StationRecord:
    station = await store.get_station(station_id)
    if station is None:
        raise StationNotFoundError()
    return station


async def update_station(
    store: DocumentStore,
    station_id: str,
    actor_id: str | None = None,
    **fields,
) -> StationRecord:
    fields = {k: v for k, v in fields.items() if v is not None}
    _validate(fields.get("name"), fields.get("points"))
    for key in ("name", "description"):
        if key in fields:
            fields[key] = fields[key].strip()
    if not fields:
        return await get_station(store, station_id)
    station = await store.update_station(station_id, **fields)
    if station is None:
        raise StationNotFoundError()
    await log_event(store, actor_id, "station_updated", "station", station_id, fields)
    return station


async def toggle_active(store: DocumentStore, station_id: str, actor_id: str | None = None) -> StationRecord:
    station = await get_station(store, station_id)
    return await update_station(store, station_id, actor_id=actor_id, active=not station.active)


async def delete_station(store: DocumentStore, station_id: str, actor_id: str | None = None) -> None:
    """Delete the station. Existing scans keep their points; new scans of it fail as missing."""
    if not await store.delete_station(station_id):
        raise StationNotFoundError()
    log.info("station_deleted", station_id=station_id, actor_id=actor_id)
    await log_event(store, actor_id, "station_deleted", "station", station_id)


async def progress(store: DocumentStore, user_id: str) -> list[dict]:
    """Each active station with whether the user has completed it."""
    stations = await store.list_stations(active=True)
    scans = {s.station_id: s for s in await store.find_scans(user_id=user_id)}
    out = []
    for st in stations:
        scan = scans.get(st.id)
        out.append(
            {
                "station_id": st.id,
                "name": st.name,
                "description": st.description,
                "points": st.points,
                "completed": scan is not None,
                "points_earned": scan.points_earned if scan else 0,
                "scanned_at": scan.scanned_at.isoformat() if scan else None,
            }
        )
    return out
