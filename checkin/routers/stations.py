from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from checkin.deps import get_current_user, require_admin, require_staff
from checkin.services import stations as stations_service
from checkin.services.scans import station_link
from checkin.store.base import DocumentStore, get_store
from checkin.store.records import StationRecord, UserRecord

router = APIRouter()


class StationCreate(BaseModel):
    name: str
    points: int = Field(ge=0)
    description: str = ""
    active: bool = True


class StationUpdate(BaseModel):
    name: str | None = None
    points: int | None = Field(default=None, ge=0)
    description: str | None = None
    active: bool | None = None


def station_out(station: StationRecord) -> dict:
    return {
        "id": station.id,
        "name": station.name,
        "description": station.description,
        "points": station.points,
        "active": station.active,
        "qr_link": station_link(station.id),
    }


@router.get("")
async def list_stations(
    user: UserRecord = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    """Attendees see active stations; staff see all."""
    stations = await store.list_stations(active=None if user.is_staff else True)
    return {"stations": [station_out(s) for s in stations]}


@router.post("")
async def create_station(
    body: StationCreate,
    user: UserRecord = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    station = await stations_service.create_station(
        store,
        name=body.name,
        points=body.points,
        description=body.description,
        active=body.active,
        created_by=user.id,
    )
    return station_out(station)


@router.get("/{station_id}")
async def get_station(
    station_id: str,
    user: UserRecord = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    return station_out(await stations_service.get_station(store, station_id))


@router.get("/{station_id}/qr")
async def station_qr(
    station_id: str,
    user: UserRecord = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    """Payload to encode into the station's QR code."""
    station = await stations_service.get_station(store, station_id)
    return {"station_id": station.id, "payload": station_link(station.id)}


@router.patch("/{station_id}")
async def update_station(
    station_id: str,
    body: StationUpdate,
    user: UserRecord = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    station = await stations_service.update_station(
        store, station_id, actor_id=user.id, **body.model_dump(exclude_unset=True)
    )
    return station_out(station)


@router.post("/{station_id}/toggle-active")
async def toggle_station(
    station_id: str,
    user: UserRecord = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    station = await stations_service.toggle_active(store, station_id, actor_id=user.id)
    return station_out(station)


@router.delete("/{station_id}")
async def delete_station(
    station_id: str,
    user: UserRecord = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    await stations_service.delete_station(store, station_id, actor_id=user.id)
    return {"ok": True}
