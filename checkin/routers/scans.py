from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from checkin.core.pagination import page, paginate
from checkin.deps import get_current_user, get_scan_service, get_session_user_id
from checkin.services import stations as stations_service
from checkin.services.scans import ScanService
from checkin.store.base import DocumentStore, get_store
from checkin.store.records import UserRecord

router = APIRouter()


class ScanRequest(BaseModel):
    payload: str  # text decoded from the QR code
    station_id: str  # station the scanning screen was opened for


@router.post("")
async def scan_station(
    body: ScanRequest,
    user_id: str = Depends(get_session_user_id),
    service: ScanService = Depends(get_scan_service),
):
    """Check in at a station with a scanned QR payload."""
    result = await service.check_in(body.payload, body.station_id, user_id)
    return {
        "points_awarded": result.points_awarded,
        "total_points": result.total_points,
        "scan_id": result.scan.id,
        "station_id": result.scan.station_id,
    }


@router.get("/me")
async def my_scans(
    user: UserRecord = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Return my scans (newest first)."""
    limit, offset = paginate(limit, offset)
    scans = await store.find_scans(user_id=user.id, limit=limit, offset=offset)
    items = [
        {
            "id": s.id,
            "station_id": s.station_id,
            "points_earned": s.points_earned,
            "scanned_at": s.scanned_at.isoformat(),
        }
        for s in scans
    ]
    return page(items, limit, offset)


@router.get("/progress")
async def my_progress(
    user: UserRecord = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    """Active stations with my completion status."""
    stations = await stations_service.progress(store, user.id)
    return {"stations": stations, "total_points": user.total_points}
