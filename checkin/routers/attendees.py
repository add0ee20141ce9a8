from fastapi import APIRouter, Depends
from pydantic import BaseModel

from checkin.core.audit import log_event
from checkin.deps import get_scan_service, require_admin, require_staff
from checkin.routers.auth import user_out
from checkin.services import stations as stations_service
from checkin.services import users as user_service
from checkin.services.scans import ScanService
from checkin.store.base import DocumentStore, get_store
from checkin.store.records import UserRecord

router = APIRouter()


class ProgressUpdate(BaseModel):
    completed: bool


class AttendeeUpdate(BaseModel):
    name: str
    email: str
    department: str | None = None


@router.get("")
async def list_attendees(
    search: str = "",
    user: UserRecord = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    """Attendees ranked by total points, filtered by name, email or rank."""
    return {"attendees": await user_service.search_attendees(store, search)}


@router.get("/{user_id}/stations")
async def attendee_progress(
    user_id: str,
    user: UserRecord = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
):
    return {"stations": await stations_service.progress(store, user_id)}


@router.put("/{user_id}/stations/{station_id}")
async def set_attendee_progress(
    user_id: str,
    station_id: str,
    body: ProgressUpdate,
    user: UserRecord = Depends(require_staff),
    store: DocumentStore = Depends(get_store),
    service: ScanService = Depends(get_scan_service),
):
    """Mark or un-mark a station as scanned for an attendee; points follow."""
    result = await service.set_station_completed(user_id, station_id, body.completed)
    if result.changed:
        await log_event(
            store,
            user.id,
            "station_progress_set",
            "scan",
            result.scan.id if result.scan else None,
            {"user_id": user_id, "station_id": station_id, "completed": body.completed},
        )
    return {
        "completed": result.scan is not None,
        "changed": result.changed,
        "total_points": result.total_points,
    }


@router.patch("/{user_id}")
async def update_attendee(
    user_id: str,
    body: AttendeeUpdate,
    user: UserRecord = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    updated = await user_service.update_profile(
        store, user_id, body.name, body.email, body.department, actor_id=user.id
    )
    return user_out(updated)


@router.post("/{user_id}/reset-points")
async def reset_attendee_points(
    user_id: str,
    user: UserRecord = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
    service: ScanService = Depends(get_scan_service),
):
    """Zero an attendee's points and clear their scans."""
    removed = await service.reset_points(user_id)
    await log_event(store, user.id, "points_reset", "user", user_id, {"scans_removed": removed})
    return {"total_points": 0, "scans_removed": removed}


@router.post("/{user_id}/reconcile")
async def reconcile_attendee_points(
    user_id: str,
    user: UserRecord = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
    service: ScanService = Depends(get_scan_service),
):
    """Recompute total points from the scan ledger."""
    before, after = await service.reconcile_points(user_id)
    if before != after:
        await log_event(
            store, user.id, "points_reconciled", "user", user_id, {"before": before, "after": after}
        )
    return {"before": before, "total_points": after}
