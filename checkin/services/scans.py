"""Station check-in: validate a scanned QR payload and award points once per (user, station)."""

from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode, urlsplit

from checkin.core.config import get_settings
from checkin.core.exceptions import (
    AlreadyScannedError,
    AppError,
    InvalidScanFormatError,
    StationInactiveError,
    StationMismatchError,
    StationNotFoundError,
    TransientStoreError,
    UnauthorizedError,
    UserNotFoundError,
)
from checkin.core.logging import get_logger
from checkin.store.base import DocumentStore
from checkin.store.records import ScanRecord, StationRecord

log = get_logger(__name__)

STATION_MARKER = "station="
STATION_PARAM = "station"


@dataclass(frozen=True)
class AwardResult:
    scan: ScanRecord
    total_points: int

    @property
    def points_awarded(self) -> int:
        return self.scan.points_earned


@dataclass(frozen=True)
class ProgressResult:
    scan: ScanRecord | None
    total_points: int
    changed: bool


def parse_station_payload(payload: str | None) -> str:
    """Return the station id a QR payload points at, e.g. https://host/scan?station=<id>."""
    if not payload or STATION_MARKER not in payload:
        raise InvalidScanFormatError()
    try:
        parts = urlsplit(payload.strip())
    except ValueError as e:
        raise InvalidScanFormatError() from e
    if not parts.scheme or not parts.netloc:
        raise InvalidScanFormatError()
    values = parse_qs(parts.query).get(STATION_PARAM)
    if not values or not values[0]:
        raise InvalidScanFormatError()
    return values[0]


def station_link(station_id: str, base_url: str | None = None) -> str:
    """Payload encoded into a station's QR code."""
    base = base_url or get_settings().qr_base_url
    return f"{base}?{urlencode({STATION_PARAM: station_id})}"


class ScanService:
    def __init__(self, store: DocumentStore, allow_inactive_stations: bool | None = None):
        self.store = store
        if allow_inactive_stations is None:
            allow_inactive_stations = get_settings().allow_inactive_station_scans
        self.allow_inactive_stations = allow_inactive_stations

    async def check_in(self, payload: str | None, expected_station_id: str, user_id: str | None) -> AwardResult:
        """
        Validate a decoded QR payload for the station on screen and award its points.
        Checks run in order and stop at the first failure; a failure changes nothing.
        """
        if not user_id:
            raise UnauthorizedError()
        try:
            scanned_id = parse_station_payload(payload)
            if scanned_id != expected_station_id:
                raise StationMismatchError()
            station = await self.store.get_station(expected_station_id)
            if station is None:
                raise StationNotFoundError()
            if not station.active and not self.allow_inactive_stations:
                raise StationInactiveError()
            existing = await self.store.find_scans(user_id=user_id, station_id=station.id, limit=1)
            if existing:
                raise AlreadyScannedError()
            try:
                return await self.award(user_id, station)
            except TransientStoreError:
                # A write conflict may mean a concurrent award for this pair just committed.
                if await self.store.find_scans(user_id=user_id, station_id=station.id, limit=1):
                    raise AlreadyScannedError() from None
                raise
        except AppError as e:
            log.info("scan_rejected", user_id=user_id, station_id=expected_station_id, code=e.code)
            raise

    async def award(self, user_id: str, station: StationRecord) -> AwardResult:
        """Credit station.points to the user and record the scan, atomically."""
        async with self.store.transaction() as txn:
            user = await txn.get_user(user_id)
            if user is None:
                raise UserNotFoundError()
            # Concurrent awards may have passed the pre-check; this one is authoritative.
            if await txn.find_scan(user_id, station.id) is not None:
                raise AlreadyScannedError()
            total_points = user.total_points + station.points
            await txn.set_total_points(user_id, total_points)
            scan = await txn.insert_scan(user_id, station.id, station.points)
        log.info(
            "scan_awarded",
            user_id=user_id,
            station_id=station.id,
            points=station.points,
            total_points=total_points,
        )
        return AwardResult(scan=scan, total_points=total_points)

    async def set_station_completed(self, user_id: str, station_id: str, completed: bool) -> ProgressResult:
        """
        Staff override of a user's progress at one station.
        Marking complete awards the station's points; un-marking removes the scan and
        subtracts what it earned (never below zero). Repeating either is a no-op.
        """
        station = None
        if completed:
            station = await self.store.get_station(station_id)
            if station is None:
                raise StationNotFoundError()

        async with self.store.transaction() as txn:
            user = await txn.get_user(user_id)
            if user is None:
                raise UserNotFoundError()
            existing = await txn.find_scan(user_id, station_id)
            if completed and existing is None:
                total_points = user.total_points + station.points
                await txn.set_total_points(user_id, total_points)
                scan = await txn.insert_scan(user_id, station_id, station.points)
                changed = True
            elif not completed and existing is not None:
                total_points = max(user.total_points - existing.points_earned, 0)
                await txn.set_total_points(user_id, total_points)
                await txn.delete_scan(existing.id)
                scan = None
                changed = True
            else:
                total_points = user.total_points
                scan = existing
                changed = False

        log.info(
            "station_progress_set",
            user_id=user_id,
            station_id=station_id,
            completed=completed,
            changed=changed,
            total_points=total_points,
        )
        return ProgressResult(scan=scan, total_points=total_points, changed=changed)

    async def reset_points(self, user_id: str) -> int:
        """Remove every scan of the user and zero the total; returns the number of scans removed."""
        async with self.store.transaction() as txn:
            user = await txn.get_user(user_id)
            if user is None:
                raise UserNotFoundError()
            scans = await txn.find_user_scans(user_id)
            for scan in scans:
                await txn.delete_scan(scan.id)
            await txn.set_total_points(user_id, 0)
        log.info("points_reset", user_id=user_id, scans_removed=len(scans))
        return len(scans)

    async def reconcile_points(self, user_id: str) -> tuple[int, int]:
        """Recompute total_points from the scan ledger. Returns (before, after)."""
        async with self.store.transaction() as txn:
            user = await txn.get_user(user_id)
            if user is None:
                raise UserNotFoundError()
            scans = await txn.find_user_scans(user_id)
            total_points = sum(s.points_earned for s in scans)
            if total_points != user.total_points:
                await txn.set_total_points(user_id, total_points)
        if total_points != user.total_points:
            log.warning("points_reconciled", user_id=user_id, before=user.total_points, after=total_points)
        return user.total_points, total_points
