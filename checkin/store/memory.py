"""In-process store backend for tests and local runs.

Every call awaits once before touching data so concurrent callers interleave
the way they would against a real database. Writers serialise on one lock;
a transaction works on copies and swaps them in on a clean exit.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from checkin.store.base import (
    STATION_FIELDS,
    USER_PROFILE_FIELDS,
    DocumentStore,
    StoreTransaction,
    check_fields,
)
from checkin.store.records import AuditRecord, ScanRecord, StationRecord, UserRecord, utcnow


def _new_id() -> str:
    return uuid.uuid4().hex


class _Tables:
    def __init__(self, users: dict[str, UserRecord], scans: dict[str, ScanRecord]):
        self.users = users
        self.scans = scans


class MemoryTransaction(StoreTransaction):
    def __init__(self, store: "MemoryStore", tables: _Tables):
        self._store = store
        self._tables = tables

    async def get_user(self, user_id: str) -> UserRecord | None:
        await self._store._tick()
        return self._tables.users.get(user_id)

    async def find_scan(self, user_id: str, station_id: str) -> ScanRecord | None:
        await self._store._tick()
        for scan in self._tables.scans.values():
            if scan.user_id == user_id and scan.station_id == station_id:
                return scan
        return None

    async def find_user_scans(self, user_id: str) -> list[ScanRecord]:
        await self._store._tick()
        return [s for s in self._tables.scans.values() if s.user_id == user_id]

    async def set_total_points(self, user_id: str, total_points: int) -> None:
        await self._store._tick()
        user = self._tables.users.get(user_id)
        if user is None:
            raise KeyError(user_id)
        self._tables.users[user_id] = user.model_copy(update={"total_points": total_points})

    async def insert_scan(self, user_id: str, station_id: str, points_earned: int) -> ScanRecord:
        await self._store._tick()
        scan = ScanRecord(
            id=_new_id(),
            user_id=user_id,
            station_id=station_id,
            points_earned=points_earned,
            scanned_at=utcnow(),
        )
        self._tables.scans[scan.id] = scan
        return scan

    async def delete_scan(self, scan_id: str) -> None:
        await self._store._tick()
        self._tables.scans.pop(scan_id, None)


class MemoryStore(DocumentStore):
    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self.users: dict[str, UserRecord] = {}
        self.stations: dict[str, StationRecord] = {}
        self.scans: dict[str, ScanRecord] = {}
        self.audit_log: list[AuditRecord] = []
        self._lock = asyncio.Lock()

    async def _tick(self) -> None:
        await asyncio.sleep(self.latency)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        async with self._lock:
            tables = _Tables(dict(self.users), dict(self.scans))
            yield MemoryTransaction(self, tables)
            # Only reached on a clean exit; no await between here and the swap.
            self.users = tables.users
            self.scans = tables.scans

    # Users

    async def get_user(self, user_id: str) -> UserRecord | None:
        await self._tick()
        return self.users.get(user_id)

    async def insert_user(self, user: UserRecord) -> UserRecord:
        await self._tick()
        async with self._lock:
            return self.users.setdefault(user.id, user)

    async def update_user(self, user_id: str, **fields: Any) -> UserRecord | None:
        check_fields(fields, USER_PROFILE_FIELDS)
        await self._tick()
        async with self._lock:
            user = self.users.get(user_id)
            if user is None:
                return None
            user = user.model_validate({**user.model_dump(), **fields})
            self.users[user_id] = user
            return user

    async def delete_user(self, user_id: str) -> bool:
        await self._tick()
        async with self._lock:
            return self.users.pop(user_id, None) is not None

    async def list_users(
        self, role: str | None = None, limit: int | None = None, offset: int = 0
    ) -> list[UserRecord]:
        await self._tick()
        users = [u for u in self.users.values() if role is None or u.role == role]
        users.sort(key=lambda u: u.total_points, reverse=True)
        end = None if limit is None else offset + limit
        return users[offset:end]

    # Stations

    async def get_station(self, station_id: str) -> StationRecord | None:
        await self._tick()
        return self.stations.get(station_id)

    async def list_stations(self, active: bool | None = None) -> list[StationRecord]:
        await self._tick()
        stations = [s for s in self.stations.values() if active is None or s.active == active]
        return sorted(stations, key=lambda s: s.created_at)

    async def count_stations(self) -> int:
        await self._tick()
        return len(self.stations)

    async def insert_station(
        self,
        name: str,
        points: int,
        description: str = "",
        active: bool = True,
        created_by: str | None = None,
    ) -> StationRecord:
        await self._tick()
        station = StationRecord(
            id=_new_id(),
            name=name,
            description=description,
            points=points,
            active=active,
            created_by=created_by,
        )
        async with self._lock:
            self.stations[station.id] = station
        return station

    async def update_station(self, station_id: str, **fields: Any) -> StationRecord | None:
        check_fields(fields, STATION_FIELDS)
        await self._tick()
        async with self._lock:
            station = self.stations.get(station_id)
            if station is None:
                return None
            station = station.model_validate({**station.model_dump(), **fields})
            self.stations[station_id] = station
            return station

    async def delete_station(self, station_id: str) -> bool:
        await self._tick()
        async with self._lock:
            return self.stations.pop(station_id, None) is not None

    # Scans

    async def find_scans(
        self,
        user_id: str | None = None,
        station_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ScanRecord]:
        await self._tick()
        scans = [
            s
            for s in self.scans.values()
            if (user_id is None or s.user_id == user_id) and (station_id is None or s.station_id == station_id)
        ]
        scans.sort(key=lambda s: s.scanned_at, reverse=True)
        end = None if limit is None else offset + limit
        return scans[offset:end]

    async def delete_scans_for_user(self, user_id: str, batch_size: int) -> int:
        removed = 0
        while True:
            await self._tick()
            async with self._lock:
                batch = [sid for sid, s in self.scans.items() if s.user_id == user_id][:batch_size]
                for sid in batch:
                    del self.scans[sid]
            removed += len(batch)
            if len(batch) < batch_size:
                return removed

    # Audit

    async def insert_audit(self, entry: AuditRecord) -> None:
        await self._tick()
        self.audit_log.append(entry)
