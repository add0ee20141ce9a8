from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any

from checkin.store.records import AuditRecord, ScanRecord, StationRecord, UserRecord

# Profile fields writable outside a transaction; total_points is not among them.
USER_PROFILE_FIELDS = frozenset({"email", "name", "role", "department"})
STATION_FIELDS = frozenset({"name", "description", "points", "active"})


class StoreTransaction(ABC):
    """Reads and writes bound to one atomic unit. Writes land together on commit or not at all."""

    @abstractmethod
    async def get_user(self, user_id: str) -> UserRecord | None:
        ...

    @abstractmethod
    async def find_scan(self, user_id: str, station_id: str) -> ScanRecord | None:
        ...

    @abstractmethod
    async def find_user_scans(self, user_id: str) -> list[ScanRecord]:
        ...

    @abstractmethod
    async def set_total_points(self, user_id: str, total_points: int) -> None:
        ...

    @abstractmethod
    async def insert_scan(self, user_id: str, station_id: str, points_earned: int) -> ScanRecord:
        """Create a scan; scanned_at is assigned by the store."""
        ...

    @abstractmethod
    async def delete_scan(self, scan_id: str) -> None:
        ...


class DocumentStore(ABC):
    # Users

    @abstractmethod
    async def get_user(self, user_id: str) -> UserRecord | None:
        ...

    @abstractmethod
    async def insert_user(self, user: UserRecord) -> UserRecord:
        """Insert a user; return the stored record, or the existing one if the id is taken."""
        ...

    @abstractmethod
    async def update_user(self, user_id: str, **fields: Any) -> UserRecord | None:
        """Update profile fields (see USER_PROFILE_FIELDS); None if the user is gone."""
        ...

    @abstractmethod
    async def delete_user(self, user_id: str) -> bool:
        ...

    @abstractmethod
    async def list_users(
        self, role: str | None = None, limit: int | None = None, offset: int = 0
    ) -> list[UserRecord]:
        """Users ordered by total_points descending."""
        ...

    # Stations

    @abstractmethod
    async def get_station(self, station_id: str) -> StationRecord | None:
        ...

    @abstractmethod
    async def list_stations(self, active: bool | None = None) -> list[StationRecord]:
        ...

    @abstractmethod
    async def count_stations(self) -> int:
        ...

    @abstractmethod
    async def insert_station(
        self,
        name: str,
        points: int,
        description: str = "",
        active: bool = True,
        created_by: str | None = None,
    ) -> StationRecord:
        ...

    @abstractmethod
    async def update_station(self, station_id: str, **fields: Any) -> StationRecord | None:
        ...

    @abstractmethod
    async def delete_station(self, station_id: str) -> bool:
        ...

    # Scans

    @abstractmethod
    async def find_scans(
        self,
        user_id: str | None = None,
        station_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ScanRecord]:
        """Scans matching the filters, newest first."""
        ...

    @abstractmethod
    async def delete_scans_for_user(self, user_id: str, batch_size: int) -> int:
        """Delete every scan of a user in batches; return how many were removed."""
        ...

    # Audit

    @abstractmethod
    async def insert_audit(self, entry: AuditRecord) -> None:
        ...

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        ...


def check_fields(fields: dict[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Fields not writable here: {sorted(unknown)}")


_store: DocumentStore | None = None


def set_store(store: DocumentStore | None) -> None:
    global _store
    _store = store


def get_store() -> DocumentStore:
    if _store is None:
        raise RuntimeError("Document store not initialised; call init_db() first")
    return _store
