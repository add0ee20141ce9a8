"""MongoDB store backend on Beanie documents.

Transactions need a replica set. They are started explicitly rather than
through the driver's retrying callback API, so a failed commit surfaces as
TransientStoreError and the caller decides whether to retry.
"""

import functools
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Iterator

from beanie import PydanticObjectId
from beanie.operators import In, Set
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from checkin.core.exceptions import AlreadyScannedError, TransientStoreError
from checkin.core.logging import get_logger
from checkin.models.audit_log import AuditLog
from checkin.models.scan import Scan
from checkin.models.station import Station
from checkin.models.user import User
from checkin.store.base import (
    STATION_FIELDS,
    USER_PROFILE_FIELDS,
    DocumentStore,
    StoreTransaction,
    check_fields,
)
from checkin.store.records import AuditRecord, ScanRecord, StationRecord, UserRecord, utcnow

log = get_logger(__name__)


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except DuplicateKeyError as e:
        # Only scans carry a unique key that writes can collide on.
        raise AlreadyScannedError() from e
    except PyMongoError as e:
        log.warning("store_error", error=str(e), error_type=type(e).__name__)
        raise TransientStoreError() from e


def _translated(fn):
    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        with _translate_errors():
            return await fn(*args, **kwargs)
    return wrapper


def _object_id(value: str) -> PydanticObjectId | None:
    return PydanticObjectId(value) if ObjectId.is_valid(value) else None


def _user(doc: User) -> UserRecord:
    return UserRecord.model_validate(doc.model_dump())


def _station(doc: Station) -> StationRecord:
    return StationRecord.model_validate({**doc.model_dump(), "id": str(doc.id)})


def _scan(doc: Scan) -> ScanRecord:
    return ScanRecord.model_validate({**doc.model_dump(), "id": str(doc.id)})


class MongoTransaction(StoreTransaction):
    def __init__(self, session):
        self.session = session

    async def get_user(self, user_id: str) -> UserRecord | None:
        doc = await User.get(user_id, session=self.session)
        return _user(doc) if doc else None

    async def find_scan(self, user_id: str, station_id: str) -> ScanRecord | None:
        doc = await Scan.find_one(Scan.user_id == user_id, Scan.station_id == station_id, session=self.session)
        return _scan(doc) if doc else None

    async def find_user_scans(self, user_id: str) -> list[ScanRecord]:
        docs = await Scan.find(Scan.user_id == user_id, session=self.session).to_list()
        return [_scan(d) for d in docs]

    async def set_total_points(self, user_id: str, total_points: int) -> None:
        await User.find_one(User.id == user_id, session=self.session).update(
            Set({User.total_points: total_points, User.updated_at: utcnow()}),
            session=self.session,
        )

    async def insert_scan(self, user_id: str, station_id: str, points_earned: int) -> ScanRecord:
        doc = Scan(
            user_id=user_id,
            station_id=station_id,
            points_earned=points_earned,
            scanned_at=utcnow(),
        )
        await doc.insert(session=self.session)
        return _scan(doc)

    async def delete_scan(self, scan_id: str) -> None:
        oid = _object_id(scan_id)
        if oid is None:
            return
        await Scan.find_one(Scan.id == oid, session=self.session).delete(session=self.session)


class MongoStore(DocumentStore):
    def __init__(self, client: AsyncIOMotorClient):
        self.client = client

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        with _translate_errors():
            async with await self.client.start_session() as session:
                async with session.start_transaction():
                    yield MongoTransaction(session)

    # Users

    @_translated
    async def get_user(self, user_id: str) -> UserRecord | None:
        doc = await User.get(user_id)
        return _user(doc) if doc else None

    @_translated
    async def insert_user(self, user: UserRecord) -> UserRecord:
        doc = User(**user.model_dump())
        try:
            await doc.insert()
        except DuplicateKeyError:
            # Two first sign-ins raced; keep whichever landed.
            existing = await User.get(user.id)
            return _user(existing) if existing else user
        return _user(doc)

    @_translated
    async def update_user(self, user_id: str, **fields: Any) -> UserRecord | None:
        check_fields(fields, USER_PROFILE_FIELDS)
        doc = await User.get(user_id)
        if doc is None:
            return None
        await doc.set({**fields, "updated_at": utcnow()})
        return _user(doc)

    @_translated
    async def delete_user(self, user_id: str) -> bool:
        result = await User.find_one(User.id == user_id).delete()
        return bool(result and result.deleted_count)

    @_translated
    async def list_users(
        self, role: str | None = None, limit: int | None = None, offset: int = 0
    ) -> list[UserRecord]:
        query = User.find(User.role == role) if role else User.find_all()
        query = query.sort(-User.total_points).skip(offset)
        if limit is not None:
            query = query.limit(limit)
        return [_user(d) for d in await query.to_list()]

    # Stations

    @_translated
    async def get_station(self, station_id: str) -> StationRecord | None:
        oid = _object_id(station_id)
        if oid is None:
            return None
        doc = await Station.get(oid)
        return _station(doc) if doc else None

    @_translated
    async def list_stations(self, active: bool | None = None) -> list[StationRecord]:
        query = Station.find(Station.active == active) if active is not None else Station.find_all()
        docs = await query.sort(+Station.created_at).to_list()
        return [_station(d) for d in docs]

    @_translated
    async def count_stations(self) -> int:
        return await Station.find_all().count()

    @_translated
    async def insert_station(
        self,
        name: str,
        points: int,
        description: str = "",
        active: bool = True,
        created_by: str | None = None,
    ) -> StationRecord:
        doc = Station(name=name, description=description, points=points, active=active, created_by=created_by)
        await doc.insert()
        return _station(doc)

    @_translated
    async def update_station(self, station_id: str, **fields: Any) -> StationRecord | None:
        check_fields(fields, STATION_FIELDS)
        oid = _object_id(station_id)
        doc = await Station.get(oid) if oid else None
        if doc is None:
            return None
        await doc.set(fields)
        return _station(doc)

    @_translated
    async def delete_station(self, station_id: str) -> bool:
        oid = _object_id(station_id)
        if oid is None:
            return False
        result = await Station.find_one(Station.id == oid).delete()
        return bool(result and result.deleted_count)

    # Scans

    @_translated
    async def find_scans(
        self,
        user_id: str | None = None,
        station_id: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ScanRecord]:
        filters = []
        if user_id is not None:
            filters.append(Scan.user_id == user_id)
        if station_id is not None:
            filters.append(Scan.station_id == station_id)
        query = Scan.find(*filters).sort(-Scan.scanned_at).skip(offset)
        if limit is not None:
            query = query.limit(limit)
        return [_scan(d) for d in await query.to_list()]

    @_translated
    async def delete_scans_for_user(self, user_id: str, batch_size: int) -> int:
        removed = 0
        while True:
            batch = await Scan.find(Scan.user_id == user_id).limit(batch_size).to_list()
            if not batch:
                return removed
            result = await Scan.find(In(Scan.id, [d.id for d in batch])).delete()
            removed += result.deleted_count if result else 0
            if len(batch) < batch_size:
                return removed

    # Audit

    @_translated
    async def insert_audit(self, entry: AuditRecord) -> None:
        await AuditLog(**entry.model_dump()).insert()
