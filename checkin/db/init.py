import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from checkin.core.config import get_settings
from checkin.models.audit_log import AuditLog
from checkin.models.scan import Scan
from checkin.models.station import Station
from checkin.models.user import User
from checkin.store.base import DocumentStore, set_store

DOCUMENT_MODELS = [
    User,
    Station,
    Scan,
    AuditLog,
]


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db() -> DocumentStore:
    settings = get_settings()
    if settings.store_backend == "memory":
        from checkin.store.memory import MemoryStore
        store = MemoryStore()
        set_store(store)
        return store

    # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
    kwargs = {}
    if _use_tls(settings.mongodb_uri):
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsDisableOCSPEndpointCheck"] = True
    client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
    database = client[settings.mongodb_db_name]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)

    from checkin.store.mongo import MongoStore
    store = MongoStore(client)
    set_store(store)
    return store
