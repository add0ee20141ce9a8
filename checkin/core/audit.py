"""Audit log for privileged actions."""

from typing import Any

from checkin.store.base import DocumentStore
from checkin.store.records import AuditRecord


async def log_event(
    store: DocumentStore,
    user_id: str | None,
    event_type: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Append to audit_logs collection."""
    await store.insert_audit(
        AuditRecord(
            user_id=user_id,
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata=metadata or {},
        )
    )
