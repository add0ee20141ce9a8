"""Plain records returned by every store backend.

Documents may lack fields or carry nulls; the zero defaults for points live
here and nowhere else.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Role = Literal["attendee", "moderator", "admin"]
ROLES: tuple[str, ...] = ("attendee", "moderator", "admin")
STAFF_ROLES: tuple[str, ...] = ("moderator", "admin")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, which MongoDB returns by default."""
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)

    @field_validator("created_at", "scanned_at", mode="after", check_fields=False)
    @classmethod
    def _utc_timestamps(cls, v: datetime) -> datetime:
        return as_utc(v)


class UserRecord(_Record):
    id: str
    email: str = ""
    name: str = ""
    role: Role = "attendee"
    total_points: int = 0
    department: str = ""
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("total_points", mode="before")
    @classmethod
    def _points_default(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("email", "name", "department", mode="before")
    @classmethod
    def _text_default(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


class StationRecord(_Record):
    id: str
    name: str
    description: str = ""
    points: int = 0
    active: bool = True
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("points", mode="before")
    @classmethod
    def _points_default(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("description", mode="before")
    @classmethod
    def _text_default(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("active", mode="before")
    @classmethod
    def _active_default(cls, v: Any) -> Any:
        return True if v is None else v


class ScanRecord(_Record):
    id: str
    user_id: str
    station_id: str
    points_earned: int = 0
    scanned_at: datetime = Field(default_factory=utcnow)

    @field_validator("points_earned", mode="before")
    @classmethod
    def _points_default(cls, v: Any) -> Any:
        return 0 if v is None else v


class AuditRecord(_Record):
    user_id: str | None = None
    event_type: str
    entity_type: str
    entity_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
