from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field


class User(Document):
    id: str  # identity-provider uid
    email: str = ""
    name: str = ""
    role: Indexed(str) = "attendee"  # "attendee" | "moderator" | "admin"
    total_points: int | None = 0
    department: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
        indexes = [[("total_points", -1)]]
