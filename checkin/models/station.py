from datetime import datetime

from beanie import Document
from pydantic import Field


class Station(Document):
    name: str
    description: str | None = None
    points: int | None = 0  # fixed award value
    active: bool | None = True
    created_by: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "stations"
        indexes = [[("active", 1), ("created_at", 1)]]
