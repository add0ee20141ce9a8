from datetime import datetime

from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, DESCENDING, IndexModel


class Scan(Document):
    """Proof that a (user, station) pair has been credited; never updated."""
    user_id: str
    station_id: str
    points_earned: int = 0
    scanned_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "scans"
        indexes = [
            IndexModel(
                [("user_id", ASCENDING), ("station_id", ASCENDING)],
                name="one_scan_per_user_station",
                unique=True,
            ),
            [("user_id", ASCENDING), ("scanned_at", DESCENDING)],
        ]
