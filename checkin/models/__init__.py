from checkin.models.user import User
from checkin.models.station import Station
from checkin.models.scan import Scan
from checkin.models.audit_log import AuditLog

__all__ = [
    "User",
    "Station",
    "Scan",
    "AuditLog",
]
