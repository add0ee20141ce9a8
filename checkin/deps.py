"""Shared FastAPI dependencies."""

from fastapi import Depends, Request

from checkin.core.exceptions import ForbiddenError, UnauthorizedError
from checkin.core.logging import bind_user_id
from checkin.core.security import load_session_cookie
from checkin.services.scans import ScanService
from checkin.store.base import DocumentStore, get_store
from checkin.store.records import UserRecord

SESSION_COOKIE_NAME = "checkin_session"


async def get_session_user_id(request: Request) -> str:
    """Dependency: the signed-in uid from the session cookie, without loading the user doc."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        raise UnauthorizedError()
    payload = load_session_cookie(cookie)
    if not payload:
        raise UnauthorizedError("Invalid or expired session")
    user_id = payload.get("user_id")
    if not user_id:
        raise UnauthorizedError("Invalid session")
    bind_user_id(user_id)
    return user_id


async def get_current_user(
    user_id: str = Depends(get_session_user_id),
    store: DocumentStore = Depends(get_store),
) -> UserRecord:
    """Dependency: load session from cookie and return the user doc."""
    user = await store.get_user(user_id)
    if not user:
        raise UnauthorizedError("User not found")
    return user


async def require_staff(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    """Dependency: moderators and admins."""
    if not user.is_staff:
        raise ForbiddenError("Staff only")
    return user


async def require_admin(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    if user.role != "admin":
        raise ForbiddenError("Admin only")
    return user


def get_scan_service(store: DocumentStore = Depends(get_store)) -> ScanService:
    return ScanService(store)
