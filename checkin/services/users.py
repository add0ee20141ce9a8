from checkin.core.audit import log_event
from checkin.core.config import get_settings
from checkin.core.exceptions import BadRequestError, NotFoundError
from checkin.core.logging import get_logger
from checkin.services.identity import Identity, IdentityProvider
from checkin.store.base import DocumentStore
from checkin.store.records import ROLES, UserRecord

log = get_logger(__name__)


async def ensure_user(store: DocumentStore, identity: Identity) -> UserRecord:
    """Return the user doc for a signed-in identity, creating an attendee with 0 points on first sign-in."""
    user = await store.get_user(identity.uid)
    if user:
        return user
    email = identity.email or ""
    name = identity.name or email.split("@")[0]
    user = await store.insert_user(
        UserRecord(id=identity.uid, email=email, name=name, role="attendee", total_points=0)
    )
    log.info("user_created", user_id=user.id, email=user.email)
    await log_event(store, user.id, "user_created", "user", user.id, {"email": user.email})
    return user


def session_payload_for_user(user: UserRecord) -> dict:
    return {"user_id": user.id}


async def update_profile(
    store: DocumentStore,
    user_id: str,
    name: str,
    email: str,
    department: str | None = None,
    actor_id: str | None = None,
) -> UserRecord:
    name, email = name.strip(), email.strip()
    if not name or not email:
        raise BadRequestError("Name and email are required.")
    fields = {"name": name, "email": email}
    if department is not None:
        fields["department"] = department.strip()
    user = await store.update_user(user_id, **fields)
    if user is None:
        raise NotFoundError("User not found")
    await log_event(store, actor_id, "user_updated", "user", user_id, fields)
    return user


async def set_role(store: DocumentStore, user_id: str, role: str, actor_id: str | None = None) -> UserRecord:
    if role not in ROLES:
        raise BadRequestError(f"Invalid role: {role}")
    user = await store.update_user(user_id, role=role)
    if user is None:
        raise NotFoundError("User not found")
    log.info("role_changed", user_id=user_id, role=role, actor_id=actor_id)
    await log_event(store, actor_id, "role_changed", "user", user_id, {"role": role})
    return user


async def create_moderator(
    store: DocumentStore,
    identity: IdentityProvider,
    name: str | None,
    email: str | None,
    password: str | None,
    actor_id: str | None = None,
) -> UserRecord:
    """Create an identity-provider account and a moderator user doc for it."""
    name = (name or "").strip()
    email = (email or "").strip()
    password = (password or "").strip()
    if not name or not email or not password:
        raise BadRequestError("Missing required fields (name, email, password)")
    uid = await identity.create_user(name, email, password)
    user = await store.insert_user(UserRecord(id=uid, email=email, name=name, role="moderator"))
    log.info("moderator_created", user_id=uid, actor_id=actor_id)
    await log_event(store, actor_id, "moderator_created", "user", uid, {"email": email})
    return user


async def delete_user(
    store: DocumentStore,
    identity: IdentityProvider,
    user_id: str,
    actor_id: str | None = None,
) -> dict:
    """Delete the account, the user doc and every scan referencing the uid."""
    if not user_id:
        raise BadRequestError("Missing uid")
    await identity.delete_user(user_id)
    user_deleted = await store.delete_user(user_id)
    scans_deleted = await store.delete_scans_for_user(user_id, get_settings().delete_batch_size)
    log.info("user_deleted", user_id=user_id, scans_deleted=scans_deleted, actor_id=actor_id)
    await log_event(
        store,
        actor_id,
        "user_deleted",
        "user",
        user_id,
        {"user_deleted": user_deleted, "scans_deleted": scans_deleted},
    )
    return {"uid": user_id, "user_deleted": user_deleted, "scans_deleted": scans_deleted}


async def leaderboard(store: DocumentStore, limit: int, offset: int = 0) -> list[dict]:
    """Attendees ranked by total points; ranks are 1-based and continue across pages."""
    users = await store.list_users(role="attendee", limit=limit, offset=offset)
    return [
        {"rank": offset + i + 1, "id": u.id, "name": u.name, "total_points": u.total_points}
        for i, u in enumerate(users)
    ]


async def search_attendees(store: DocumentStore, search: str = "") -> list[dict]:
    """Ranked attendee roster filtered by name, email or rank."""
    users = await store.list_users(role="attendee")
    needle = search.strip().lower()
    out = []
    for rank, u in enumerate(users, start=1):
        if needle and needle not in u.name.lower() and needle not in u.email.lower() and needle != str(rank):
            continue
        out.append(
            {
                "rank": rank,
                "id": u.id,
                "name": u.name,
                "email": u.email,
                "department": u.department,
                "total_points": u.total_points,
            }
        )
    return out
