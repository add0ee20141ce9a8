from fastapi import APIRouter, Depends
from pydantic import BaseModel

from checkin.deps import require_admin
from checkin.routers.auth import user_out
from checkin.services import users as user_service
from checkin.services.identity import IdentityProvider, get_identity_provider
from checkin.store.base import DocumentStore, get_store
from checkin.store.records import UserRecord

router = APIRouter()


class ModeratorCreate(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""


class RoleUpdate(BaseModel):
    role: str


@router.get("/moderators")
async def list_moderators(
    user: UserRecord = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return {"moderators": [user_out(u) for u in await store.list_users(role="moderator")]}


@router.post("/moderators")
async def create_moderator(
    body: ModeratorCreate,
    user: UserRecord = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """Admin: create an account with the moderator role."""
    moderator = await user_service.create_moderator(
        store, identity, body.name, body.email, body.password, actor_id=user.id
    )
    return {"message": "Moderator created successfully", "uid": moderator.id}


@router.patch("/users/{user_id}/role")
async def change_role(
    user_id: str,
    body: RoleUpdate,
    user: UserRecord = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    updated = await user_service.set_role(store, user_id, body.role, actor_id=user.id)
    return user_out(updated)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    user: UserRecord = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """Admin: delete the account, its user doc and all its scans."""
    return await user_service.delete_user(store, identity, user_id, actor_id=user.id)
