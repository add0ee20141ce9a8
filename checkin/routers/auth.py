from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from checkin.core.security import SESSION_MAX_AGE, create_session_cookie
from checkin.deps import SESSION_COOKIE_NAME, get_current_user
from checkin.services import users as user_service
from checkin.services.identity import IdentityProvider, get_identity_provider
from checkin.store.base import DocumentStore, get_store
from checkin.store.records import UserRecord

router = APIRouter()


class SessionRequest(BaseModel):
    id_token: str


def user_out(user: UserRecord) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "department": user.department,
        "total_points": user.total_points,
    }


@router.post("/session")
async def auth_session(
    body: SessionRequest,
    response: Response,
    store: DocumentStore = Depends(get_store),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """Exchange an identity-provider ID token for a session; set httpOnly cookie."""
    claims = await identity.verify_id_token(body.id_token)
    user = await user_service.ensure_user(store, claims)
    session_value = create_session_cookie(user_service.session_payload_for_user(user))
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_value,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=False,  # set True in prod with HTTPS
        samesite="lax",
        path="/",
    )
    return {"user": user_out(user)}


@router.post("/logout")
async def auth_logout(response: Response):
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"ok": True}


@router.get("/me")
async def auth_me(user: UserRecord = Depends(get_current_user)):
    """Return current user. Requires session cookie."""
    return user_out(user)
