from fastapi import APIRouter, Depends, Query

from checkin.core.pagination import page, paginate
from checkin.deps import get_current_user
from checkin.services import users as user_service
from checkin.store.base import DocumentStore, get_store
from checkin.store.records import UserRecord

router = APIRouter()


@router.get("")
async def get_leaderboard(
    user: UserRecord = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    limit, offset = paginate(limit, offset)
    return page(await user_service.leaderboard(store, limit, offset), limit, offset)
