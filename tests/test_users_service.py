"""Account lifecycle: first sign-in, moderators, deletion and rankings."""

import pytest

from checkin.core.config import get_settings
from checkin.core.exceptions import BadRequestError, NotFoundError
from checkin.services import users as user_service
from checkin.services.identity import Identity
from checkin.services.scans import ScanService, station_link

pytestmark = pytest.mark.asyncio


async def test_first_sign_in_creates_attendee(store):
    user = await user_service.ensure_user(store, Identity(uid="u1", email="ada@example.com"))

    assert user.role == "attendee"
    assert user.total_points == 0
    assert user.name == "ada"
    assert store.users["u1"] == user
    assert store.audit_log[-1].event_type == "user_created"


async def test_sign_in_keeps_existing_user(store, make_user):
    existing = make_user("u1", role="admin", total_points=40)

    user = await user_service.ensure_user(store, Identity(uid="u1", email="other@example.com", name="X"))

    assert user == existing


async def test_create_moderator(store, identity):
    user = await user_service.create_moderator(
        store, identity, " Grace ", "grace@example.com ", " secret1 ", actor_id="admin-1"
    )

    assert user.role == "moderator"
    assert user.name == "Grace"
    assert identity.accounts[user.id]["password"] == "secret1"
    assert store.users[user.id].email == "grace@example.com"


@pytest.mark.parametrize("name,email,password", [("", "a@b.c", "pw"), ("A", "  ", "pw"), ("A", "a@b.c", None)])
async def test_create_moderator_requires_all_fields(store, identity, name, email, password):
    with pytest.raises(BadRequestError, match="Missing required fields"):
        await user_service.create_moderator(store, identity, name, email, password)
    assert identity.accounts == {}


async def test_delete_user_removes_account_doc_and_scans(store, identity, make_user, make_station, monkeypatch):
    monkeypatch.setattr(get_settings(), "delete_batch_size", 2)
    uid = await identity.create_user("Ann", "ann@example.com", "pw")
    make_user(uid)
    make_user("keep")
    service = ScanService(store)
    stations = [make_station(f"S{i}", points=1) for i in range(5)]
    for s in stations:
        await service.check_in(station_link(s.id), s.id, uid)
    await service.check_in(station_link(stations[0].id), stations[0].id, "keep")

    out = await user_service.delete_user(store, identity, uid, actor_id="admin-1")

    assert out == {"uid": uid, "user_deleted": True, "scans_deleted": 5}
    assert uid not in identity.accounts
    assert uid not in store.users
    assert [s.user_id for s in store.scans.values()] == ["keep"]


async def test_set_role(store, make_user):
    make_user("u1")
    user = await user_service.set_role(store, "u1", "moderator", actor_id="admin-1")
    assert user.role == "moderator"

    with pytest.raises(BadRequestError):
        await user_service.set_role(store, "u1", "superuser")
    with pytest.raises(NotFoundError):
        await user_service.set_role(store, "ghost", "admin")


async def test_update_profile(store, make_user):
    make_user("u1", total_points=30)

    user = await user_service.update_profile(store, "u1", " Ada ", "ada@example.com", department="Physics")

    assert (user.name, user.department, user.total_points) == ("Ada", "Physics", 30)
    with pytest.raises(BadRequestError):
        await user_service.update_profile(store, "u1", "", "ada@example.com")


async def test_leaderboard_ranks_attendees_only(store, make_user):
    make_user("a", total_points=10)
    make_user("b", total_points=50)
    make_user("c", total_points=30)
    make_user("mod", role="moderator", total_points=999)

    first = await user_service.leaderboard(store, limit=2)
    second = await user_service.leaderboard(store, limit=2, offset=2)

    assert [(r["rank"], r["id"]) for r in first] == [(1, "b"), (2, "c")]
    assert [(r["rank"], r["id"]) for r in second] == [(3, "a")]


async def test_search_attendees_by_name_or_rank(store, make_user):
    make_user("a", name="Ada Lovelace", total_points=10)
    make_user("b", name="Alan Turing", total_points=50)

    assert [r["id"] for r in await user_service.search_attendees(store, "ada")] == ["a"]
    assert [r["id"] for r in await user_service.search_attendees(store, "1")] == ["b"]
    assert len(await user_service.search_attendees(store)) == 2


async def test_search_by_rank_matches_exactly(store, make_user):
    for i in range(12):
        letter = "abcdefghijkl"[i]
        make_user(f"user-{letter}", name=f"Guest {letter}", email=f"{letter}@example.com", total_points=100 - i)

    results = await user_service.search_attendees(store, "1")

    assert [(r["rank"], r["id"]) for r in results] == [(1, "user-a")]
