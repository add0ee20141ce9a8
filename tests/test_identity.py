"""Firebase account management calls, against a mocked Identity Toolkit."""

import json

import httpx
import pytest

from checkin.core.exceptions import BadRequestError
from checkin.services.identity import FirebaseIdentityProvider, IdentityUnavailableError

pytestmark = pytest.mark.asyncio


class _Credentials:
    valid = True
    token = "access-token"


def make_provider(handler) -> FirebaseIdentityProvider:
    provider = FirebaseIdentityProvider(
        project_id="demo",
        service_account_path="unused.json",
        transport=httpx.MockTransport(handler),
    )
    provider._credentials = _Credentials()
    return provider


async def test_create_user_returns_uid():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"localId": "new-uid"})

    uid = await make_provider(handler).create_user("Grace", "grace@example.com", "pw123456")

    assert uid == "new-uid"
    assert seen["url"] == "https://identitytoolkit.googleapis.com/v1/projects/demo/accounts"
    assert seen["auth"] == "Bearer access-token"
    assert seen["body"]["emailVerified"] is True


async def test_create_user_rejected():
    def handler(request):
        return httpx.Response(400, json={"error": {"message": "EMAIL_EXISTS"}})

    with pytest.raises(BadRequestError, match="EMAIL_EXISTS"):
        await make_provider(handler).create_user("Grace", "grace@example.com", "pw123456")


async def test_delete_missing_user_is_ok():
    def handler(request):
        return httpx.Response(400, json={"error": {"message": "USER_NOT_FOUND"}})

    await make_provider(handler).delete_user("gone")


async def test_upstream_outage():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(IdentityUnavailableError):
        await make_provider(handler).delete_user("u1")


async def test_no_service_account_configured():
    provider = FirebaseIdentityProvider(project_id="demo")
    with pytest.raises(IdentityUnavailableError):
        await provider.create_user("A", "a@example.com", "pw")
