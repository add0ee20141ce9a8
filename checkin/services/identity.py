"""Identity provider: Firebase Auth ID tokens and account management."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache

import httpx
from fastapi import status
from fastapi.concurrency import run_in_threadpool
from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token, service_account

from checkin.core.config import get_settings
from checkin.core.exceptions import AppError, BadRequestError, UnauthorizedError
from checkin.core.logging import get_logger

log = get_logger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SCOPES = [
    "https://www.googleapis.com/auth/identitytoolkit",
    "https://www.googleapis.com/auth/cloud-platform",
]


@dataclass(frozen=True)
class Identity:
    uid: str
    email: str
    name: str = ""


class IdentityUnavailableError(AppError):
    def __init__(self):
        super().__init__(
            "Identity service unavailable",
            code="IDENTITY_UNAVAILABLE",
            status_code=status.HTTP_502_BAD_GATEWAY,
        )


class IdentityProvider(ABC):
    @abstractmethod
    async def verify_id_token(self, token: str) -> Identity:
        ...

    @abstractmethod
    async def create_user(self, name: str, email: str, password: str) -> str:
        """Create a verified email/password account; return its uid."""
        ...

    @abstractmethod
    async def delete_user(self, uid: str) -> None:
        """Delete the account; an already-missing account is not an error."""
        ...


class FirebaseIdentityProvider(IdentityProvider):
    def __init__(
        self,
        project_id: str,
        service_account_path: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.project_id = project_id
        self.service_account_path = service_account_path
        self.timeout = timeout
        self.transport = transport
        self._credentials = None

    async def verify_id_token(self, token: str) -> Identity:
        try:
            claims = await run_in_threadpool(
                id_token.verify_firebase_token,
                token,
                google_requests.Request(),
                self.project_id,
            )
        except (ValueError, GoogleAuthError) as e:
            log.info("id_token_rejected", error=str(e))
            raise UnauthorizedError("Invalid sign-in token") from e
        uid = claims.get("user_id") or claims.get("sub")
        if not uid:
            raise UnauthorizedError("Invalid sign-in token")
        return Identity(uid=uid, email=claims.get("email") or "", name=claims.get("name") or "")

    async def _access_token(self) -> str:
        if not self.service_account_path:
            raise IdentityUnavailableError()
        if self._credentials is None:
            self._credentials = service_account.Credentials.from_service_account_file(
                self.service_account_path, scopes=SCOPES
            )
        if not self._credentials.valid:
            await run_in_threadpool(self._credentials.refresh, google_requests.Request())
        return self._credentials.token

    async def _post(self, path: str, body: dict) -> httpx.Response:
        token = await self._access_token()
        url = f"{IDENTITY_TOOLKIT_URL}/projects/{self.project_id}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                return await client.post(url, json=body, headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as e:
            log.warning("identity_request_failed", path=path, error=str(e))
            raise IdentityUnavailableError() from e

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            return resp.json().get("error", {}).get("message") or resp.text
        except ValueError:
            return resp.text

    async def create_user(self, name: str, email: str, password: str) -> str:
        resp = await self._post(
            "accounts",
            {"displayName": name, "email": email, "password": password, "emailVerified": True},
        )
        if resp.status_code == 400:
            raise BadRequestError(self._error_message(resp))
        if resp.status_code >= 300:
            log.warning("identity_create_failed", status=resp.status_code)
            raise IdentityUnavailableError()
        return resp.json()["localId"]

    async def delete_user(self, uid: str) -> None:
        resp = await self._post("accounts:delete", {"localId": uid})
        if resp.status_code == 400 and "USER_NOT_FOUND" in self._error_message(resp):
            return
        if resp.status_code >= 300:
            log.warning("identity_delete_failed", status=resp.status_code, uid=uid)
            raise IdentityUnavailableError()


@lru_cache
def get_identity_provider() -> IdentityProvider:
    settings = get_settings()
    return FirebaseIdentityProvider(
        project_id=settings.firebase_project_id,
        service_account_path=settings.firebase_service_account_path,
    )
