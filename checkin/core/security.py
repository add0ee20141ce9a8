import hashlib
from typing import Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from checkin.core.config import get_settings

SESSION_MAX_AGE = 7 * 24 * 3600  # 7 days


def get_session_serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(
        settings.secret_key,
        salt="checkin-session",
        signer_kwargs={"key_derivation": "hmac", "digest_method": hashlib.sha256},
    )


def create_session_cookie(payload: dict[str, Any]) -> str:
    return get_session_serializer().dumps(payload)


def load_session_cookie(cookie_value: str, max_age_seconds: int = SESSION_MAX_AGE) -> dict[str, Any] | None:
    serializer = get_session_serializer()
    try:
        return serializer.loads(cookie_value, max_age=max_age_seconds)
    except (BadSignature, SignatureExpired):
        return None
