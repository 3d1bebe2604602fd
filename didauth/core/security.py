import time
from dataclasses import dataclass

import jwt

from didauth.core.config import settings


def _now_s() -> int:
    return int(time.time())


def create_access_token(*, sub: str, did: str, extra: dict | None = None) -> str:
    now = _now_s()
    payload = {
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + settings.access_token_ttl_seconds,
        "sub": sub,
        "did": did,
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


@dataclass(frozen=True)
class Principal:
    sub: str
    did: str


def decode_bearer_token(token: str) -> Principal:
    payload = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
    )
    return Principal(sub=str(payload["sub"]), did=str(payload.get("did") or ""))
