from __future__ import annotations

import hmac
from datetime import datetime, timedelta, timezone

from jose import jwt

from backend.app.core.config import settings

ALGORITHM = "HS256"


def create_access_token(subject: str, expires_delta: timedelta | None = None) -> str:
    """Issue a bearer token for *subject*.

    Sessions are normally issued by the identity service sharing SECRET_KEY;
    this helper exists for service-to-service calls and tests.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": subject, "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> str | None:
    """Return the ``sub`` claim of a valid token, or None.

    Raises ``jose.JWTError`` for malformed or expired tokens.
    """
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    return payload.get("sub")


def verify_cron_secret(authorization: str | None, secret: str) -> bool:
    """Check an ``Authorization: Bearer <secret>`` header in constant time.

    An empty configured secret never matches.
    """
    if not secret or not authorization:
        return False
    return hmac.compare_digest(
        authorization.encode("utf-8"), f"Bearer {secret}".encode("utf-8")
    )
