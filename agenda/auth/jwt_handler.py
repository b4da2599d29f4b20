from datetime import datetime, timedelta, timezone

import jwt

from agenda.core import config

REQUIRED_CLAIMS = ["sub", "exp", "aud"]


def create_access_token(subject: str, role: str | None = None, expires_minutes: int | None = None) -> str:
    """Signed bearer token for a staff member of the practice."""
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    payload = {
        "sub": subject.strip().lower(),
        "aud": config.JWT_AUDIENCE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        audience=config.JWT_AUDIENCE,
        options={"require": REQUIRED_CLAIMS},
    )
