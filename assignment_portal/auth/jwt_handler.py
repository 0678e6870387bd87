from datetime import datetime, timedelta, timezone

import jwt

from assignment_portal.core import config


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    payload = {"sub": str(user_id), "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": ["sub", "exp"]},
    )


def user_id_from_token(token: str) -> int:
    """Return the user id carried by a valid token.

    Raises ``jwt.InvalidTokenError`` for bad signatures, expired tokens and
    subjects that are not user ids.
    """
    subject = decode_access_token(token)["sub"]
    if not isinstance(subject, str) or not subject.isdigit():
        raise jwt.InvalidTokenError("Token subject is not a user id")
    return int(subject)
