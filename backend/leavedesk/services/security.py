"""Password hashing and access-token encoding."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta

import jwt
from passlib.context import CryptContext

from leavedesk.config import get_settings
from leavedesk.exceptions import ExpiredToken, InvalidToken

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _pwd_context.verify(password, password_hash)
    except ValueError:
        # Unrecognised hash format.
        return False


def create_access_token(user_id: uuid.UUID, *, now: datetime | None = None) -> tuple[str, int]:
    """Issue a signed access token. Returns the token and its lifetime in seconds."""
    settings = get_settings()
    issued_at = now or datetime.now(UTC)
    expires_in = settings.access_token_expire_minutes * 60
    payload = {
        "sub": str(user_id),
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=expires_in),
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, expires_in


def decode_access_token(token: str) -> uuid.UUID:
    """Verify a token and return the user id in its subject.

    Raises ExpiredToken for a past ``exp`` and InvalidToken for anything else
    that fails verification.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise ExpiredToken("Token has expired") from None
    except jwt.InvalidTokenError as exc:
        logger.debug("Rejected token: %s", exc)
        raise InvalidToken("Invalid token") from None

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise InvalidToken("Invalid token type")
    try:
        return uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise InvalidToken("Invalid token subject") from None
