"""
Bearer token authentication.

Tokens are HS256 JWTs whose `sub` claim is the caller's user UUID.
Issuing tokens belongs to the account service; `create_access_token` exists
for local development (scripts/issue_token.py) and tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

logger = logging.getLogger(__name__)


class InvalidTokenError(Exception):
    """Raised when a bearer token can't be validated."""
    pass


def create_access_token(
    user_id: UUID,
    secret: str,
    algorithm: str = "HS256",
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    expire = datetime.now(timezone.utc) + expires_in
    payload = {
        "sub": str(user_id),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> UUID:
    """
    Validate a token and return the user id it was issued for.

    Raises InvalidTokenError on a bad signature, an expired token, or a
    missing/malformed subject.
    """
    if not secret:
        raise InvalidTokenError("Token secret is not configured")

    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as e:
        raise InvalidTokenError(str(e)) from e

    subject: Optional[str] = payload.get("sub")
    if not subject:
        raise InvalidTokenError("Token has no subject")

    try:
        return UUID(subject)
    except ValueError as e:
        raise InvalidTokenError(f"Token subject is not a user id: {subject!r}") from e
