"""Bearer token helpers (HS256 JWTs whose ``sub`` claim is the user id)."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from quill.config import settings
from quill.errors import Unauthorized


def create_access_token(
    data: Dict[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed access token.

    Login lives in another service; this is used by the seed script and the
    test suite to mint tokens the API will accept.

    Args:
        data: Token claims, e.g. ``{"sub": "42"}``.
        expires_delta: Lifetime; defaults to ``ACCESS_TOKEN_EXPIRE_MINUTES``.
    """
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and verify *token*.

    Raises:
        Unauthorized: If the signature is bad or the token has expired.
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise Unauthorized() from e


def get_token_subject(token: str) -> Optional[int]:
    """Return the user id carried in *token*, or None if it has no usable ``sub``."""
    sub = decode_token(token).get("sub")
    try:
        return int(sub)
    except (TypeError, ValueError):
        return None
