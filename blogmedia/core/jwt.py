# blogmedia/core/jwt.py
from __future__ import annotations

"""
Blog Media • JWT verification
=============================
Access tokens are minted by the blog platform's auth service; this service
only verifies them (shared HS secret) to learn who the operator is.

- Case-insensitive Bearer token extraction
- `decode_token` with `typ`/`exp` enforcement
"""

from typing import Any, Dict, Optional, Sequence
import logging

from fastapi import Request
from jose import ExpiredSignatureError, JWTError, jwt

from blogmedia.core.config import settings
from blogmedia.core.exceptions import InvalidTokenException

logger = logging.getLogger(__name__)


def get_bearer_token(request: Request) -> Optional[str]:
    """Return the raw token from `Authorization: Bearer <token>` or None."""
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def decode_token(token: str, *, expected_types: Sequence[str] = ("access",)) -> Dict[str, Any]:
    """
    Verify signature and expiry, then check the `token_type` claim.

    Raises
    ------
    InvalidTokenException
        On any signature, expiry or type problem.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY.get_secret_value(),
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except ExpiredSignatureError:
        raise InvalidTokenException("Token has expired")
    except JWTError as e:
        logger.debug("JWT decode failed: %s", e)
        raise InvalidTokenException()

    token_type = payload.get("token_type") or payload.get("typ") or "access"
    if expected_types and token_type not in expected_types:
        raise InvalidTokenException("Unexpected token type")
    if not payload.get("sub"):
        raise InvalidTokenException("Token subject missing")
    return payload


__all__ = ["get_bearer_token", "decode_token"]
