# blogmedia/dependencies/admin.py
from __future__ import annotations

"""
Admin guard
-----------
The storage subsystem trusts the operator identity carried by the platform's
access token and performs no further authorization beyond the admin-role
check here.

Exports
- Operator: minimal identity passed to services (`id`, `email`, `role`)
- get_current_operator: FastAPI dependency for every mutating admin route
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from blogmedia.core.config import settings
from blogmedia.core.exceptions import InvalidTokenException, PermissionDeniedException
from blogmedia.core.jwt import decode_token, get_bearer_token


@dataclass(frozen=True)
class Operator:
    id: str
    email: Optional[str] = None
    role: Optional[str] = None


async def get_current_operator(request: Request) -> Operator:
    """Decode the bearer token and require an admin role claim."""
    token = get_bearer_token(request)
    if not token:
        raise InvalidTokenException("Missing access token")

    claims = decode_token(token)
    role = str(claims.get("role") or "").upper()
    if role not in settings.admin_roles_list:
        raise PermissionDeniedException(role=role or None)

    return Operator(id=str(claims["sub"]), email=claims.get("email"), role=role)


__all__ = ["Operator", "get_current_operator"]
