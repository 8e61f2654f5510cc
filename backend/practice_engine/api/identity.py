"""Caller identity.

Authentication happens upstream; the gateway forwards the authenticated
user id in ``X-User-Id``.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

user_id_header = APIKeyHeader(name="X-User-Id", auto_error=False)


async def get_owner_id(user_id: Annotated[str | None, Depends(user_id_header)]) -> str:
    if not user_id or not user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return user_id.strip()


OwnerId = Annotated[str, Depends(get_owner_id)]
