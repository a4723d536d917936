"""Authentication helpers for request-scoped tenant and user context."""

from dataclasses import dataclass
from typing import NoReturn
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from syndic_api.database import get_db
from syndic_api.models import User
from syndic_api.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


@dataclass(frozen=True)
class CurrentUser:
    """Caller identity resolved from the bearer token."""

    user_id: UUID
    tenant_id: UUID


def _unauthorized(detail: str) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _parse_uuid_claim(payload: dict, claim: str) -> UUID:
    raw = payload.get(claim)
    if not raw:
        _unauthorized(f"Token missing {claim}")
    try:
        return UUID(str(raw))
    except ValueError:
        _unauthorized(f"Invalid {claim} format in token")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the current user and tenant from the JWT token."""
    payload = decode_access_token(token)
    if not payload:
        _unauthorized("Could not validate credentials")

    user_id = _parse_uuid_claim(payload, "sub")
    tenant_id = _parse_uuid_claim(payload, "tenant_id")

    result = await db.execute(
        select(User.id).where(User.id == user_id, User.tenant_id == tenant_id)
    )
    if result.scalar_one_or_none() is None:
        _unauthorized("User not found")

    return CurrentUser(user_id=user_id, tenant_id=tenant_id)
