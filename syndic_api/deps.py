"""Common FastAPI dependencies for consistent type annotations.

Usage:
    from syndic_api.deps import CurrentUserDep, DbSession

    async def my_endpoint(db: DbSession, current_user: CurrentUserDep):
        # db is AsyncSession with get_db dependency injected
        # current_user carries user_id and tenant_id from the bearer token
        ...
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from syndic_api.auth import CurrentUser, get_current_user
from syndic_api.database import get_db

DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]

__all__ = ["CurrentUserDep", "DbSession"]
