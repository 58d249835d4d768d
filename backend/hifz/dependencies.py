"""
FastAPI Dependencies

Caller identity and database handles shared by the routers.

Authentication itself happens upstream: the proxy in front of the API sets
the user id header (USER_ID_HEADER, "X-User-Id" by default). This module
only resolves that id to a stored user.
"""

from fastapi import Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from hifz.config import settings
from hifz.db.base import get_db
from hifz.db.models_progress import User
from hifz.middleware.error_handling import AuthenticationError

# Identity header scheme
user_id_header = APIKeyHeader(name=settings.USER_ID_HEADER, auto_error=False)


async def get_current_user(
    user_id: str | None = Depends(user_id_header),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the calling user from the identity header.

    Raises:
        AuthenticationError: 401 if the header is missing, malformed or
            names an unknown user.
    """
    if not user_id:
        raise AuthenticationError(f"Missing {settings.USER_ID_HEADER} header")

    try:
        parsed = int(user_id)
    except ValueError:
        raise AuthenticationError("Malformed user id") from None

    user = await db.get(User, parsed)
    if user is None:
        raise AuthenticationError("Unknown user")
    return user


# Dependency that can be used in routers
CurrentUser = Depends(get_current_user)
