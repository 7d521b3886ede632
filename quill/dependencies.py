import logging
from dataclasses import dataclass

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quill.config import settings
from quill.database import get_db
from quill.errors import Forbidden, Unauthorized
from quill.models import User, UserRole
from quill.security import get_token_subject

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller as the service layer sees it."""

    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class PaginationParams:
    """
    Reusable FastAPI dependency for ``?page=&limit=``.

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    limit:
        Items per page, clamped to ``settings.MAX_PAGE_SIZE`` regardless of
        what the caller asked for.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Number of posts per page.",
        ),
    ) -> None:
        self.page = page
        self.limit = min(limit, settings.MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """
    Resolve the bearer token to an :class:`Actor`.

    The role is read from the users table rather than trusted from the
    token, so demoting an admin takes effect immediately.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthorized("Not authenticated")

    user_id = get_token_subject(credentials.credentials)
    if user_id is None:
        raise Unauthorized()

    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        logger.warning("Token subject %s does not match any user", user_id)
        raise Unauthorized()

    return Actor(id=user.id, role=user.role)


async def require_admin(actor: Actor = Depends(get_current_user)) -> Actor:
    if not actor.is_admin:
        raise Forbidden("Admin access required")
    return actor
