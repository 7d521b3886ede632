"""
User service: the small slice of user management this API owns.

Credentials and login live with the token issuer; here users are
provisioned, listed and looked up so posts, comments and likes have
someone to point at.
"""
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from quill.errors import DuplicateUser, NotFound
from quill.models import Post, User, UserRole
from quill.schemas import UserCreate


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "display_name": user.display_name,
        "bio": user.bio,
        "role": user.role,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _post_summary_to_dict(post: Post) -> dict:
    """Lightweight post entry for a profile page; no nested author."""
    return {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.excerpt or post.title,
        "status": post.status,
        "category_id": post.category_id,
        "view_count": post.view_count,
        "published_at": post.published_at.isoformat() if post.published_at else None,
        "created_at": post.created_at.isoformat() if post.created_at else None,
    }


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_users(db: AsyncSession) -> list[dict]:
    """Return all users, newest first."""
    q = select(User).order_by(User.created_at.desc(), User.id.desc())
    result = await db.execute(q)
    return [_user_to_dict(u) for u in result.scalars().all()]


async def get_user(db: AsyncSession, user_id: int) -> dict:
    """
    Return *user_id* with a summary of their posts.

    Raises ``NotFound`` when the user does not exist.
    """
    q = (
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.posts))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    user = result.unique().scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")

    data = _user_to_dict(user)
    data["posts"] = [_post_summary_to_dict(p) for p in user.posts]
    return data


async def create_user(
    db: AsyncSession, data: UserCreate, role: UserRole = UserRole.USER
) -> dict:
    """
    Create a user.  Username and email uniqueness is enforced by the
    database; a violation surfaces as ``DuplicateUser``.
    """
    user = User(
        username=data.username,
        email=data.email,
        display_name=data.display_name,
        bio=data.bio,
        role=role.value,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateUser() from exc
    return _user_to_dict(user)
