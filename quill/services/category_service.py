"""
Category service: the ledger that owns Category rows and their
denormalized ``post_count``.

``post_count`` is never incremented or decremented.  It is always
recomputed from the posts table by :func:`recompute_count`, so calling it
twice, late, or out of order still leaves the true value behind.  Post
writes reach it through ``quill.services.consistency``.
"""
import logging
import re

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quill.config import settings
from quill.errors import DuplicateName, HasPosts, NotFound, ValidationFailed
from quill.models import Category, Post, PostStatus
from quill.schemas import CategoryCreate, CategoryUpdate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s]")
_SLUG_SPACE_RE = re.compile(r"\s+")
_SLUG_DASH_RE = re.compile(r"-+")


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*.

    Anything other than ASCII letters, digits and whitespace is dropped,
    whitespace runs become a single hyphen, and leading/trailing hyphens
    are trimmed: ``"  C++ & Rust Tips "`` -> ``"c-rust-tips"``.
    """
    text = _SLUG_STRIP_RE.sub("", text.lower()).strip()
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def category_to_dict(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "color": category.color,
        "post_count": category.post_count,
        "created_at": category.created_at.isoformat() if category.created_at else None,
        "updated_at": category.updated_at.isoformat() if category.updated_at else None,
    }


def category_summary(category: Category | None) -> dict | None:
    """Populated form embedded in post responses."""
    if category is None:
        return None
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "color": category.color,
    }


def _derive_slug(name: str) -> str:
    slug = slugify(name)
    if not slug:
        raise ValidationFailed.single("name", "Name must contain at least one letter or digit")
    return slug


async def _get_or_404(db: AsyncSession, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFound("Category not found")
    return category


async def _ensure_unique(
    db: AsyncSession, name: str, slug: str, exclude_id: int | None = None
) -> None:
    q = select(Category.id).where(or_(Category.name == name, Category.slug == slug))
    if exclude_id is not None:
        q = q.where(Category.id != exclude_id)
    if (await db.execute(q.limit(1))).scalar_one_or_none() is not None:
        raise DuplicateName()


async def _flush(db: AsyncSession) -> None:
    # Two writers can both pass _ensure_unique; the unique index decides.
    try:
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateName() from exc


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def list_categories(db: AsyncSession) -> list[dict]:
    """Return every category ordered by name."""
    result = await db.execute(select(Category).order_by(Category.name.asc()))
    return [category_to_dict(c) for c in result.scalars().all()]


async def get_category(db: AsyncSession, category_id: int) -> dict:
    return category_to_dict(await _get_or_404(db, category_id))


async def category_exists(db: AsyncSession, category_id: int) -> bool:
    q = select(Category.id).where(Category.id == category_id)
    return (await db.execute(q)).scalar_one_or_none() is not None


async def create_category(db: AsyncSession, data: CategoryCreate) -> dict:
    """
    Create a category with ``post_count = 0``.

    Raises ``DuplicateName`` when the name or its slug is already taken
    (``"Web Dev"`` and ``"web-dev"`` collide on slug).
    """
    slug = _derive_slug(data.name)
    await _ensure_unique(db, data.name, slug)

    category = Category(
        name=data.name,
        slug=slug,
        description=data.description,
        color=data.color or settings.DEFAULT_CATEGORY_COLOR,
        post_count=0,
    )
    db.add(category)
    await _flush(db)
    logger.info("Created category %d (%s)", category.id, category.slug)
    return category_to_dict(category)


async def update_category(db: AsyncSession, category_id: int, data: CategoryUpdate) -> dict:
    """
    Partially update a category.  The slug follows the name; ``post_count``
    cannot be set from outside.
    """
    category = await _get_or_404(db, category_id)
    update_data = data.model_dump(exclude_unset=True)

    name = update_data.pop("name", None)
    if name is not None and name != category.name:
        slug = _derive_slug(name)
        await _ensure_unique(db, name, slug, exclude_id=category.id)
        category.name = name
        category.slug = slug

    if "description" in update_data:
        category.description = update_data["description"]
    if update_data.get("color") is not None:
        category.color = update_data["color"]

    await _flush(db)
    return category_to_dict(category)


async def delete_category(db: AsyncSession, category_id: int) -> None:
    """
    Delete an empty category.

    The count is recomputed first so a stale ``post_count`` can neither
    block a legitimately empty category nor let a populated one through.
    """
    category = await _get_or_404(db, category_id)
    count = await recompute_count(db, category.id)
    if count:
        raise HasPosts()

    await db.delete(category)
    await db.flush()
    logger.info("Deleted category %d (%s)", category_id, category.slug)


async def recompute_count(db: AsyncSession, category_id: int) -> int | None:
    """
    Recount the published posts in *category_id* and store the result.

    Returns the new count, or None when the category no longer exists.
    Pending post changes in *db* are autoflushed before the COUNT runs, so
    the caller's own writes are always included.
    """
    category = await db.get(Category, category_id)
    if category is None:
        return None

    count_q = (
        select(func.count())
        .select_from(Post)
        .where(
            Post.category_id == category_id,
            Post.status == PostStatus.PUBLISHED.value,
        )
    )
    count: int = (await db.execute(count_q)).scalar_one()

    if category.post_count != count:
        logger.debug(
            "Category %d post_count %d -> %d", category_id, category.post_count, count
        )
        category.post_count = count
        await db.flush()
    return count
