"""
Post service: business logic for the Post aggregate.

Design notes
------------
- Every write that can change which published posts a category holds
  (create, delete, category change, draft <-> published) ends with a call
  into ``consistency``.  The recount runs inside the same session, so it
  sees the write that triggered it and commits or rolls back with it.
- Relationships are ``lazy="noload"`` on the models; this module
  eager-loads author and category with ``joinedload`` and the collections
  with ``selectinload``.  Reloads after a write use ``populate_existing``
  so objects already in the identity map pick up fresh relationships.
- ``get_post`` increments ``view_count`` with a plain read-modify-write.
  Concurrent readers can lose increments; the counter is approximate.
- Service functions flush but do not commit; ``get_db`` owns the
  transaction.
"""
import logging
import math
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from quill.errors import (
    ConcurrentWrite,
    DuplicateTitle,
    Forbidden,
    InvalidCategory,
    NotFound,
    ValidationFailed,
)
from quill.models import Comment, Post, PostLike, PostStatus, Tag
from quill.permissions import can_modify
from quill.schemas import PostCreate, PostPage, PostUpdate
from quill.services import consistency
from quill.services.category_service import category_exists, category_summary, slugify

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _serialize_user(user) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
    }


def comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "author_id": comment.author_id,
        "author": _serialize_user(comment.author),
        "content": comment.content,
        "created_at": _iso(comment.created_at),
    }


def _post_to_dict(post: Post) -> dict:
    """Serialise a Post for list views (no body, no comments)."""
    return {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.excerpt or post.title,
        "status": post.status,
        "view_count": post.view_count,
        "featured_image": post.featured_image,
        "category_id": post.category_id,
        "category": category_summary(post.category),
        "author_id": post.author_id,
        "author": _serialize_user(post.author),
        "tags": [t.name for t in post.tags],
        "likes": [like.user_id for like in post.likes],
        "published_at": _iso(post.published_at),
        "created_at": _iso(post.created_at),
        "updated_at": _iso(post.updated_at),
    }


def _post_detail_to_dict(post: Post) -> dict:
    data = _post_to_dict(post)
    data["content"] = post.content
    data["comments"] = [comment_to_dict(c) for c in post.comments]
    return data


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------

def _list_options():
    return (
        joinedload(Post.author),
        joinedload(Post.category),
        selectinload(Post.tags),
        selectinload(Post.likes),
    )


def _detail_options():
    return _list_options() + (
        selectinload(Post.comments).joinedload(Comment.author),
    )


async def _load_post(db: AsyncSession, post_id: int) -> Post | None:
    q = (
        select(Post)
        .where(Post.id == post_id)
        .options(*_detail_options())
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def _get_or_404(db: AsyncSession, post_id: int) -> Post:
    post = await _load_post(db, post_id)
    if post is None:
        raise NotFound("Post not found")
    return post


async def _resolve_tags(db: AsyncSession, tag_names: list[str]) -> list[Tag]:
    """
    Return Tag rows for each name in *tag_names*, creating any that do not
    exist yet within the caller's transaction.
    """
    tags: list[Tag] = []
    for name in tag_names:
        tag = await _find_tag(db, name)
        if not tag:
            tag = Tag(name=name)
            db.add(tag)
            await _flush_concurrent(db)
        tags.append(tag)
    return tags


async def _find_tag(db: AsyncSession, name: str) -> Tag | None:
    result = await db.execute(select(Tag).where(Tag.name == name))
    return result.scalar_one_or_none()


async def _flush_concurrent(db: AsyncSession) -> None:
    """Flush an insert that a parallel request may have made first."""
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConcurrentWrite() from exc


def _title_slug(title: str) -> str:
    slug = slugify(title)
    if not slug:
        raise ValidationFailed.single("title", "Title must contain at least one letter or digit")
    return slug


async def _ensure_title_free(db: AsyncSession, slug: str, exclude_id: int | None = None) -> None:
    q = select(Post.id).where(Post.slug == slug)
    if exclude_id is not None:
        q = q.where(Post.id != exclude_id)
    if (await db.execute(q.limit(1))).scalar_one_or_none() is not None:
        raise DuplicateTitle()


async def _flush(db: AsyncSession) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateTitle() from exc


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_posts(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    category: int | None = None,
    status: str = PostStatus.PUBLISHED.value,
    search: str | None = None,
) -> PostPage:
    """
    Return one page of posts newest first.

    Ordering is ``published_at DESC NULLS LAST, created_at DESC, id DESC``
    so pages are stable even when timestamps collide.  *search* matches
    title, content or any tag as a case-insensitive substring.
    """
    conditions = [Post.status == status]
    if category is not None:
        conditions.append(Post.category_id == category)
    if search:
        pattern = f"%{_escape_like(search.strip())}%"
        conditions.append(
            or_(
                Post.title.ilike(pattern, escape="\\"),
                Post.content.ilike(pattern, escape="\\"),
                Post.tags.any(Tag.name.ilike(pattern, escape="\\")),
            )
        )

    count_q = select(func.count()).select_from(Post).where(*conditions)
    total: int = (await db.execute(count_q)).scalar_one()

    posts_q = (
        select(Post)
        .where(*conditions)
        .options(*_list_options())
        .order_by(
            Post.published_at.desc().nulls_last(),
            Post.created_at.desc(),
            Post.id.desc(),
        )
        .offset((page - 1) * limit)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(posts_q)
    posts = result.unique().scalars().all()

    return PostPage(
        posts=[_post_to_dict(p) for p in posts],
        total=total,
        totalPages=math.ceil(total / limit) if total > 0 else 0,
        currentPage=page,
    )


async def get_post(db: AsyncSession, post_id: int) -> dict:
    """
    Return the full post (body, comments, likers) and count the view.
    """
    post = await _get_or_404(db, post_id)
    post.view_count += 1
    await db.flush()
    return _post_detail_to_dict(post)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_post(db: AsyncSession, author_id: int, data: PostCreate) -> dict:
    """
    Create a post owned by *author_id*.

    Raises ``InvalidCategory`` before anything is written when the category
    does not exist, and ``DuplicateTitle`` when the title's slug is taken.
    """
    if not await category_exists(db, data.category):
        raise InvalidCategory()

    slug = _title_slug(data.title)
    await _ensure_title_free(db, slug)

    post = Post(
        title=data.title,
        slug=slug,
        content=data.content,
        excerpt=data.excerpt,
        category_id=data.category,
        author_id=author_id,
        status=data.status.value,
        featured_image=data.featured_image,
    )
    if post.is_published:
        post.published_at = datetime.now(timezone.utc)
    if data.tags:
        post.tags.extend(await _resolve_tags(db, data.tags))

    db.add(post)
    await _flush(db)
    await consistency.sync_category(db, post.category_id)

    logger.info("User %d created post %d in category %d", author_id, post.id, post.category_id)
    return _post_detail_to_dict(await _load_post(db, post.id))


async def update_post(
    db: AsyncSession,
    post_id: int,
    actor_id: int,
    actor_role: str,
    data: PostUpdate,
) -> dict:
    """
    Partially update a post on behalf of its author or an admin.

    ``None`` leaves title, content, category, status and tags unchanged;
    for excerpt and featured_image an explicit ``null`` clears the value.
    Categories whose published set may have changed are recounted.
    """
    post = await _get_or_404(db, post_id)
    if not can_modify(actor_id, actor_role, post):
        raise Forbidden("Not authorized to update this post")

    update_data = data.model_dump(exclude_unset=True)
    for key in ("title", "content", "category", "status", "tags"):
        if update_data.get(key) is None:
            update_data.pop(key, None)

    old_category_id = post.category_id
    old_status = post.status

    new_category_id = update_data.get("category", old_category_id)
    if not await category_exists(db, new_category_id):
        raise InvalidCategory()
    post.category_id = new_category_id

    if "title" in update_data and update_data["title"] != post.title:
        slug = _title_slug(update_data["title"])
        await _ensure_title_free(db, slug, exclude_id=post.id)
        post.title = update_data["title"]
        post.slug = slug

    if "content" in update_data:
        post.content = update_data["content"]
    if "excerpt" in update_data:
        post.excerpt = update_data["excerpt"]
    if "featured_image" in update_data:
        post.featured_image = update_data["featured_image"]

    if "status" in update_data:
        post.status = update_data["status"].value
        if post.is_published and not post.published_at:
            post.published_at = datetime.now(timezone.utc)

    if "tags" in update_data:
        post.tags.clear()
        post.tags.extend(await _resolve_tags(db, update_data["tags"]))

    await _flush(db)

    if post.category_id != old_category_id:
        await consistency.sync_categories(db, old_category_id, post.category_id)
    elif post.status != old_status:
        await consistency.sync_category(db, post.category_id)

    return _post_detail_to_dict(await _load_post(db, post.id))


async def delete_post(db: AsyncSession, post_id: int, actor_id: int, actor_role: str) -> None:
    """Delete a post with its comments, likes and tag links, then recount its category."""
    # Children are loaded so the ORM cascade removes them even where the
    # database does not enforce ON DELETE CASCADE (SQLite).
    post = await _get_or_404(db, post_id)
    if not can_modify(actor_id, actor_role, post):
        raise Forbidden("Not authorized to delete this post")

    category_id = post.category_id
    await db.delete(post)
    await db.flush()

    await consistency.sync_category(db, category_id)
    logger.info("User %d deleted post %d", actor_id, post_id)


async def toggle_like(db: AsyncSession, post_id: int, user_id: int) -> dict:
    """
    Like the post if *user_id* has not liked it yet, otherwise unlike it.

    Membership is a row keyed by (post_id, user_id), so the count is read
    back from the table instead of being adjusted in place.
    """
    exists_q = select(Post.id).where(Post.id == post_id)
    if (await db.execute(exists_q)).scalar_one_or_none() is None:
        raise NotFound("Post not found")

    like = await db.get(PostLike, (post_id, user_id))
    if like is not None:
        await db.delete(like)
        is_liked = False
    else:
        db.add(PostLike(post_id=post_id, user_id=user_id))
        is_liked = True
    await _flush_concurrent(db)

    count_q = select(func.count()).select_from(PostLike).where(PostLike.post_id == post_id)
    likes: int = (await db.execute(count_q)).scalar_one()
    return {"likes": likes, "isLiked": is_liked}
