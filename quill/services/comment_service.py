"""
Comment service: append-only comments on the Post aggregate.

Comments belong to their post; they cannot be edited or deleted on their
own and disappear with the post.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quill.errors import NotFound, ValidationFailed
from quill.models import Comment, Post, User
from quill.services.post_service import comment_to_dict

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 500


async def add_comment(
    db: AsyncSession,
    post_id: int,
    author_id: int,
    content: str,
) -> dict:
    """
    Append a comment by *author_id* to the post identified by *post_id*.

    Raises ``ValidationFailed`` unless the trimmed content is 1-500
    characters, and ``NotFound`` when the post does not exist.
    """
    content = content.strip()
    if not 1 <= len(content) <= MAX_COMMENT_LENGTH:
        raise ValidationFailed.single(
            "content", f"Comment must be between 1 and {MAX_COMMENT_LENGTH} characters"
        )

    q = select(Post.id).where(Post.id == post_id)
    if (await db.execute(q)).scalar_one_or_none() is None:
        raise NotFound("Post not found")

    comment = Comment(post_id=post_id, author_id=author_id, content=content)
    author = await db.get(User, author_id)
    if author is not None:
        comment.author = author
    db.add(comment)
    await db.flush()

    logger.debug("User %d commented on post %d", author_id, post_id)
    return comment_to_dict(comment)
