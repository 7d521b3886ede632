"""Authorization predicates over (actor, resource)."""

from quill.models import Post, UserRole


def can_modify(actor_id: int, actor_role: str, post: Post) -> bool:
    """Only the post's author or an admin may update or delete it."""
    return actor_role == UserRole.ADMIN.value or actor_id == post.author_id
