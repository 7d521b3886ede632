"""
Keeps ``Category.post_count`` in step with post writes.

Post writes call in here after any change that can move a post into or
out of a category's published set: create, delete, category change and
draft/published transitions.  Each call is a full recount, so redundant
or overlapping calls converge on the same answer.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from quill.services import category_service

logger = logging.getLogger(__name__)


async def sync_category(db: AsyncSession, category_id: int) -> None:
    count = await category_service.recompute_count(db, category_id)
    if count is None:
        # Posts may still reference a category that was removed while they
        # were drafts; there is nothing to update in that case.
        logger.warning("Skipping count sync for missing category %s", category_id)


async def sync_categories(db: AsyncSession, *category_ids: int | None) -> None:
    """Sync each distinct, non-None category id once, in the order given."""
    for category_id in dict.fromkeys(c for c in category_ids if c is not None):
        await sync_category(db, category_id)
