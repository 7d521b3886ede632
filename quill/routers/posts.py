from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from quill.database import get_db
from quill.dependencies import Actor, PaginationParams, get_current_user
from quill.models import PostStatus
from quill.schemas import (
    CommentCreate,
    CommentResponse,
    LikeResponse,
    MessageResponse,
    PostCreate,
    PostPage,
    PostUpdate,
)
from quill.services import comment_service, post_service

router = APIRouter(prefix="/api/v1/posts", tags=["posts"])


@router.get("", response_model=PostPage)
async def list_posts(
    pagination: PaginationParams = Depends(),
    category: int | None = Query(None, description="Only posts in this category."),
    status: PostStatus = Query(PostStatus.PUBLISHED),
    search: str | None = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.list_posts(
        db,
        page=pagination.page,
        limit=pagination.limit,
        category=category,
        status=status.value,
        search=search,
    )


@router.get("/{post_id}")
async def get_post(post_id: int, db: AsyncSession = Depends(get_db)):
    return await post_service.get_post(db, post_id)


@router.post("", status_code=201)
async def create_post(
    data: PostCreate,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.create_post(db, actor.id, data)


@router.put("/{post_id}")
async def update_post(
    post_id: int,
    data: PostUpdate,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.update_post(db, post_id, actor.id, actor.role, data)


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: int,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await post_service.delete_post(db, post_id, actor.id, actor.role)
    return {"message": "Post deleted successfully"}


@router.post("/{post_id}/like", response_model=LikeResponse)
async def toggle_like(
    post_id: int,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await post_service.toggle_like(db, post_id, actor.id)


@router.post("/{post_id}/comments", status_code=201, response_model=CommentResponse)
async def add_comment(
    post_id: int,
    data: CommentCreate,
    actor: Actor = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await comment_service.add_comment(db, post_id, actor.id, data.content)
