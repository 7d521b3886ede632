from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from quill.database import get_db
from quill.dependencies import Actor, require_admin
from quill.schemas import CategoryCreate, CategoryResponse, CategoryUpdate, MessageResponse
from quill.services import category_service

router = APIRouter(prefix="/api/v1/categories", tags=["categories"])


@router.get("", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    return await category_service.list_categories(db)


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: int, db: AsyncSession = Depends(get_db)):
    return await category_service.get_category(db, category_id)


@router.post("", status_code=201, response_model=CategoryResponse)
async def create_category(
    data: CategoryCreate,
    _: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.create_category(db, data)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    _: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.update_category(db, category_id, data)


@router.delete("/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: int,
    _: Actor = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await category_service.delete_category(db, category_id)
    return {"message": "Category deleted successfully"}
