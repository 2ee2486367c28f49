"""
Categories API Endpoints
"""
from fastapi import APIRouter, Depends, status
from typing import List, Optional

from ..dependencies import get_store
from ..models.records import Record
from ..services.repository import CategoryRepository, ServerRepository
from ..services.servers import CategoryService
from ..services.store import KVStore
from ..utils.security import get_current_operator

router = APIRouter()


class CategoryCreate(Record):
    name: str
    description: str = ""


class CategoryUpdate(Record):
    name: Optional[str] = None
    description: Optional[str] = None


class ReorderRequest(Record):
    ids: List[str]


def _service(store: KVStore) -> CategoryService:
    return CategoryService(CategoryRepository(store), ServerRepository(store))


@router.get("/")
async def list_categories(
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    """List categories in display order"""
    return [c.to_store() for c in await _service(store).list()]


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    category = await _service(store).add(data.name, data.description)
    return category.to_store()


@router.post("/reorder")
async def reorder_categories(
    data: ReorderRequest,
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    """Reassign sortOrder from the given id sequence"""
    return [c.to_store() for c in await _service(store).reorder(data.ids)]


@router.patch("/{category_id}")
async def update_category(
    category_id: str,
    data: CategoryUpdate,
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    category = await _service(store).update(category_id, data.name, data.description)
    return category.to_store()


@router.delete("/{category_id}")
async def delete_category(
    category_id: str,
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    """Delete category; its servers fall back to the default bucket"""
    moved = await _service(store).delete(category_id)
    return {"message": "Category deleted", "movedServers": moved}
