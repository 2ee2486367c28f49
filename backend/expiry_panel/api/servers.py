"""
Servers API Endpoints - Register servers and track their expiry
"""
from fastapi import APIRouter, Depends, status
from typing import List, Optional

from ..dependencies import get_store
from ..models.records import Record, RenewalType
from ..services.repository import CategoryRepository, ServerRepository
from ..services.servers import ServerService
from ..services.store import KVStore
from ..utils.security import get_current_operator

router = APIRouter()


# Request Models
class ServerCreate(Record):
    name: str
    ip: str = ""
    provider: str = ""
    category_id: str = ""
    register_date: Optional[str] = None
    renewal_period: Optional[str] = None
    expire_date: Optional[str] = None
    price: str = ""
    renewal_link: Optional[str] = None
    tags: str = ""
    tag_color: str = ""
    notify_days: Optional[int] = None


class ServerUpdate(Record):
    name: Optional[str] = None
    ip: Optional[str] = None
    provider: Optional[str] = None
    category_id: Optional[str] = None
    register_date: Optional[str] = None
    renewal_period: Optional[str] = None
    expire_date: Optional[str] = None
    price: Optional[str] = None
    renewal_link: Optional[str] = None
    tags: Optional[str] = None
    tag_color: Optional[str] = None
    notify_days: Optional[int] = None


class RenewRequest(Record):
    type: RenewalType = RenewalType.PERIOD
    expire_date: Optional[str] = None


def _service(store: KVStore) -> ServerService:
    return ServerService(ServerRepository(store), CategoryRepository(store))


@router.get("/", response_model=List[dict])
async def list_servers(
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    """List all servers with days remaining and status"""
    views = await _service(store).list_with_status()
    return [view.to_dict() for view in views]


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_server(
    server_data: ServerCreate,
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    """Register a server; expireDate defaults to registerDate + renewalPeriod"""
    service = _service(store)
    server = await service.add(server_data.model_dump())
    view = await service.view(server.id)
    return view.to_dict()


@router.get("/{server_id}")
async def get_server(
    server_id: str,
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    """Get server by ID"""
    view = await _service(store).view(server_id)
    return view.to_dict()


@router.patch("/{server_id}")
async def update_server(
    server_id: str,
    changes: ServerUpdate,
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    """Update only the supplied fields"""
    service = _service(store)
    await service.update(server_id, changes.model_dump(exclude_unset=True))
    view = await service.view(server_id)
    return view.to_dict()


@router.post("/{server_id}/renew")
async def renew_server(
    server_id: str,
    renewal: RenewRequest,
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    """Extend by the renewal period, or to an explicit expire date"""
    service = _service(store)
    await service.renew(server_id, renewal.type, renewal.expire_date)
    view = await service.view(server_id)
    return view.to_dict()


@router.delete("/{server_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_server(
    server_id: str,
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    """Delete server"""
    await _service(store).delete(server_id)
    return None
