"""
Data Export / Import Endpoints
"""
from fastapi import APIRouter, Depends
from typing import List

from ..dependencies import get_store
from ..exceptions import ValidationRejected
from ..models.records import Category, Record, Server
from ..services.renewal import parse_date
from ..services.repository import CategoryRepository, ServerRepository, SettingsService
from ..services.servers import ServerService
from ..services.store import KVStore
from ..utils.security import get_current_operator

router = APIRouter()


class ImportPayload(Record):
    servers: List[Server] = []
    categories: List[Category] = []


@router.get("/export")
async def export_data(
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    """Servers, categories and settings, without credentials"""
    app_settings = await SettingsService(store).get()
    app_settings.telegram.bot_token = ""
    app_settings.telegram.chat_id = ""
    app_settings.auth.password = ""

    return {
        "servers": [s.to_store() for s in await ServerRepository(store).all()],
        "categories": [c.to_store() for c in await CategoryRepository(store).all()],
        "settings": app_settings.to_store(),
    }


@router.post("/import")
async def import_data(
    payload: ImportPayload,
    store: KVStore = Depends(get_store),
    operator: str = Depends(get_current_operator)
):
    """Replace servers and categories; settings are left alone"""
    accepted: List[Server] = []
    for server in payload.servers:
        ServerService.validate_name(server.name, accepted)
        if server.expire_date and parse_date(server.expire_date) is None:
            raise ValidationRejected(f"Invalid expire date for {server.name}: {server.expire_date!r}")
        accepted.append(server)

    category_ids = {c.id for c in payload.categories}
    for server in accepted:
        if server.category_id and server.category_id not in category_ids:
            server.category_id = ""

    await CategoryRepository(store).save_all(payload.categories, replace=True)
    await ServerRepository(store).save_all(accepted, replace=True)
    return {
        "message": "Data imported",
        "servers": len(accepted),
        "categories": len(payload.categories),
    }
