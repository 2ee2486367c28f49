"""
Settings API Endpoints
"""
from fastapi import APIRouter, Depends

from ..dependencies import get_resolver, get_store
from ..models.records import AppSettings
from ..services.config_resolver import ConfigResolver
from ..services.panel_settings import apply_settings_update, settings_view
from ..services.repository import SettingsService
from ..services.store import KVStore
from ..utils.security import get_current_operator

router = APIRouter()


@router.get("/")
async def get_settings(
    store: KVStore = Depends(get_store),
    resolver: ConfigResolver = Depends(get_resolver),
    operator: str = Depends(get_current_operator)
):
    """Current settings; externally configured secrets are masked"""
    service = SettingsService(store)
    await service.sync_external_config(resolver)
    return settings_view(await service.get(), resolver)


@router.put("/")
async def update_settings(
    incoming: AppSettings,
    store: KVStore = Depends(get_store),
    resolver: ConfigResolver = Depends(get_resolver),
    operator: str = Depends(get_current_operator)
):
    """Overwrite the settings blob"""
    service = SettingsService(store)
    updated = apply_settings_update(await service.get(), incoming, resolver)
    await service.save(updated)
    return {
        "message": "Settings saved successfully",
        "settings": settings_view(updated, resolver),
    }


@router.get("/external")
async def get_external_config(
    store: KVStore = Depends(get_store),
    resolver: ConfigResolver = Depends(get_resolver),
    operator: str = Depends(get_current_operator)
):
    """Which categories are configured outside the store, and where"""
    removal = await SettingsService(store).sync_external_config(resolver)
    snapshot = resolver.snapshot()
    data = snapshot.to_store()
    data["cleanup"] = {
        "telegramRemoved": removal.telegram_removed,
        "authRemoved": removal.auth_removed,
    }
    return data
