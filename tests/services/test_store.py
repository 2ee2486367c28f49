import pytest

from expiry_panel import database
from expiry_panel.exceptions import StorageUnavailableError
from expiry_panel.services.store import MemoryKVStore, SqlKVStore


@pytest.mark.asyncio
async def test_sql_store_round_trip():
    assert database.init_db() is True
    store = SqlKVStore()

    assert await store.get("missing") is None
    await store.put("servers", "[]")
    await store.put("servers", '[{"id": "1"}]')
    assert await store.get("servers") == '[{"id": "1"}]'


@pytest.mark.asyncio
async def test_unconfigured_storage_is_reported(monkeypatch):
    monkeypatch.setattr(database, "SessionLocal", None)
    store = SqlKVStore()

    with pytest.raises(StorageUnavailableError):
        await store.get("servers")
    with pytest.raises(StorageUnavailableError):
        await store.put("servers", "[]")


@pytest.mark.asyncio
async def test_memory_store_is_a_plain_map():
    store = MemoryKVStore({"settings": "{}"})
    assert await store.get("settings") == "{}"
    await store.put("settings", '{"siteTitle": "x"}')
    assert await store.get("settings") == '{"siteTitle": "x"}'
