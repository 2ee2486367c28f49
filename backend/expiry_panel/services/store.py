"""
Key-Value Store
Async get/put of JSON text blobs. The SQL-backed store keeps every key in
one table; the memory store is a plain dict for tests and throwaway runs.
"""
from typing import Dict, Optional, Protocol
import logging

from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

SERVERS_KEY = "servers"
CATEGORIES_KEY = "categories"
SETTINGS_KEY = "settings"
EXTERNAL_CONFIG_STATE_KEY = "external_config_state"


class KVStore(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def put(self, key: str, value: str) -> None:
        ...


class MemoryKVStore:
    """In-process store; contents vanish with the process"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self._data[key] = value


class SqlKVStore:
    """Store backed by the kv_store table"""

    async def get(self, key: str) -> Optional[str]:
        from ..database import get_db_context
        from ..models.kv_entry import KVEntry

        try:
            with get_db_context() as db:
                entry = db.query(KVEntry).filter(KVEntry.key == key).first()
                return entry.value if entry else None
        except SQLAlchemyError as e:
            logger.error(f"KV read failed for '{key}': {e}")
            raise StorageUnavailableError(f"Key-value store unreachable: {e}") from e

    async def put(self, key: str, value: str) -> None:
        from ..database import get_db_context
        from ..models.kv_entry import KVEntry

        try:
            with get_db_context() as db:
                entry = db.query(KVEntry).filter(KVEntry.key == key).first()
                if entry:
                    entry.value = value
                else:
                    db.add(KVEntry(key=key, value=value))
        except SQLAlchemyError as e:
            logger.error(f"KV write failed for '{key}': {e}")
            raise StorageUnavailableError(f"Key-value store unreachable: {e}") from e
