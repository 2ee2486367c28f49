"""
Repositories over the key-value store.

Each collection is one JSON array blob: reads load the whole array, writes
replace it. Concurrent writers race and the last write wins.
"""
from datetime import datetime
from typing import Generic, List, Optional, Type, TypeVar
import json
import logging

from pydantic import ValidationError

from ..exceptions import CollectionUnreadable
from ..models.records import (
    AppSettings,
    Category,
    ExternalConfigSnapshot,
    Record,
    Server,
)
from .config_resolver import (
    AUTH,
    TELEGRAM,
    ConfigResolver,
    ExternalConfigRemoval,
    detect_external_config_removal,
)
from .store import (
    CATEGORIES_KEY,
    EXTERNAL_CONFIG_STATE_KEY,
    SERVERS_KEY,
    SETTINGS_KEY,
    KVStore,
)

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


def _load_json(raw: Optional[str], key: str):
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        logger.warning(f"Ignoring corrupt blob under '{key}': {e}")
        return None


def _dump_json(data) -> str:
    return json.dumps(data, ensure_ascii=False)


class CollectionRepository(Generic[R]):
    """Read-all / write-all access to one record collection"""

    key: str
    model: Type[R]

    def __init__(self, store: KVStore):
        self.store = store
        # Entries the last all() could not load
        self.skipped = 0

    async def all(self) -> List[R]:
        raw = await self.store.get(self.key)
        data = _load_json(raw, self.key)
        self.skipped = 0
        if not isinstance(data, list):
            if raw:
                self.skipped = 1
            return []

        records = []
        for item in data:
            try:
                records.append(self.model.model_validate(item))
            except ValidationError as e:
                self.skipped += 1
                logger.warning(f"Skipping invalid {self.model.__name__} in '{self.key}': {e}")
        return records

    async def save_all(self, records: List[R], replace: bool = False) -> None:
        """
        Write the whole collection. Unless replace is set, raises
        CollectionUnreadable when the previous all() dropped entries.
        """
        if self.skipped and not replace:
            raise CollectionUnreadable(self.key, self.skipped)
        await self.store.put(self.key, _dump_json([r.to_store() for r in records]))

    async def get(self, record_id: str) -> Optional[R]:
        for record in await self.all():
            if record.id == record_id:
                return record
        return None


class ServerRepository(CollectionRepository[Server]):
    key = SERVERS_KEY
    model = Server


class CategoryRepository(CollectionRepository[Category]):
    key = CATEGORIES_KEY
    model = Category

    async def all(self) -> List[Category]:
        categories = await super().all()
        return sorted(categories, key=lambda c: c.sort_order)


class SettingsService:
    """Typed access to the settings singleton and the external config snapshot"""

    def __init__(self, store: KVStore, default_notify_days: Optional[int] = None):
        self.store = store
        self.default_notify_days = default_notify_days

    def _defaults(self) -> AppSettings:
        days = self.default_notify_days
        if days is None:
            from ..config import settings
            days = settings.DEFAULT_NOTIFY_DAYS
        return AppSettings(global_notify_days=days)

    async def get(self) -> AppSettings:
        data = _load_json(await self.store.get(SETTINGS_KEY), SETTINGS_KEY)
        if not isinstance(data, dict):
            return self._defaults()
        try:
            return AppSettings.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Stored settings invalid, using defaults: {e}")
            return self._defaults()

    async def save(self, app_settings: AppSettings) -> None:
        await self.store.put(SETTINGS_KEY, _dump_json(app_settings.to_store()))

    async def get_snapshot(self) -> Optional[ExternalConfigSnapshot]:
        raw = _load_json(await self.store.get(EXTERNAL_CONFIG_STATE_KEY), EXTERNAL_CONFIG_STATE_KEY)
        if not isinstance(raw, dict):
            return None
        try:
            return ExternalConfigSnapshot.model_validate(raw)
        except ValidationError:
            return None

    async def save_snapshot(self, snapshot: ExternalConfigSnapshot) -> None:
        await self.store.put(EXTERNAL_CONFIG_STATE_KEY, _dump_json(snapshot.to_store()))

    async def sync_external_config(self, resolver: ConfigResolver,
                                   now: Optional[datetime] = None) -> ExternalConfigRemoval:
        """
        Compare the current external config with the last persisted snapshot.
        A category that stopped being external gets its stored credentials
        wiped once; the new snapshot is saved so the wipe never repeats.
        """
        previous = await self.get_snapshot()
        current = resolver.snapshot(now)
        removal = detect_external_config_removal(previous, current)

        if removal.any:
            app_settings = await self.get()
            if removal.telegram_removed:
                app_settings.telegram.enabled = False
                app_settings.telegram.bot_token = ""
                app_settings.telegram.chat_id = ""
                logger.info(f"External {TELEGRAM} config removed - stored credentials cleared")
            if removal.auth_removed:
                app_settings.auth.enabled = False
                app_settings.auth.password = ""
                logger.info(f"External {AUTH} config removed - stored password cleared")
            await self.save(app_settings)

        await self.save_snapshot(current)
        return removal
