"""
FastAPI dependencies for the store, config resolver and notifier.
Tests swap these through app.dependency_overrides.
"""
from .config import get_settings
from .services.config_resolver import ConfigResolver
from .services.notifications import Notifier
from .services.store import KVStore, SqlKVStore
from .services.telegram import telegram_notifier

_sql_store = SqlKVStore()


def get_store() -> KVStore:
    return _sql_store


def get_resolver() -> ConfigResolver:
    return ConfigResolver.from_settings(get_settings())


def get_notifier() -> Notifier:
    return telegram_notifier
