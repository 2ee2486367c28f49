"""
Config Resolver
Three-tier precedence for secrets: environment variable > embedded code
constant > stored setting. Resolution never fails; missing values are "".
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Tuple

from ..models.records import (
    AppSettings,
    ConfigSource,
    ExternalConfigSnapshot,
    ExternalStatus,
)

TELEGRAM = "telegram"
AUTH = "auth"

# (category, key) -> environment variable / code constant name
ENV_NAMES: Dict[Tuple[str, str], str] = {
    (TELEGRAM, "bot_token"): "TG_TOKEN",
    (TELEGRAM, "chat_id"): "TG_ID",
    (AUTH, "password"): "PASS",
}

# Keys that must all be present for a category to count as external
REQUIRED_KEYS: Dict[str, Tuple[str, ...]] = {
    TELEGRAM: ("bot_token", "chat_id"),
    AUTH: ("password",),
}


@dataclass(frozen=True)
class ExternalConfigRemoval:
    telegram_removed: bool = False
    auth_removed: bool = False

    @property
    def any(self) -> bool:
        return self.telegram_removed or self.auth_removed


def _clean(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _lookup(category: str, key: str, source: Optional[Mapping[str, str]]) -> str:
    name = ENV_NAMES.get((category, key))
    if not name or not source:
        return ""
    return _clean(source.get(name))


def resolve(category: str, key: str,
            env: Optional[Mapping[str, str]],
            code_constants: Optional[Mapping[str, str]],
            stored_value: Optional[str]) -> str:
    """Effective value for (category, key)"""
    value = _lookup(category, key, env)
    if value:
        return value
    value = _lookup(category, key, code_constants)
    if value:
        return value
    return stored_value or ""


def has_external(category: str,
                 env: Optional[Mapping[str, str]],
                 code_constants: Optional[Mapping[str, str]]) -> ExternalStatus:
    """Whether every required credential of a category is set outside the store"""
    keys = REQUIRED_KEYS.get(category)
    if not keys:
        return ExternalStatus()

    from_env = False
    for key in keys:
        if _lookup(category, key, env):
            from_env = True
        elif not _lookup(category, key, code_constants):
            return ExternalStatus()

    source = ConfigSource.ENVIRONMENT if from_env else ConfigSource.CODE
    return ExternalStatus(has_external=True, source=source)


def effective_enabled(status: ExternalStatus, stored_enabled: bool) -> bool:
    """External credentials force the feature on"""
    return status.has_external or bool(stored_enabled)


def detect_external_config_removal(previous: Optional[ExternalConfigSnapshot],
                                   current: ExternalConfigSnapshot) -> ExternalConfigRemoval:
    if previous is None:
        return ExternalConfigRemoval()
    return ExternalConfigRemoval(
        telegram_removed=previous.telegram.has_external and not current.telegram.has_external,
        auth_removed=previous.auth.has_external and not current.auth.has_external,
    )


class ConfigResolver:
    """Binds the env and code tiers; the stored tier is passed per call"""

    def __init__(self, env: Optional[Mapping[str, str]] = None,
                 code_constants: Optional[Mapping[str, str]] = None):
        self.env = dict(env or {})
        self.code_constants = dict(code_constants or {})

    @classmethod
    def from_settings(cls, app_settings=None) -> "ConfigResolver":
        from ..config import CODE_CONSTANTS, get_settings

        app_settings = app_settings or get_settings()
        return cls(env=app_settings.external_env(), code_constants=CODE_CONSTANTS)

    def resolve(self, category: str, key: str, stored: Optional[AppSettings]) -> str:
        stored_value = ""
        if stored is not None:
            section = getattr(stored, category, None)
            stored_value = getattr(section, key, "") if section is not None else ""
        return resolve(category, key, self.env, self.code_constants, stored_value)

    def has_external(self, category: str) -> ExternalStatus:
        return has_external(category, self.env, self.code_constants)

    def effective_enabled(self, category: str, stored: Optional[AppSettings]) -> bool:
        section = getattr(stored, category, None) if stored is not None else None
        stored_enabled = bool(getattr(section, "enabled", False))
        return effective_enabled(self.has_external(category), stored_enabled)

    def snapshot(self, now: Optional[datetime] = None) -> ExternalConfigSnapshot:
        now = now or datetime.now(timezone.utc)
        return ExternalConfigSnapshot(
            telegram=self.has_external(TELEGRAM),
            auth=self.has_external(AUTH),
            last_check=now.isoformat(),
        )
