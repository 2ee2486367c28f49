"""
Panel settings: read view with external-config masking, and validated save.
"""
from typing import Any, Dict

from ..exceptions import ValidationRejected
from ..models.records import AppSettings
from .config_resolver import AUTH, TELEGRAM, ConfigResolver


def settings_view(app_settings: AppSettings, resolver: ConfigResolver) -> Dict[str, Any]:
    """
    Settings as shown to the operator. Credentials of externally configured
    categories are blanked and the category is marked read-only.
    """
    data = app_settings.to_store()

    for category in (TELEGRAM, AUTH):
        status = resolver.has_external(category)
        section = data[category]
        section["enabled"] = resolver.effective_enabled(category, app_settings)
        section["hasExternal"] = status.has_external
        section["source"] = status.source.value
        section["editable"] = not status.has_external
        if status.has_external:
            for field in ("botToken", "chatId", "password"):
                if field in section:
                    section[field] = ""

    return data


def apply_settings_update(current: AppSettings, incoming: AppSettings,
                          resolver: ConfigResolver) -> AppSettings:
    """
    Build the settings blob to store. External categories keep their stored
    values; locally managed ones must be complete when enabled.
    """
    updated = incoming.model_copy(deep=True)

    if resolver.has_external(TELEGRAM).has_external:
        updated.telegram = current.telegram.model_copy()
    else:
        telegram = updated.telegram
        telegram.bot_token = telegram.bot_token.strip()
        telegram.chat_id = telegram.chat_id.strip()
        if telegram.enabled and not (telegram.bot_token and telegram.chat_id):
            raise ValidationRejected("Telegram notifications need both a bot token and a chat id")

    if resolver.has_external(AUTH).has_external:
        updated.auth = current.auth.model_copy()
    else:
        if updated.auth.enabled and not updated.auth.password:
            raise ValidationRejected("Password protection needs a password")

    if updated.global_notify_days < 0:
        raise ValidationRejected("Notify days cannot be negative")

    return updated
