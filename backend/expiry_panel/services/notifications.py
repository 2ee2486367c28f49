"""
Expiry Notification Sweep

Finds servers that are expired or within their notify window and sends one
Telegram message per category. A failed send is logged and the sweep moves
on to the next category; there is no retry.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from html import escape
from typing import List, Optional, Protocol, Tuple
import logging

from ..exceptions import NotificationError, ValidationRejected
from ..models.records import AppSettings, Category, Server
from .config_resolver import TELEGRAM, ConfigResolver
from .renewal import ExpiryInfo, ExpiryStatus, evaluate
from .repository import CategoryRepository, ServerRepository, SettingsService
from .store import KVStore

logger = logging.getLogger(__name__)

DEFAULT_BUCKET_NAME = "Uncategorized"


class Notifier(Protocol):
    async def send_message(self, bot_token: str, chat_id: str, text: str) -> None:
        ...


@dataclass
class DueServer:
    server: Server
    expiry: ExpiryInfo
    threshold: int


@dataclass
class SweepResult:
    checked: int = 0
    due: int = 0
    messages_sent: int = 0
    messages_failed: int = 0
    skipped_reason: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "due": self.due,
            "messagesSent": self.messages_sent,
            "messagesFailed": self.messages_failed,
            "skippedReason": self.skipped_reason,
            "errors": self.errors,
        }


def notify_threshold(server: Server, app_settings: AppSettings) -> int:
    if server.notify_days is not None and server.notify_days >= 0:
        return server.notify_days
    return app_settings.global_notify_days


def find_due_servers(servers: List[Server], app_settings: AppSettings,
                     now: datetime) -> List[DueServer]:
    due = []
    for server in servers:
        expiry = evaluate(server.expire_date, server.renewal_period, now)
        if expiry.days_remaining is None:
            continue
        threshold = notify_threshold(server, app_settings)
        if expiry.status == ExpiryStatus.EXPIRED or expiry.days_remaining <= threshold:
            due.append(DueServer(server, expiry, threshold))
    return due


def group_by_category(due: List[DueServer],
                      categories: List[Category]) -> List[Tuple[str, List[DueServer]]]:
    """Groups in category order; the default bucket (and unknown ids) last"""
    known = {c.id for c in categories}
    groups: List[Tuple[str, List[DueServer]]] = []

    for category in categories:
        members = [d for d in due if d.server.category_id == category.id]
        if members:
            groups.append((category.name, members))

    leftovers = [d for d in due if d.server.category_id not in known]
    if leftovers:
        groups.append((DEFAULT_BUCKET_NAME, leftovers))

    for _, members in groups:
        members.sort(key=lambda d: d.expiry.days_remaining)
    return groups


def format_due_line(item: DueServer) -> str:
    server = item.server
    remaining = item.expiry.days_remaining
    if remaining < 0:
        state = f"⛔ expired {-remaining} day(s) ago"
    elif remaining == 0:
        state = "⚠️ expires today"
    else:
        state = f"⚠️ {remaining} day(s) left"

    line = f"• <b>{escape(server.name)}</b>"
    if server.provider:
        line += f" ({escape(server.provider)})"
    line += f"\n   {state}, expires {escape(server.expire_date)}"
    if server.price:
        line += f", {escape(server.price)}"
    if server.renewal_link:
        line += f'\n   <a href="{escape(server.renewal_link, quote=True)}">Renew</a>'
    return line


def build_message(site_title: str, group_name: str, items: List[DueServer]) -> str:
    header = f"🔔 <b>{escape(site_title)}</b>: expiry reminder\n📁 {escape(group_name)}"
    body = "\n\n".join(format_due_line(item) for item in items)
    return f"{header}\n\n{body}"


def _telegram_credentials(app_settings: AppSettings, resolver: ConfigResolver) -> Tuple[str, str]:
    return (
        resolver.resolve(TELEGRAM, "bot_token", app_settings),
        resolver.resolve(TELEGRAM, "chat_id", app_settings),
    )


async def run_expiry_sweep(store: KVStore, resolver: ConfigResolver, notifier: Notifier,
                           now: Optional[datetime] = None) -> SweepResult:
    """Single pass over all servers; never raises for notification failures"""
    now = now or datetime.now(timezone.utc)
    settings_service = SettingsService(store)
    await settings_service.sync_external_config(resolver, now)
    app_settings = await settings_service.get()

    servers = await ServerRepository(store).all()
    result = SweepResult(checked=len(servers))

    if not resolver.effective_enabled(TELEGRAM, app_settings):
        result.skipped_reason = "Telegram notifications disabled"
        logger.info("Expiry sweep skipped: Telegram notifications disabled")
        return result

    bot_token, chat_id = _telegram_credentials(app_settings, resolver)
    if not bot_token or not chat_id:
        result.skipped_reason = "Telegram credentials incomplete"
        logger.warning("Expiry sweep skipped: Telegram credentials incomplete")
        return result

    due = find_due_servers(servers, app_settings, now)
    result.due = len(due)
    if not due:
        logger.info(f"Expiry sweep: {len(servers)} server(s) checked, nothing due")
        return result

    categories = await CategoryRepository(store).all()
    for group_name, items in group_by_category(due, categories):
        text = build_message(app_settings.site_title, group_name, items)
        try:
            await notifier.send_message(bot_token, chat_id, text)
            result.messages_sent += 1
        except NotificationError as e:
            result.messages_failed += 1
            result.errors.append(f"{group_name}: {e.description}")
            logger.error(f"Expiry notification for '{group_name}' failed: {e.description}")

    logger.info(
        f"Expiry sweep: {result.due} due, {result.messages_sent} sent, "
        f"{result.messages_failed} failed"
    )
    return result


async def send_test_message(store: KVStore, resolver: ConfigResolver, notifier: Notifier) -> None:
    """Raises ValidationRejected without credentials, NotificationError on send failure"""
    app_settings = await SettingsService(store).get()
    bot_token, chat_id = _telegram_credentials(app_settings, resolver)
    if not bot_token or not chat_id:
        raise ValidationRejected("Telegram bot token and chat id are required")

    text = f"✅ <b>{escape(app_settings.site_title)}</b>: test notification"
    await notifier.send_message(bot_token, chat_id, text)
