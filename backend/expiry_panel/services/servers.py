"""
Server Service
Validation, renewal flow and expiry annotation for server records.
"""
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
import logging
import re

from ..exceptions import RecordNotFound, ValidationRejected
from ..models.records import Category, RenewalType, Server
from .renewal import (
    ExpiryInfo,
    Period,
    PeriodOutOfRange,
    add_period_to_date,
    evaluate,
    format_date,
    format_period,
    infer_period_from_dates,
    parse_date,
    parse_period_or_default,
)
from .repository import CategoryRepository, ServerRepository

logger = logging.getLogger(__name__)

_EMOJI_PATTERN = re.compile(
    "["
    "\U0001F000-\U0001FAFF"   # pictographs, emoticons, transport, flags
    "\U00002600-\U000027BF"   # misc symbols, dingbats
    "\U00002B00-\U00002BFF"   # arrows, stars
    "\U00002190-\U000021FF"
    "\U00002300-\U000023FF"
    "\U0000FE00-\U0000FE0F"   # variation selectors
    "\U0000200D"              # zero width joiner
    "\U000020E3"              # keycap
    "\U00003030\U0000303D"
    "]+"
)
_WHITESPACE_PATTERN = re.compile(r"\s+")

UPDATABLE_FIELDS = {
    "name", "ip", "provider", "category_id", "register_date", "renewal_period",
    "expire_date", "price", "renewal_link", "tags", "tag_color", "notify_days",
}


def normalize_name(name: Optional[str]) -> str:
    """Server name with emoji and whitespace removed, used for uniqueness"""
    if not name:
        return ""
    stripped = _EMOJI_PATTERN.sub("", name)
    return _WHITESPACE_PATTERN.sub("", stripped)


def new_record_id(existing_ids, now: Optional[datetime] = None) -> str:
    """Millisecond timestamp id, bumped until unique"""
    now = now or datetime.now(timezone.utc)
    candidate = int(now.timestamp() * 1000)
    while str(candidate) in existing_ids:
        candidate += 1
    return str(candidate)


@dataclass
class ServerView:
    server: Server
    expiry: ExpiryInfo

    def to_dict(self) -> Dict[str, Any]:
        data = self.server.to_store()
        data.update({
            "daysRemaining": self.expiry.days_remaining,
            "cycleDays": self.expiry.cycle_days,
            "warningThreshold": self.expiry.half_cycle,
            "status": self.expiry.status.value,
        })
        return data


def _today(now: datetime) -> date:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).date()


def _require_date(value: Any, label: str) -> date:
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationRejected(f"Invalid {label}: {value!r}")
    return parsed


def _advance(start: date, period: Period) -> date:
    try:
        return add_period_to_date(start, period)
    except PeriodOutOfRange:
        raise ValidationRejected(f"Renewal period out of range: {format_period(period)}")


class ServerService:
    """CRUD and renewal over the servers collection"""

    def __init__(self, servers: ServerRepository, categories: CategoryRepository):
        self.servers = servers
        self.categories = categories

    # ─── Queries ────────────────────────────────────────────────────────

    async def list_with_status(self, now: Optional[datetime] = None) -> List[ServerView]:
        now = now or datetime.now(timezone.utc)
        servers = await self.servers.all()
        categories = await self.categories.all()
        order = {c.id: index for index, c in enumerate(categories)}
        default_position = len(categories)

        views = [ServerView(s, evaluate(s.expire_date, s.renewal_period, now)) for s in servers]

        def sort_key(view: ServerView):
            remaining = view.expiry.days_remaining
            return (
                order.get(view.server.category_id, default_position),
                remaining is None,
                remaining if remaining is not None else 0,
                view.server.name,
            )

        return sorted(views, key=sort_key)

    async def get(self, server_id: str) -> Server:
        server = await self.servers.get(server_id)
        if server is None:
            raise RecordNotFound("Server", server_id)
        return server

    async def view(self, server_id: str, now: Optional[datetime] = None) -> ServerView:
        now = now or datetime.now(timezone.utc)
        server = await self.get(server_id)
        return ServerView(server, evaluate(server.expire_date, server.renewal_period, now))

    # ─── Validation ─────────────────────────────────────────────────────

    @staticmethod
    def validate_name(name: Optional[str], servers: List[Server],
                      exclude_id: Optional[str] = None) -> str:
        normalized = normalize_name(name)
        if not normalized:
            raise ValidationRejected("Server name cannot be empty")
        for other in servers:
            if other.id != exclude_id and normalize_name(other.name) == normalized:
                raise ValidationRejected(f"Server name already exists: {other.name}")
        return name.strip()

    async def _validate_category(self, category_id: Optional[str]) -> str:
        if not category_id:
            return ""
        categories = await self.categories.all()
        if not any(c.id == category_id for c in categories):
            raise ValidationRejected(f"Category not found: {category_id}")
        return category_id

    @staticmethod
    def _validate_notify_days(value: Any) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            days = int(value)
        except (TypeError, ValueError):
            raise ValidationRejected(f"Invalid notify days: {value!r}")
        if days < 0:
            raise ValidationRejected("Notify days cannot be negative")
        return days

    # ─── Mutations ──────────────────────────────────────────────────────

    async def add(self, data: Dict[str, Any], now: Optional[datetime] = None) -> Server:
        now = now or datetime.now(timezone.utc)
        servers = await self.servers.all()

        name = self.validate_name(data.get("name"), servers)
        category_id = await self._validate_category(data.get("category_id"))

        if data.get("register_date"):
            register = _require_date(data["register_date"], "register date")
        else:
            register = _today(now)

        period = parse_period_or_default(data.get("renewal_period"))
        if data.get("expire_date"):
            expire = _require_date(data["expire_date"], "expire date")
        else:
            expire = _advance(register, period)

        server = Server(
            id=new_record_id({s.id for s in servers}, now),
            name=name,
            ip=data.get("ip") or "",
            provider=data.get("provider") or "",
            category_id=category_id,
            register_date=format_date(register),
            renewal_period=format_period(period),
            original_renewal_period=format_period(period),
            expire_date=format_date(expire),
            price=data.get("price") or "",
            renewal_link=data.get("renewal_link") or None,
            tags=data.get("tags") or "",
            tag_color=data.get("tag_color") or "",
            notify_days=self._validate_notify_days(data.get("notify_days")),
            created_at=now.isoformat(),
        )

        servers.append(server)
        await self.servers.save_all(servers)
        logger.info(f"Server added: {server.name} ({server.id}), expires {server.expire_date}")
        return server

    async def update(self, server_id: str, changes: Dict[str, Any]) -> Server:
        servers = await self.servers.all()
        index = next((i for i, s in enumerate(servers) if s.id == server_id), None)
        if index is None:
            raise RecordNotFound("Server", server_id)

        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        current = servers[index]
        updated = current.model_copy()

        if "name" in changes:
            updated.name = self.validate_name(changes["name"], servers, exclude_id=server_id)
        if "category_id" in changes:
            updated.category_id = await self._validate_category(changes["category_id"])
        if "notify_days" in changes:
            updated.notify_days = self._validate_notify_days(changes["notify_days"])
        if "renewal_link" in changes:
            updated.renewal_link = changes["renewal_link"] or None
        for field in ("ip", "provider", "price", "tags", "tag_color"):
            if field in changes:
                setattr(updated, field, changes[field] or "")

        schedule_changed = False
        if "register_date" in changes:
            updated.register_date = format_date(_require_date(changes["register_date"], "register date"))
            schedule_changed = True
        if "renewal_period" in changes:
            updated.renewal_period = format_period(parse_period_or_default(changes["renewal_period"]))
            schedule_changed = True

        if changes.get("expire_date"):
            updated.expire_date = format_date(_require_date(changes["expire_date"], "expire date"))
        elif schedule_changed:
            register = parse_date(updated.register_date)
            if register is not None:
                expire = _advance(register, parse_period_or_default(updated.renewal_period))
                updated.expire_date = format_date(expire)

        servers[index] = updated
        await self.servers.save_all(servers)
        return updated

    async def delete(self, server_id: str) -> None:
        servers = await self.servers.all()
        remaining = [s for s in servers if s.id != server_id]
        if len(remaining) == len(servers):
            raise RecordNotFound("Server", server_id)
        await self.servers.save_all(remaining)
        logger.info(f"Server deleted: {server_id}")

    async def renew(self, server_id: str, renewal_type: RenewalType,
                    new_expire_date: Optional[str] = None,
                    now: Optional[datetime] = None) -> Server:
        """
        Extend a server's expiry.

        PERIOD adds the server's renewal period to the current expire date
        (today if it has none). CUSTOM takes an explicit date and infers the
        period it represents. The base date becomes the new register date.
        """
        now = now or datetime.now(timezone.utc)
        servers = await self.servers.all()
        index = next((i for i, s in enumerate(servers) if s.id == server_id), None)
        if index is None:
            raise RecordNotFound("Server", server_id)

        server = servers[index].model_copy()
        base = parse_date(server.expire_date) or _today(now)

        if renewal_type == RenewalType.CUSTOM:
            target = _require_date(new_expire_date, "expire date")
            if target <= base:
                raise ValidationRejected("New expire date must be after the current expire date")
            period = infer_period_from_dates(base, target)
        else:
            period = parse_period_or_default(server.renewal_period)
            target = _advance(base, period)

        if not server.original_renewal_period:
            server.original_renewal_period = server.renewal_period
        server.renewal_period = format_period(period)
        server.register_date = format_date(base)
        server.expire_date = format_date(target)
        server.last_renewal_date = format_date(_today(now))
        server.last_renewal_type = renewal_type.value

        servers[index] = server
        await self.servers.save_all(servers)
        logger.info(f"Server renewed ({renewal_type.value}): {server.name} -> {server.expire_date}")
        return server


class CategoryService:
    """CRUD and ordering over the categories collection"""

    def __init__(self, categories: CategoryRepository, servers: ServerRepository):
        self.categories = categories
        self.servers = servers

    async def list(self) -> List[Category]:
        return await self.categories.all()

    @staticmethod
    def _validate_name(name: Optional[str]) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationRejected("Category name cannot be empty")
        return name

    async def add(self, name: str, description: str = "",
                  now: Optional[datetime] = None) -> Category:
        now = now or datetime.now(timezone.utc)
        categories = await self.categories.all()
        next_order = max((c.sort_order for c in categories), default=-1) + 1

        category = Category(
            id=new_record_id({c.id for c in categories}, now),
            name=self._validate_name(name),
            description=description or "",
            sort_order=next_order,
            created_at=now.isoformat(),
        )
        categories.append(category)
        await self.categories.save_all(categories)
        return category

    async def update(self, category_id: str, name: Optional[str] = None,
                     description: Optional[str] = None) -> Category:
        categories = await self.categories.all()
        category = next((c for c in categories if c.id == category_id), None)
        if category is None:
            raise RecordNotFound("Category", category_id)

        if name is not None:
            category.name = self._validate_name(name)
        if description is not None:
            category.description = description
        await self.categories.save_all(categories)
        return category

    async def delete(self, category_id: str) -> int:
        """Delete a category; its servers move to the default bucket"""
        categories = await self.categories.all()
        remaining = [c for c in categories if c.id != category_id]
        if len(remaining) == len(categories):
            raise RecordNotFound("Category", category_id)

        servers = await self.servers.all()
        moved = 0
        for server in servers:
            if server.category_id == category_id:
                server.category_id = ""
                moved += 1
        if moved:
            await self.servers.save_all(servers)

        await self.categories.save_all(remaining)
        logger.info(f"Category deleted: {category_id} ({moved} server(s) moved to default)")
        return moved

    async def reorder(self, ordered_ids: List[str]) -> List[Category]:
        """Listed ids first in the given order, unlisted ones after in their old order"""
        categories = await self.categories.all()
        by_id = {c.id: c for c in categories}

        ordered: List[Category] = []
        for category_id in ordered_ids:
            category = by_id.pop(category_id, None)
            if category is not None:
                ordered.append(category)
        ordered.extend(c for c in categories if c.id in by_id)

        for position, category in enumerate(ordered):
            category.sort_order = position
        await self.categories.save_all(ordered)
        return ordered
