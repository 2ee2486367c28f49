"""
Record Models - servers, categories and settings stored as JSON blobs
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional
import enum


class RenewalType(str, enum.Enum):
    """How the last renewal was recorded"""
    PERIOD = "period"   # extended by the server's renewal period
    CUSTOM = "custom"   # operator picked an explicit expire date


class ConfigSource(str, enum.Enum):
    """Where an external credential comes from"""
    ENVIRONMENT = "environment"
    CODE = "code"
    NONE = "none"


class Record(BaseModel):
    """Base for stored records: camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    def to_store(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Server(Record):
    id: str
    name: str
    ip: str = ""
    provider: str = ""
    category_id: str = ""
    register_date: str = ""
    renewal_period: str = ""
    original_renewal_period: str = ""
    expire_date: str = ""
    last_renewal_date: str = ""
    last_renewal_type: str = ""
    price: str = ""
    renewal_link: Optional[str] = None
    tags: str = ""
    tag_color: str = ""
    notify_days: Optional[int] = None
    created_at: str = ""

    @field_validator(
        "ip", "provider", "category_id", "register_date", "renewal_period",
        "original_renewal_period", "expire_date", "last_renewal_date",
        "last_renewal_type", "price", "tags", "tag_color", "created_at",
        mode="before",
    )
    @classmethod
    def _null_text(cls, value):
        return "" if value is None else value

    @field_validator("notify_days", mode="before")
    @classmethod
    def _blank_notify_days(cls, value):
        # Older form posts stored an empty input as ""
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Category(Record):
    id: str
    name: str
    description: str = ""
    sort_order: int = 0
    created_at: str = ""


class TelegramSettings(Record):
    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""


class AuthSettings(Record):
    enabled: bool = False
    password: str = ""


class AppSettings(Record):
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    global_notify_days: int = 14
    site_title: str = "VPS Expiry Panel"
    welcome_message: str = ""


class ExternalStatus(Record):
    has_external: bool = False
    source: ConfigSource = ConfigSource.NONE


class ExternalConfigSnapshot(Record):
    telegram: ExternalStatus = Field(default_factory=ExternalStatus)
    auth: ExternalStatus = Field(default_factory=ExternalStatus)
    last_check: str = ""
