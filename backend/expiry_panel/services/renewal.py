"""
Renewal Period Engine
Day-count and status arithmetic for server expiry.

All functions are pure: malformed input falls back to documented defaults
and never raises. The one exception is calendar addition, which raises
PeriodOutOfRange for periods that run past year 9999.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
import enum
import math
import re

from dateutil.relativedelta import relativedelta

SECONDS_PER_DAY = 86400
DAYS_FALLBACK = 365
DATE_FORMAT = "%Y-%m-%d"


class Unit(str, enum.Enum):
    """Renewal period unit"""
    DAY = "day"
    MONTH = "month"
    YEAR = "year"

    @property
    def days(self) -> int:
        return _UNIT_DAYS[self]

    @property
    def label(self) -> str:
        return _UNIT_LABELS[self]


_UNIT_DAYS = {Unit.DAY: 1, Unit.MONTH: 30, Unit.YEAR: 365}
_UNIT_LABELS = {Unit.DAY: "天", Unit.MONTH: "月", Unit.YEAR: "年"}

# Longest token first so "个月" wins over a bare "月"
_UNIT_TOKENS = (
    ("个月", Unit.MONTH),
    ("天", Unit.DAY),
    ("月", Unit.MONTH),
    ("年", Unit.YEAR),
)

_COUNT_PATTERN = re.compile(r"[0-9]+")
_TIME_SEPARATOR = re.compile(r"[T ]")


class ExpiryStatus(str, enum.Enum):
    """Time-to-expiry status of a server"""
    NORMAL = "normal"
    WARNING = "warning"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Period:
    count: int
    unit: Unit

    def __str__(self) -> str:
        return format_period(self)


@dataclass(frozen=True)
class ExpiryInfo:
    days_remaining: Optional[int]
    cycle_days: int
    half_cycle: int
    status: ExpiryStatus


DEFAULT_FORM_PERIOD = Period(1, Unit.MONTH)


class PeriodOutOfRange(ValueError):
    """A period that pushes the date past the supported calendar"""

    def __init__(self, start: date, period: Period):
        super().__init__(f"{format_period(period)} from {start} is out of range")
        self.start = start
        self.period = period


# =============================================
# Parsing
# =============================================

def parse_period(text: Optional[str]) -> Optional[Period]:
    """
    Tokenize "<digits><unit>" (e.g. "3月", "1个月", "15天", "2年").
    Returns None when the text does not start with a count followed by a unit.
    """
    if not text or not isinstance(text, str):
        return None

    text = text.strip()
    match = _COUNT_PATTERN.match(text)
    if not match:
        return None

    rest = text[match.end():].lstrip()
    for token, unit in _UNIT_TOKENS:
        if rest.startswith(token):
            return Period(int(match.group()), unit)
    return None


def parse_period_or_default(text: Optional[str]) -> Period:
    """Form-context parse: anything unparseable becomes one month"""
    return parse_period(text) or DEFAULT_FORM_PERIOD


def format_period(period: Period) -> str:
    return f"{period.count}{period.unit.label}"


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse YYYY-MM-DD (an ISO time part after "T" or a space is ignored). Malformed -> None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    day_part = _TIME_SEPARATOR.split(value.strip(), maxsplit=1)[0]
    try:
        return datetime.strptime(day_part, DATE_FORMAT).date()
    except ValueError:
        return None


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


# =============================================
# Day counts
# =============================================

def period_to_days(period: Period) -> int:
    """Flat multipliers: day=1, month=30, year=365"""
    return period.count * period.unit.days


def period_text_to_days(text: Optional[str]) -> int:
    """Days-conversion parse: anything unparseable becomes 365 days"""
    period = parse_period(text)
    if period is None:
        return DAYS_FALLBACK
    return period_to_days(period)


def half_cycle(cycle_days: int) -> int:
    return math.floor(cycle_days * 0.5)


def days_remaining(expire_date: Union[str, date, None], as_of: datetime) -> Optional[int]:
    """
    ceil((expire - as_of) / 1 day), with expire taken at 00:00 UTC.
    Negative once expired, None when there is no usable date.
    """
    expire = parse_date(expire_date)
    if expire is None:
        return None

    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=timezone.utc)
    expire_at = datetime.combine(expire, time.min, tzinfo=timezone.utc)
    delta = (expire_at - as_of).total_seconds() / SECONDS_PER_DAY
    return math.ceil(delta)


def classify(remaining: Optional[int], cycle_days: int) -> ExpiryStatus:
    if remaining is None:
        return ExpiryStatus.NORMAL
    if remaining < 0:
        return ExpiryStatus.EXPIRED
    if remaining <= half_cycle(cycle_days):
        return ExpiryStatus.WARNING
    return ExpiryStatus.NORMAL


def evaluate(expire_date: Union[str, date, None], renewal_period: Optional[str],
             as_of: datetime) -> ExpiryInfo:
    """Status snapshot for one server"""
    cycle = period_text_to_days(renewal_period)
    remaining = days_remaining(expire_date, as_of)
    return ExpiryInfo(
        days_remaining=remaining,
        cycle_days=cycle,
        half_cycle=half_cycle(cycle),
        status=classify(remaining, cycle),
    )


# =============================================
# Calendar arithmetic
# =============================================

def add_period_to_date(start: date, period: Period) -> date:
    """
    Calendar-aware addition. Month and year steps clamp to the last day of
    the target month (Jan 31 + 1 month -> Feb 28/29, Feb 29 + 1 year -> Feb 28).

    Raises PeriodOutOfRange when the result falls outside the calendar.
    """
    try:
        if period.unit == Unit.DAY:
            return start + timedelta(days=period.count)
        if period.unit == Unit.MONTH:
            return start + relativedelta(months=period.count)
        return start + relativedelta(years=period.count)
    except (ValueError, OverflowError) as e:
        raise PeriodOutOfRange(start, period) from e


def infer_period_from_dates(start: date, end: date) -> Period:
    """
    Most natural period between two dates. Whole years or months are
    recognized with one day of slack; anything else is a plain day count.
    """
    year_diff = end.year - start.year
    month_diff = end.month - start.month
    day_diff = end.day - start.day

    if year_diff > 0 and month_diff == 0 and abs(day_diff) <= 1:
        return Period(year_diff, Unit.YEAR)

    if year_diff == 0 and month_diff > 0 and abs(day_diff) <= 1:
        return Period(month_diff, Unit.MONTH)

    total_months = year_diff * 12 + month_diff
    if total_months > 0 and abs(day_diff) <= 1:
        return Period(total_months, Unit.MONTH)

    return Period((end - start).days, Unit.DAY)


def expected_expire_date(register_date: Union[str, date, None],
                         renewal_period: Optional[str]) -> Optional[date]:
    """registerDate + renewalPeriod, or None without a usable register date or past the calendar"""
    start = parse_date(register_date)
    if start is None:
        return None
    try:
        return add_period_to_date(start, parse_period_or_default(renewal_period))
    except PeriodOutOfRange:
        return None
