"""
Growth acquisition domain: sources, metrics, conversion rates, day windows.

Pure Python, no database access.  The aggregation and rollup services build
on these types.
"""

import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from typing import Union
from zoneinfo import ZoneInfo


class SourceType(str, Enum):
    """How an acquisition source is interpreted and displayed."""

    LANDING_PAGE = "landing_page"
    EVENT = "event"
    APPOINTMENT = "appointment"
    MANUAL = "manual"
    REFERRAL = "referral"
    OTHER = "other"


class StatsPeriod(str, Enum):
    """Granularity of a stats row. Only DAY is written."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


# Accepted trailing windows for rollups, keyed by query value
PERIOD_WINDOWS = {"7d": 7, "30d": 30, "90d": 90}
DEFAULT_PERIOD = "30d"

APPOINTMENTS_BUCKET_KEY = "appointments:general"


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LandingPageSource:
    landing_page_id: str
    slug: str

    @property
    def source_key(self) -> str:
        return f"landing-page:{self.slug}"

    @property
    def source_type(self) -> SourceType:
        return SourceType.LANDING_PAGE


@dataclass(frozen=True)
class EventSource:
    event_id: str

    @property
    def source_key(self) -> str:
        return f"event:{self.event_id}"

    @property
    def source_type(self) -> SourceType:
        return SourceType.EVENT


@dataclass(frozen=True)
class AppointmentsBucket:
    """All of a tenant's appointments, as one undifferentiated source."""

    @property
    def source_key(self) -> str:
        return APPOINTMENTS_BUCKET_KEY

    @property
    def source_type(self) -> SourceType:
        return SourceType.APPOINTMENT


AcquisitionSource = Union[LandingPageSource, EventSource, AppointmentsBucket]


# ---------------------------------------------------------------------------
# Metrics and conversion rates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcquisitionMetrics:
    """The six daily counters tracked per source."""

    views: int = 0
    leads: int = 0
    appointments: int = 0
    registrations: int = 0
    payments: int = 0
    revenue: float = 0.0

    @property
    def bookings(self) -> int:
        return self.appointments + self.registrations

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.views, self.leads, self.appointments, self.registrations, self.payments, self.revenue)
        )


@dataclass(frozen=True)
class ConversionRates:
    views_to_leads: float = 0.0
    leads_to_bookings: float = 0.0
    bookings_to_payments: float = 0.0
    overall_conversion: float = 0.0


def safe_rate(numerator: float, denominator: float, digits: int = 4) -> float:
    """Return numerator/denominator as a percentage, or 0.0 on a zero denominator.

    Never returns NaN or Infinity, even for non-finite inputs.
    """
    if not denominator:
        return 0.0
    value = (numerator / denominator) * 100
    if not math.isfinite(value):
        return 0.0
    return round(value, digits)


def calculate_conversion_rates(metrics: AcquisitionMetrics) -> ConversionRates:
    """Derive the four funnel percentages from a metrics snapshot."""
    return ConversionRates(
        views_to_leads=safe_rate(metrics.leads, metrics.views),
        leads_to_bookings=safe_rate(metrics.bookings, metrics.leads),
        bookings_to_payments=safe_rate(metrics.payments, metrics.bookings),
        overall_conversion=safe_rate(metrics.payments, metrics.views),
    )


# ---------------------------------------------------------------------------
# Time windows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DayWindow:
    """Half-open [start, end) UTC interval covering one tenant-local day."""

    day: date
    start: datetime
    end: datetime


def resolve_zone(name: str | None, fallback: str = "UTC") -> ZoneInfo:
    """ZoneInfo for *name*, or *fallback* when the name is empty or unknown."""
    try:
        return ZoneInfo(name or fallback)
    except (KeyError, ValueError):
        return ZoneInfo(fallback)


def local_day(moment: date | datetime | None, tz: ZoneInfo) -> date:
    """Calendar date of *moment* as seen in *tz*.

    Plain dates are taken as already local; naive datetimes are treated as UTC.
    """
    if moment is None:
        moment = datetime.now(UTC)
    if isinstance(moment, datetime):
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        return moment.astimezone(tz).date()
    return moment


def day_window(day: date, tz: ZoneInfo) -> DayWindow:
    """Boundaries of *day* in *tz*, expressed in UTC.

    Uses the next local midnight rather than start + 24h so DST days get
    their real 23 or 25 hours.
    """
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return DayWindow(day=day, start=start.astimezone(UTC), end=end.astimezone(UTC))


def window_start_date(today: date, period_days: int) -> date:
    """First local date included in a trailing window of *period_days*.

    The window covers today plus the previous *period_days* days.
    """
    return today - timedelta(days=period_days)
