"""
Daily acquisition aggregation.

Reads a tenant's landing page, event, appointment and payment activity for
one calendar day (in the tenant's timezone) and upserts one
AcquisitionSourceStats row per active source.  Every run recomputes full-day
totals from the source tables, so re-running a day overwrites rather than
accumulates.
"""

import logging
from datetime import date, datetime, timedelta
from uuid import uuid4
from zoneinfo import ZoneInfo

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.growth import (
    AcquisitionMetrics,
    AcquisitionSource,
    AppointmentsBucket,
    DayWindow,
    EventSource,
    LandingPageSource,
    SourceType,
    StatsPeriod,
    calculate_conversion_rates,
    day_window,
    local_day,
    resolve_zone,
)
from infrastructure.config.settings import settings
from infrastructure.database.models.base import utcnow
from infrastructure.database.models.business import Business
from infrastructure.database.models.growth import AcquisitionSourceStats
from infrastructure.database.models.payment import Payment, PaymentStatus
from infrastructure.database.models.sources import (
    Appointment,
    ConversionEvent,
    Event,
    EventRegistration,
    LandingPage,
    LandingPageVisit,
    RegistrationStatus,
)

logger = logging.getLogger(__name__)

# Columns rewritten when a (business, source, period, period_start) row already exists
_UPSERT_COLUMNS = (
    "source_type",
    "period_end",
    "stats_date",
    "views",
    "leads",
    "appointments",
    "registrations",
    "payments",
    "revenue",
    "views_to_leads",
    "leads_to_bookings",
    "bookings_to_payments",
    "overall_conversion",
)

_ATTRIBUTABLE_TYPES = [
    SourceType.LANDING_PAGE.value,
    SourceType.EVENT.value,
    SourceType.APPOINTMENT.value,
]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def get_business_timezone(business_id: str, db: AsyncSession) -> ZoneInfo:
    """Timezone configured for a business, or the platform default."""
    result = await db.execute(select(Business.timezone).where(Business.id == business_id))
    tz_name = result.scalar_one_or_none()
    return resolve_zone(tz_name, settings.default_timezone)


def _dialect_insert(db: AsyncSession):
    """Return the dialect-specific insert() that supports ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Stats upsert is not supported on dialect {dialect!r}")
    return insert


def _in_window(column, window: DayWindow):
    return and_(column >= window.start, column < window.end)


async def _completed_payments(
    db: AsyncSession,
    business_id: str,
    window: DayWindow,
    *criteria,
) -> tuple[int, float]:
    """Count and total of completed payments in the window matching *criteria*."""
    q = select(
        func.count(Payment.id),
        func.sum(Payment.amount),
    ).where(
        Payment.business_id == business_id,
        Payment.status == PaymentStatus.COMPLETED.value,
        _in_window(Payment.created_at, window),
        *criteria,
    )
    count, total = (await db.execute(q)).one()
    return int(count or 0), float(total or 0.0)


# ---------------------------------------------------------------------------
# Collectors
# ---------------------------------------------------------------------------


async def collect_landing_page_metrics(
    business_id: str,
    window: DayWindow,
    db: AsyncSession,
) -> list[tuple[AcquisitionSource, AcquisitionMetrics]]:
    """Daily unique visitors, conversions and attributed payments per landing page.

    Leads are the conversions logged inside the day window, not the page's
    lifetime conversion counter.
    """
    pages = (
        await db.execute(
            select(LandingPage.id, LandingPage.slug)
            .where(LandingPage.business_id == business_id)
            .order_by(LandingPage.slug)
        )
    ).all()

    collected = []
    for page in pages:
        source = LandingPageSource(landing_page_id=page.id, slug=page.slug)

        views = (
            await db.execute(
                select(func.count(func.distinct(LandingPageVisit.visitor_hash))).where(
                    LandingPageVisit.landing_page_id == page.id,
                    _in_window(LandingPageVisit.visited_at, window),
                )
            )
        ).scalar() or 0

        leads = (
            await db.execute(
                select(func.count(ConversionEvent.id)).where(
                    ConversionEvent.business_id == business_id,
                    ConversionEvent.landing_page_id == page.id,
                    _in_window(ConversionEvent.created_at, window),
                )
            )
        ).scalar() or 0

        payments, revenue = await _completed_payments(
            db,
            business_id,
            window,
            Payment.source_type == SourceType.LANDING_PAGE.value,
            Payment.landing_page_id == page.id,
        )

        collected.append(
            (
                source,
                AcquisitionMetrics(
                    views=int(views),
                    leads=int(leads),
                    payments=payments,
                    revenue=revenue,
                ),
            )
        )
    return collected


async def collect_event_metrics(
    business_id: str,
    window: DayWindow,
    db: AsyncSession,
) -> list[tuple[AcquisitionSource, AcquisitionMetrics]]:
    """Registrations and attributed payments per event."""
    event_ids = (
        await db.execute(
            select(Event.id).where(Event.business_id == business_id).order_by(Event.id)
        )
    ).scalars().all()

    collected = []
    for event_id in event_ids:
        registrations = (
            await db.execute(
                select(func.count(EventRegistration.id)).where(
                    EventRegistration.event_id == event_id,
                    EventRegistration.status != RegistrationStatus.CANCELLED.value,
                    _in_window(EventRegistration.registered_at, window),
                )
            )
        ).scalar() or 0

        payments, revenue = await _completed_payments(
            db,
            business_id,
            window,
            Payment.source_type == SourceType.EVENT.value,
            Payment.event_id == event_id,
        )

        collected.append(
            (
                EventSource(event_id=event_id),
                AcquisitionMetrics(
                    leads=int(registrations),
                    registrations=int(registrations),
                    payments=payments,
                    revenue=revenue,
                ),
            )
        )
    return collected


async def collect_appointment_metrics(
    business_id: str,
    window: DayWindow,
    db: AsyncSession,
) -> list[tuple[AcquisitionSource, AcquisitionMetrics]]:
    """All appointments of the day as the single ``appointments:general`` bucket.

    Returns nothing when no appointment was created in the window.  Appointment
    payments of such a day are reported by ``count_unattributed_payments``.
    """
    appointments = (
        await db.execute(
            select(func.count(Appointment.id)).where(
                Appointment.business_id == business_id,
                _in_window(Appointment.created_at, window),
            )
        )
    ).scalar() or 0

    if not appointments:
        return []

    payments, revenue = await _completed_payments(
        db,
        business_id,
        window,
        Payment.source_type == SourceType.APPOINTMENT.value,
    )

    return [
        (
            AppointmentsBucket(),
            AcquisitionMetrics(
                leads=int(appointments),
                appointments=int(appointments),
                payments=payments,
                revenue=revenue,
            ),
        )
    ]


async def count_unattributed_payments(
    business_id: str,
    window: DayWindow,
    db: AsyncSession,
    appointments_bucketed: bool = True,
) -> tuple[int, float]:
    """Completed payments in the window that no source can claim.

    Pass ``appointments_bucketed=False`` when no appointments bucket was
    written for the window, so appointment payments are counted here instead.
    """
    unclaimed = [
        Payment.source_type.is_(None),
        and_(
            Payment.source_type == SourceType.LANDING_PAGE.value,
            Payment.landing_page_id.is_(None),
        ),
        and_(
            Payment.source_type == SourceType.EVENT.value,
            Payment.event_id.is_(None),
        ),
        Payment.source_type.notin_(_ATTRIBUTABLE_TYPES),
    ]
    if not appointments_bucketed:
        unclaimed.append(Payment.source_type == SourceType.APPOINTMENT.value)

    return await _completed_payments(db, business_id, window, or_(*unclaimed))


async def prune_landing_page_visits(
    db: AsyncSession,
    retention_days: int | None = None,
) -> int:
    """Delete visit log rows older than the retention window. Returns rows removed."""
    days = retention_days if retention_days is not None else settings.landing_page_visit_retention_days
    cutoff = utcnow() - timedelta(days=days)
    result = await db.execute(
        delete(LandingPageVisit).where(LandingPageVisit.visited_at < cutoff)
    )
    removed = result.rowcount or 0
    if removed:
        logger.info(
            "Pruned %d landing page visits older than %s",
            removed,
            cutoff.isoformat(),
            extra={"operation": "prune_landing_page_visits"},
        )
    return removed


# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------


async def upsert_source_stats(
    db: AsyncSession,
    business_id: str,
    source: AcquisitionSource,
    window: DayWindow,
    metrics: AcquisitionMetrics,
) -> None:
    """Insert or overwrite the daily row for one source.

    Atomic per row via INSERT ... ON CONFLICT DO UPDATE on the
    (business_id, source_key, period, period_start) unique constraint.
    """
    rates = calculate_conversion_rates(metrics)
    now = utcnow()
    insert = _dialect_insert(db)

    stmt = insert(AcquisitionSourceStats).values(
        id=str(uuid4()),
        business_id=business_id,
        source_key=source.source_key,
        source_type=source.source_type.value,
        period=StatsPeriod.DAY.value,
        period_start=window.start,
        period_end=window.end,
        stats_date=window.day,
        views=metrics.views,
        leads=metrics.leads,
        appointments=metrics.appointments,
        registrations=metrics.registrations,
        payments=metrics.payments,
        revenue=metrics.revenue,
        views_to_leads=rates.views_to_leads,
        leads_to_bookings=rates.leads_to_bookings,
        bookings_to_payments=rates.bookings_to_payments,
        overall_conversion=rates.overall_conversion,
        created_at=now,
        updated_at=now,
    )
    set_ = {column: getattr(stmt.excluded, column) for column in _UPSERT_COLUMNS}
    set_["updated_at"] = now
    stmt = stmt.on_conflict_do_update(
        index_elements=["business_id", "source_key", "period", "period_start"],
        set_=set_,
    )
    await db.execute(stmt)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------


async def aggregate_daily_stats(
    business_id: str,
    db: AsyncSession,
    day: date | datetime | None = None,
) -> dict:
    """
    Compute and upsert stats rows for all of a tenant's sources for one day.

    *day* is a tenant-local calendar date, or a datetime that is converted to
    the tenant's timezone first.  Defaults to today.

    Sources with no activity for the day are skipped, so a quiet day writes
    nothing.  Query errors propagate; the caller owns the transaction, which
    makes one call all-or-nothing once committed.
    """
    result = await db.execute(select(Business).where(Business.id == business_id))
    business = result.scalar_one_or_none()
    if business is None:
        logger.warning(
            "aggregate_daily_stats: business %s not found, using default timezone",
            business_id,
            extra={"business_id": business_id, "operation": "aggregate_daily_stats"},
        )
    tz = resolve_zone(business.timezone if business else None, settings.default_timezone)

    window = day_window(local_day(day, tz), tz)

    logger.info(
        "Starting daily acquisition aggregation for business %s on %s",
        business_id,
        window.day.isoformat(),
        extra={"business_id": business_id, "operation": "aggregate_daily_stats"},
    )

    collected = []
    collected.extend(await collect_landing_page_metrics(business_id, window, db))
    collected.extend(await collect_event_metrics(business_id, window, db))
    appointment_rows = await collect_appointment_metrics(business_id, window, db)
    collected.extend(appointment_rows)

    written: list[str] = []
    for source, metrics in collected:
        if metrics.is_empty:
            continue
        await upsert_source_stats(db, business_id, source, window, metrics)
        written.append(source.source_key)

    unattributed_count, unattributed_revenue = await count_unattributed_payments(
        business_id, window, db, appointments_bucketed=bool(appointment_rows)
    )
    if unattributed_count:
        logger.warning(
            "Business %s has %d completed payments (%.2f) on %s with no acquisition source",
            business_id,
            unattributed_count,
            unattributed_revenue,
            window.day.isoformat(),
            extra={"business_id": business_id, "operation": "aggregate_daily_stats"},
        )

    await db.flush()

    logger.info(
        "Daily acquisition aggregation completed for business %s: %d rows",
        business_id,
        len(written),
        extra={"business_id": business_id, "operation": "aggregate_daily_stats"},
    )

    return {
        "business_id": business_id,
        "date": window.day.isoformat(),
        "rows_written": len(written),
        "sources": written,
        "unattributed_payments": unattributed_count,
        "unattributed_revenue": round(unattributed_revenue, 2),
    }
