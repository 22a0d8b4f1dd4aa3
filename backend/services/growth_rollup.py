"""
Period rollups over daily acquisition stats.

All three queries read only ``period='day'`` rows of one business whose
``stats_date`` falls in the trailing window ending today, so summary,
breakdown and timeline always agree with each other.
"""

from datetime import date, timedelta

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.growth import StatsPeriod, local_day, window_start_date
from infrastructure.database.models.growth import AcquisitionSourceStats
from services.growth_aggregation import get_business_timezone

S = AcquisitionSourceStats


def _conversion_rate(payments: int, leads: int) -> float:
    """Lead-to-payment percentage with two decimals, 0.0 when there are no leads."""
    if not leads:
        return 0.0
    return round(payments / leads * 100, 2)


def _metric_sums():
    return (
        func.coalesce(func.sum(S.views), 0).label("views"),
        func.coalesce(func.sum(S.leads), 0).label("leads"),
        func.coalesce(func.sum(S.appointments), 0).label("appointments"),
        func.coalesce(func.sum(S.registrations), 0).label("registrations"),
        func.coalesce(func.sum(S.payments), 0).label("payments"),
        func.coalesce(func.sum(S.revenue), 0.0).label("revenue"),
    )


async def resolve_window(
    business_id: str,
    db: AsyncSession,
    period_days: int,
    today: date | None = None,
) -> tuple[date, date]:
    """First and last local date of the trailing window for a business."""
    if today is None:
        tz = await get_business_timezone(business_id, db)
        today = local_day(None, tz)
    return window_start_date(today, period_days), today


def _scope(business_id: str, start: date, end: date):
    return (
        S.business_id == business_id,
        S.period == StatsPeriod.DAY.value,
        S.stats_date >= start,
        S.stats_date <= end,
    )


async def get_summary(
    business_id: str,
    db: AsyncSession,
    period_days: int = 30,
    today: date | None = None,
) -> dict:
    """Totals across all sources for the trailing window."""
    start, end = await resolve_window(business_id, db, period_days, today)

    row = (
        await db.execute(select(*_metric_sums()).where(*_scope(business_id, start, end)))
    ).one()

    leads = int(row.leads)
    payments = int(row.payments)
    return {
        "total_views": int(row.views),
        "total_leads": leads,
        "total_bookings": int(row.appointments) + int(row.registrations),
        "total_payments": payments,
        "total_revenue": round(float(row.revenue), 2),
        "conversion_rate": _conversion_rate(payments, leads),
    }


async def get_source_breakdown(
    business_id: str,
    db: AsyncSession,
    period_days: int = 30,
    today: date | None = None,
) -> list[dict]:
    """Per-source totals for the trailing window, highest revenue first."""
    start, end = await resolve_window(business_id, db, period_days, today)

    q = (
        select(S.source_key, S.source_type, *_metric_sums())
        .where(*_scope(business_id, start, end))
        .group_by(S.source_key, S.source_type)
        .order_by(desc("revenue"), S.source_key)
    )
    rows = (await db.execute(q)).all()

    sources = []
    for row in rows:
        leads = int(row.leads)
        payments = int(row.payments)
        sources.append(
            {
                "source_key": row.source_key,
                "source_type": row.source_type,
                "views": int(row.views),
                "leads": leads,
                "bookings": int(row.appointments) + int(row.registrations),
                "payments": payments,
                "revenue": round(float(row.revenue), 2),
                "conversion_rate": _conversion_rate(payments, leads),
            }
        )
    return sources


async def get_timeline(
    business_id: str,
    db: AsyncSession,
    period_days: int = 30,
    today: date | None = None,
    fill_gaps: bool = False,
) -> list[dict]:
    """Daily totals across sources, ascending by date.

    Days without stats rows are omitted unless *fill_gaps* is set, in which
    case every date of the window is present and quiet days are zero.
    """
    start, end = await resolve_window(business_id, db, period_days, today)

    q = (
        select(S.stats_date, *_metric_sums())
        .where(*_scope(business_id, start, end))
        .group_by(S.stats_date)
        .order_by(S.stats_date)
    )
    rows = (await db.execute(q)).all()

    points = {
        row.stats_date: {
            "date": row.stats_date.isoformat(),
            "leads": int(row.leads),
            "bookings": int(row.appointments) + int(row.registrations),
            "payments": int(row.payments),
            "revenue": round(float(row.revenue), 2),
        }
        for row in rows
    }

    if not fill_gaps:
        return list(points.values())

    timeline = []
    day = start
    while day <= end:
        timeline.append(
            points.get(day)
            or {
                "date": day.isoformat(),
                "leads": 0,
                "bookings": 0,
                "payments": 0,
                "revenue": 0.0,
            }
        )
        day += timedelta(days=1)
    return timeline
