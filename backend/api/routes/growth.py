"""
Growth analytics API routes ("Get" pillar of the growth dashboard).

Read-only rollups over the daily acquisition stats, the AI narrative, and an
admin trigger for re-running the daily aggregation.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_admin import get_current_admin_tenant
from api.deps_tenant import TenantContext, get_current_tenant
from api.middleware.rate_limit import get_rate_limit, limiter
from api.schemas.growth import (
    AggregationResponse,
    AggregationResult,
    GrowthInsightsData,
    GrowthInsightsResponse,
    GrowthSummary,
    GrowthSummaryResponse,
    PeriodQuery,
    SourceBreakdownItem,
    SourceBreakdownResponse,
    TimelinePoint,
    TimelineResponse,
)
from core.domain.growth import DEFAULT_PERIOD
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from services.growth_aggregation import aggregate_daily_stats
from services.growth_insights import get_ai_insights
from services.growth_rollup import get_source_breakdown, get_summary, get_timeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/growth/get", tags=["growth"])


# ============================================================================
# Helper Functions
# ============================================================================


ERROR_MESSAGES = {
    "he": {
        "summary": "שגיאה בטעינת נתוני רכישה",
        "sources": "שגיאה בטעינת מקורות רכישה",
        "timeline": "שגיאה בטעינת ציר הזמן",
        "ai_insights": "שגיאה ביצירת תובנות AI",
        "aggregate": "שגיאה בעדכון נתוני רכישה",
    },
    "en": {
        "summary": "Failed to load acquisition data",
        "sources": "Failed to load acquisition sources",
        "timeline": "Failed to load the timeline",
        "ai_insights": "Failed to generate AI insights",
        "aggregate": "Failed to update acquisition data",
    },
}


def _error_message(operation: str) -> str:
    messages = ERROR_MESSAGES.get(settings.default_locale, ERROR_MESSAGES["he"])
    return messages[operation]


def _internal_error(operation: str, tenant: TenantContext, exc: Exception) -> HTTPException:
    logger.error(
        "Error in growth %s for business %s: %s",
        operation,
        tenant.business_id,
        exc,
        exc_info=True,
        extra={"business_id": tenant.business_id, "operation": operation},
    )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=_error_message(operation),
    )


def get_period(period: str = Query(DEFAULT_PERIOD, description="7d, 30d or 90d")) -> PeriodQuery:
    """Validate the ``period`` query parameter, rejecting anything else with 400."""
    try:
        return PeriodQuery(period=period)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.errors()[0]["msg"],
        )


# ============================================================================
# Rollup Endpoints
# ============================================================================


@router.get("/summary", response_model=GrowthSummaryResponse)
@limiter.limit(get_rate_limit("growth_read"))
async def summary(
    request: Request,
    period: PeriodQuery = Depends(get_period),
    tenant: TenantContext = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Acquisition totals for the selected period."""
    try:
        data = await get_summary(tenant.business_id, db, period.days)
    except Exception as e:
        raise _internal_error("summary", tenant, e)

    return GrowthSummaryResponse(data=GrowthSummary(**data), period=period.period)


@router.get("/sources", response_model=SourceBreakdownResponse)
@limiter.limit(get_rate_limit("growth_read"))
async def sources(
    request: Request,
    period: PeriodQuery = Depends(get_period),
    tenant: TenantContext = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Per-source breakdown, highest revenue first."""
    try:
        rows = await get_source_breakdown(tenant.business_id, db, period.days)
    except Exception as e:
        raise _internal_error("sources", tenant, e)

    return SourceBreakdownResponse(
        data=[SourceBreakdownItem(**row) for row in rows],
        period=period.period,
    )


@router.get("/timeline", response_model=TimelineResponse)
@limiter.limit(get_rate_limit("growth_read"))
async def timeline(
    request: Request,
    period: PeriodQuery = Depends(get_period),
    fill_gaps: bool = Query(False, description="Include zero points for days without activity"),
    tenant: TenantContext = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Daily totals across all sources, oldest first."""
    try:
        points = await get_timeline(tenant.business_id, db, period.days, fill_gaps=fill_gaps)
    except Exception as e:
        raise _internal_error("timeline", tenant, e)

    return TimelineResponse(
        data=[TimelinePoint(**point) for point in points],
        period=period.period,
    )


@router.get("/ai-insights", response_model=GrowthInsightsResponse)
@limiter.limit(get_rate_limit("growth_insights"))
async def ai_insights(
    request: Request,
    period: PeriodQuery = Depends(get_period),
    tenant: TenantContext = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
):
    """AI narrative for the selected period. Falls back to a static answer."""
    try:
        insights = await get_ai_insights(tenant.business_id, db, period.days)
    except Exception as e:
        raise _internal_error("ai_insights", tenant, e)

    return GrowthInsightsResponse(
        data=GrowthInsightsData(**insights.model_dump()),
        period=period.period,
    )


# ============================================================================
# Admin Endpoints
# ============================================================================


@router.post("/aggregate", response_model=AggregationResponse)
@limiter.limit(get_rate_limit("growth_aggregate"))
async def aggregate(
    request: Request,
    day: Optional[date] = Query(None, alias="date", description="Local date, YYYY-MM-DD; defaults to today"),
    tenant: TenantContext = Depends(get_current_admin_tenant),
    db: AsyncSession = Depends(get_db),
):
    """Re-run the daily aggregation for the caller's business."""
    try:
        result = await aggregate_daily_stats(tenant.business_id, db, day)
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise _internal_error("aggregate", tenant, e)

    return AggregationResponse(data=AggregationResult(**result))
