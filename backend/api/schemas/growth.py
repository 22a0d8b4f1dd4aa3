"""
Growth analytics API schemas.

Responses are serialized with camelCase keys to match the dashboard client.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.domain.growth import DEFAULT_PERIOD

PeriodValue = Literal["7d", "30d", "90d"]


class CamelModel(BaseModel):
    """Base for payloads exchanged with the dashboard."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PeriodQuery(BaseModel):
    """Validated ``period`` query parameter."""

    period: PeriodValue = DEFAULT_PERIOD

    @property
    def days(self) -> int:
        return int(self.period.rstrip("d"))


# ============================================================================
# Data Schemas
# ============================================================================


class GrowthSummary(CamelModel):
    total_views: int = 0
    total_leads: int = 0
    total_bookings: int = 0
    total_payments: int = 0
    total_revenue: float = 0.0
    conversion_rate: float = Field(0.0, description="Payments per lead, percent")


class SourceBreakdownItem(CamelModel):
    source_key: str
    source_type: str
    views: int = 0
    leads: int = 0
    bookings: int = 0
    payments: int = 0
    revenue: float = 0.0
    conversion_rate: float = 0.0


class TimelinePoint(CamelModel):
    date: str = Field(..., description="Tenant-local date, YYYY-MM-DD")
    leads: int = 0
    bookings: int = 0
    payments: int = 0
    revenue: float = 0.0


class GrowthInsightsData(CamelModel):
    top_sources: List[str] = Field(default_factory=list)
    weak_sources: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    summary: str


class AggregationResult(CamelModel):
    date: str
    rows_written: int
    sources: List[str] = Field(default_factory=list)
    unattributed_payments: int = 0
    unattributed_revenue: float = 0.0


# ============================================================================
# Response Envelopes
# ============================================================================


class GrowthSummaryResponse(CamelModel):
    success: bool = True
    data: GrowthSummary
    period: PeriodValue


class SourceBreakdownResponse(CamelModel):
    success: bool = True
    data: List[SourceBreakdownItem]
    period: PeriodValue


class TimelineResponse(CamelModel):
    success: bool = True
    data: List[TimelinePoint]
    period: PeriodValue


class GrowthInsightsResponse(CamelModel):
    success: bool = True
    data: GrowthInsightsData
    period: PeriodValue


class AggregationResponse(CamelModel):
    success: bool = True
    data: AggregationResult


# ============================================================================
# Tracking Schemas
# ============================================================================


class ConversionRequest(CamelModel):
    """Optional attribution data sent by a landing page on form submit."""

    source_key: Optional[str] = Field(None, max_length=300)
    utm_source: Optional[str] = Field(None, max_length=255)
    utm_medium: Optional[str] = Field(None, max_length=255)
    utm_campaign: Optional[str] = Field(None, max_length=255)
    utm_term: Optional[str] = Field(None, max_length=255)
    utm_content: Optional[str] = Field(None, max_length=255)
    referral_code: Optional[str] = Field(None, max_length=100)


class TrackingResponse(BaseModel):
    success: bool = True
