"""
API request and response schemas.
"""

from .growth import (
    AggregationResponse,
    ConversionRequest,
    GrowthInsightsResponse,
    GrowthSummaryResponse,
    PeriodQuery,
    SourceBreakdownResponse,
    TimelineResponse,
    TrackingResponse,
)

__all__ = [
    "AggregationResponse",
    "ConversionRequest",
    "GrowthInsightsResponse",
    "GrowthSummaryResponse",
    "PeriodQuery",
    "SourceBreakdownResponse",
    "TimelineResponse",
    "TrackingResponse",
]
