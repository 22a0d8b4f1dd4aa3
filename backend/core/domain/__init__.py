# Domain Entities
# Pure business objects with no external dependencies
from .growth import (
    AcquisitionMetrics,
    AcquisitionSource,
    AppointmentsBucket,
    ConversionRates,
    DayWindow,
    EventSource,
    LandingPageSource,
    SourceType,
    StatsPeriod,
    calculate_conversion_rates,
    day_window,
)

__all__ = [
    "AcquisitionMetrics",
    "AcquisitionSource",
    "AppointmentsBucket",
    "ConversionRates",
    "DayWindow",
    "EventSource",
    "LandingPageSource",
    "SourceType",
    "StatsPeriod",
    "calculate_conversion_rates",
    "day_window",
]
