"""
SQLAlchemy database models.
"""

from .base import Base, TimestampMixin
from .business import Business
from .growth import AcquisitionSourceStats
from .payment import Payment, PaymentStatus, attribute_payment, payment_attribution
from .sources import (
    Appointment,
    AppointmentStatus,
    ConversionEvent,
    Event,
    EventRegistration,
    EventStatus,
    LandingPage,
    LandingPageStatus,
    LandingPageVisit,
    RegistrationStatus,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "Business",
    "LandingPage",
    "LandingPageStatus",
    "LandingPageVisit",
    "ConversionEvent",
    "Event",
    "EventStatus",
    "EventRegistration",
    "RegistrationStatus",
    "Appointment",
    "AppointmentStatus",
    "Payment",
    "PaymentStatus",
    "attribute_payment",
    "payment_attribution",
    "AcquisitionSourceStats",
]
