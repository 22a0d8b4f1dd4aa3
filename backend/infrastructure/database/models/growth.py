"""
Growth analytics models: one aggregate row per (business, source, day).
"""

from datetime import date as date_type
from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from core.domain.growth import (
    AcquisitionMetrics,
    ConversionRates,
    StatsPeriod,
)

from .base import Base, TimestampMixin


class AcquisitionSourceStats(Base, TimestampMixin):
    """Daily funnel counters and conversion rates for one acquisition source."""

    __tablename__ = "acquisition_source_stats"

    # Primary key
    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Tenant
    business_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Source identity
    source_key: Mapped[str] = mapped_column(String(300), nullable=False)
    source_type: Mapped[str] = mapped_column(String(30), nullable=False)

    # Period covered: [period_start, period_end) in UTC, stats_date in tenant time
    period: Mapped[str] = mapped_column(
        String(10), default=StatsPeriod.DAY.value, nullable=False
    )
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    stats_date: Mapped[date_type] = mapped_column(Date, nullable=False)

    # Metrics
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    leads: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    appointments: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    registrations: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    payments: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    revenue: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    # Conversion rates (percent), always derived from the metrics above
    views_to_leads: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    leads_to_bookings: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    bookings_to_payments: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    overall_conversion: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "business_id",
            "source_key",
            "period",
            "period_start",
            name="uq_acquisition_stats_business_source_period_start",
        ),
        Index("ix_acquisition_stats_business_date", "business_id", "stats_date"),
        Index(
            "ix_acquisition_stats_business_type_date",
            "business_id",
            "source_type",
            "stats_date",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AcquisitionSourceStats("
            f"source_key={self.source_key!r}, "
            f"stats_date={self.stats_date}, "
            f"leads={self.leads}, "
            f"revenue={self.revenue}"
            f")>"
        )

    @property
    def metrics(self) -> AcquisitionMetrics:
        return AcquisitionMetrics(
            views=self.views,
            leads=self.leads,
            appointments=self.appointments,
            registrations=self.registrations,
            payments=self.payments,
            revenue=self.revenue,
        )

    @property
    def conversion_rates(self) -> ConversionRates:
        return ConversionRates(
            views_to_leads=self.views_to_leads,
            leads_to_bookings=self.leads_to_bookings,
            bookings_to_payments=self.bookings_to_payments,
            overall_conversion=self.overall_conversion,
        )
