"""
Payment ledger model.

Attribution to an acquisition source is stored in typed columns
(source_type plus the matching foreign key) and read back through
``payment_attribution``.  ``attribute_payment`` is the only writer.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from core.domain.growth import (
    AcquisitionSource,
    AppointmentsBucket,
    EventSource,
    LandingPageSource,
    SourceType,
)

from .base import Base, TimestampMixin


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class Payment(Base, TimestampMixin):
    """A payment collected by a business from one of its customers."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    business_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="ILS", nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.PENDING.value, nullable=False
    )

    # Attribution
    source_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    landing_page_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("landing_pages.id", ondelete="SET NULL"),
        nullable=True,
    )
    event_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("events.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Provider references, receipt numbers and similar
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_payments_business_status_created", "business_id", "status", "created_at"),
        Index("ix_payments_landing_page", "landing_page_id"),
        Index("ix_payments_event", "event_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, amount={self.amount}, status={self.status}, "
            f"source_type={self.source_type})>"
        )

    @property
    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED.value


def attribute_payment(payment: Payment, source: AcquisitionSource) -> None:
    """Stamp a payment with the source that generated it.

    The only writer of the attribution columns.
    """
    payment.source_type = source.source_type.value
    payment.landing_page_id = None
    payment.event_id = None
    if isinstance(source, LandingPageSource):
        payment.landing_page_id = source.landing_page_id
    elif isinstance(source, EventSource):
        payment.event_id = source.event_id


def payment_attribution(payment: Payment) -> Optional[AcquisitionSource]:
    """The source a payment is credited to, or None when unattributed.

    A landing_page/event tag without its foreign key does not resolve.
    The landing page slug is not stored on the payment, so it comes back empty.
    """
    if payment.source_type == SourceType.LANDING_PAGE.value and payment.landing_page_id:
        return LandingPageSource(landing_page_id=payment.landing_page_id, slug="")
    if payment.source_type == SourceType.EVENT.value and payment.event_id:
        return EventSource(event_id=payment.event_id)
    if payment.source_type == SourceType.APPOINTMENT.value:
        return AppointmentsBucket()
    return None
