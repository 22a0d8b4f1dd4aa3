"""
Business (tenant) database model.
"""

from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Business(Base, TimestampMixin):
    """A tenant of the platform. Every growth query is partitioned by its id."""

    __tablename__ = "businesses"

    # Primary key
    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # IANA timezone used for every day-boundary computation of this tenant
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)

    # Preferred language for dashboard text (he, en, ...)
    locale: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Business(id={self.id}, name={self.name!r}, timezone={self.timezone})>"
