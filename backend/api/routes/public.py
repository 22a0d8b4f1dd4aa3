"""
Public landing page tracking routes.

Called by published landing pages without authentication, so every route is
rate limited per client IP.  Raw IP addresses never reach the visit log; they
are reduced to a salted hash first.
"""

import hashlib
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.middleware.rate_limit import get_client_ip, get_rate_limit, limiter
from api.schemas.growth import ConversionRequest, TrackingResponse
from core.domain.growth import LandingPageSource, SourceType
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models.base import utcnow
from infrastructure.database.models.sources import (
    ConversionEvent,
    LandingPage,
    LandingPageStatus,
    LandingPageVisit,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public/landing", tags=["public"])


def hash_visitor(ip_address: str) -> str:
    """Salted SHA-256 of a client IP, stable for the lifetime of the secret."""
    return hashlib.sha256(f"{settings.secret_key}:{ip_address}".encode()).hexdigest()


async def _get_published_page(slug: str, db: AsyncSession) -> LandingPage:
    result = await db.execute(
        select(LandingPage)
        .where(
            LandingPage.slug == slug,
            LandingPage.status == LandingPageStatus.PUBLISHED.value,
        )
        .order_by(LandingPage.created_at.desc())
        .limit(1)
    )
    page = result.scalar_one_or_none()
    if not page:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Landing page not found",
        )
    return page


@router.post("/{slug}/view", response_model=TrackingResponse)
@limiter.limit(get_rate_limit("landing_view"))
async def track_view(
    request: Request,
    slug: str,
    db: AsyncSession = Depends(get_db),
):
    """Record one view of a published landing page."""
    page = await _get_published_page(slug, db)
    now = utcnow()

    await db.execute(
        update(LandingPage)
        .where(LandingPage.id == page.id)
        .values(total_views=LandingPage.total_views + 1, last_viewed_at=now)
    )
    db.add(
        LandingPageVisit(
            landing_page_id=page.id,
            business_id=page.business_id,
            visitor_hash=hash_visitor(get_client_ip(request)),
            visited_at=now,
        )
    )
    await db.commit()

    logger.info(
        "Landing page viewed: %s",
        slug,
        extra={"business_id": page.business_id, "operation": "track_view"},
    )
    return TrackingResponse()


@router.post("/{slug}/convert", response_model=TrackingResponse)
@limiter.limit(get_rate_limit("landing_convert"))
async def track_conversion(
    request: Request,
    slug: str,
    data: Optional[ConversionRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
):
    """Record a conversion (form submit) on a published landing page."""
    page = await _get_published_page(slug, db)
    data = data or ConversionRequest()
    source_key = data.source_key or LandingPageSource(page.id, page.slug).source_key

    await db.execute(
        update(LandingPage)
        .where(LandingPage.id == page.id)
        .values(total_conversions=LandingPage.total_conversions + 1)
    )

    tracking = data.model_dump(exclude={"source_key"}, exclude_none=True)
    tracking["slug"] = slug
    db.add(
        ConversionEvent(
            business_id=page.business_id,
            source_type=SourceType.LANDING_PAGE.value,
            source_key=source_key,
            landing_page_id=page.id,
            tracking=tracking,
            ip_address=hash_visitor(get_client_ip(request)),
            user_agent=(request.headers.get("user-agent") or "unknown")[:500],
        )
    )
    await db.commit()

    logger.info(
        "Landing page conversion tracked: %s",
        slug,
        extra={
            "business_id": page.business_id,
            "operation": "track_conversion",
            "source_key": source_key,
        },
    )
    return TrackingResponse()
