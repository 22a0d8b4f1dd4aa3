"""
AI narrative for growth analytics.

Feeds the period summary and source breakdown into a prompt, asks the
Anthropic adapter for a JSON answer and validates it.  Any failure on the AI
side degrades to a static, localized fallback.  Database errors from the
rollups are not caught here.
"""

import json
import logging
import re
from typing import Optional

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.ai.anthropic_adapter import AnthropicInsightsService, insights_ai_service
from infrastructure.config.settings import settings
from services.growth_rollup import get_source_breakdown, get_summary

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class GrowthInsights(BaseModel):
    """Structured narrative returned to the dashboard."""

    top_sources: list[str] = Field(default_factory=list, alias="topSources")
    weak_sources: list[str] = Field(default_factory=list, alias="weakSources")
    recommendations: list[str] = Field(default_factory=list)
    summary: str

    model_config = {"populate_by_name": True}


_FALLBACKS = {
    "he": {
        "recommendation": "אין מספיק נתונים להמלצות AI כרגע",
        "summary": "המערכת אוספת נתונים...",
    },
    "en": {
        "recommendation": "Not enough data for AI recommendations yet",
        "summary": "The system is still collecting data...",
    },
}

_PROMPTS = {
    "he": {
        "system": "אתה מומחה לשיווק דיגיטלי ורכישת לקוחות. תמיד עונה בעברית בפורמט JSON תקין.",
        "intro": "אתה מומחה לשיווק דיגיטלי ורכישת לקוחות. נתח את הנתונים הבאים וספק תובנות והמלצות פעולה בעברית.",
        "overview": "נתוני רכישה כלליים ({days} ימים אחרונים):",
        "totals": (
            "- סה\"כ לידים: {total_leads}\n"
            "- סה\"כ הזמנות: {total_bookings}\n"
            "- סה\"כ משלמים: {total_payments}\n"
            "- סה\"כ הכנסות: ₪{total_revenue}\n"
            "- אחוז המרה כללי: {conversion_rate}%"
        ),
        "breakdown": "פילוח לפי מקורות:",
        "source": (
            "- {source_key} ({source_type}):\n"
            "  לידים: {leads}, הזמנות: {bookings}, משלמים: {payments}\n"
            "  הכנסות: ₪{revenue}, אחוז המרה: {conversion_rate}%"
        ),
        "no_sources": "- אין עדיין נתונים לפי מקור",
        "asks": (
            "ספק:\n"
            "1. מקורות מובילים - אילו מקורות מביאים את הלקוחות הטובים ביותר (ROI גבוה)?\n"
            "2. מקורות חלשים - אילו מקורות לא מבצעים טוב ומה כדאי לעשות איתם?\n"
            "3. המלצות פעולה - 3 צעדים קונקרטיים לשיפור הרכישה."
        ),
    },
    "en": {
        "system": "You are a digital marketing and customer acquisition expert. Always answer in valid JSON.",
        "intro": "You are a digital marketing and customer acquisition expert. Analyze the data below and give insights and action items in English.",
        "overview": "Overall acquisition data (last {days} days):",
        "totals": (
            "- Total leads: {total_leads}\n"
            "- Total bookings: {total_bookings}\n"
            "- Total paying customers: {total_payments}\n"
            "- Total revenue: ₪{total_revenue}\n"
            "- Overall conversion rate: {conversion_rate}%"
        ),
        "breakdown": "Breakdown by source:",
        "source": (
            "- {source_key} ({source_type}):\n"
            "  leads: {leads}, bookings: {bookings}, paying: {payments}\n"
            "  revenue: ₪{revenue}, conversion rate: {conversion_rate}%"
        ),
        "no_sources": "- No per-source data yet",
        "asks": (
            "Provide:\n"
            "1. Top sources - which sources bring the best customers (high ROI)?\n"
            "2. Weak sources - which sources underperform and what to do about them?\n"
            "3. Action items - 3 concrete steps to improve acquisition."
        ),
    },
}

_RESPONSE_FORMAT = """{
  "topSources": ["source 1", "source 2"],
  "weakSources": ["weak source 1"],
  "recommendations": ["recommendation 1", "recommendation 2", "recommendation 3"],
  "summary": "short summary of the overall situation"
}"""


def _language(language: Optional[str]) -> str:
    language = language or settings.growth_insights_language
    return language if language in _PROMPTS else "he"


def fallback_insights(language: Optional[str] = None) -> GrowthInsights:
    """Static answer used whenever the model cannot produce usable output."""
    texts = _FALLBACKS[_language(language)]
    return GrowthInsights(
        top_sources=[],
        weak_sources=[],
        recommendations=[texts["recommendation"]],
        summary=texts["summary"],
    )


def build_insights_prompt(
    summary: dict,
    sources: list[dict],
    period_days: int,
    language: Optional[str] = None,
) -> tuple[str, str]:
    """Return (system, user) prompts. Same inputs always give the same text."""
    texts = _PROMPTS[_language(language)]

    source_lines = [
        texts["source"].format(
            source_key=AnthropicInsightsService._sanitize_prompt_input(s["source_key"], 300),
            source_type=s["source_type"],
            leads=s["leads"],
            bookings=s["bookings"],
            payments=s["payments"],
            revenue=s["revenue"],
            conversion_rate=s["conversion_rate"],
        )
        for s in sources
    ] or [texts["no_sources"]]

    prompt = "\n\n".join(
        [
            texts["intro"],
            texts["overview"].format(days=period_days) + "\n" + texts["totals"].format(**summary),
            texts["breakdown"] + "\n" + "\n".join(source_lines),
            texts["asks"],
            "JSON:\n" + _RESPONSE_FORMAT,
        ]
    )
    return texts["system"], prompt


def parse_insights(content: str) -> GrowthInsights:
    """Extract and validate the first JSON object in a model reply.

    Raises ValueError when there is no JSON block, the JSON is malformed or
    the object does not have the expected shape.
    """
    match = _JSON_BLOCK.search(content or "")
    if not match:
        raise ValueError("No JSON found in response")
    try:
        data = json.loads(match.group(0))
        return GrowthInsights.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Invalid insights payload: {e}") from e


async def get_ai_insights(
    business_id: str,
    db: AsyncSession,
    period_days: int = 30,
    ai_service: Optional[AnthropicInsightsService] = None,
    language: Optional[str] = None,
) -> GrowthInsights:
    """Narrative insights for a business over the trailing window."""
    ai_service = ai_service or insights_ai_service
    language = _language(language)

    summary = await get_summary(business_id, db, period_days)
    sources = await get_source_breakdown(business_id, db, period_days)

    system, prompt = build_insights_prompt(summary, sources, period_days, language)

    try:
        content = await ai_service.generate_text(
            prompt,
            system=system,
            max_tokens=settings.anthropic_max_tokens,
            temperature=0.7,
        )
        insights = parse_insights(content)
    except Exception as e:
        logger.error(
            "Failed to generate AI insights for business %s: %s",
            business_id,
            e,
            extra={"business_id": business_id, "operation": "get_ai_insights"},
        )
        return fallback_insights(language)

    logger.info(
        "AI acquisition insights generated for business %s",
        business_id,
        extra={"business_id": business_id, "operation": "get_ai_insights"},
    )
    return insights
