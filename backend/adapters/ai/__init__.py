# AI Adapters
# Anthropic integration

from .anthropic_adapter import (
    AnthropicInsightsService,
    insights_ai_service,
)

__all__ = [
    "AnthropicInsightsService",
    "insights_ai_service",
]
