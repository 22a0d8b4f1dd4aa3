"""
Integration tests for the growth analytics endpoints.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from adapters.ai.anthropic_adapter import insights_ai_service
from api.deps_tenant import token_service
from conftest import make_stats_row

BASE = "/api/v1/growth/get"
READ_ENDPOINTS = ["summary", "sources", "timeline", "ai-insights"]


@pytest.fixture
async def recent_stats(db_session, business, yesterday):
    """Stats rows dated yesterday so they fall inside every period."""
    db_session.add_all(
        [
            make_stats_row(
                business.id, "landing-page:spring-workshop", "landing_page", yesterday,
                views=10, leads=2, payments=1, revenue=200.0,
            ),
            make_stats_row(
                business.id, "event:evt-1", "event", yesterday - timedelta(days=1),
                leads=3, registrations=3, payments=1, revenue=80.0,
            ),
        ]
    )
    await db_session.commit()


class TestSummaryEndpoint:
    """Tests for GET /growth/get/summary."""

    async def test_envelope_with_camel_case_keys(self, async_client: AsyncClient, auth_headers, recent_stats):
        response = await async_client.get(f"{BASE}/summary?period=7d", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["period"] == "7d"
        assert body["data"] == {
            "totalViews": 10,
            "totalLeads": 5,
            "totalBookings": 3,
            "totalPayments": 2,
            "totalRevenue": 280.0,
            "conversionRate": 40.0,
        }

    async def test_default_period_is_30_days(self, async_client: AsyncClient, auth_headers):
        with patch(
            "api.routes.growth.get_summary",
            new_callable=AsyncMock,
            return_value={"total_views": 0},
        ) as mock_summary:
            response = await async_client.get(f"{BASE}/summary", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["period"] == "30d"
        assert mock_summary.await_args.args[2] == 30

    async def test_empty_business(self, async_client: AsyncClient, auth_headers):
        response = await async_client.get(f"{BASE}/summary?period=90d", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["data"]["totalRevenue"] == 0.0

    async def test_only_own_business(self, async_client: AsyncClient, other_business, recent_stats):
        token = token_service.create_access_token(str(uuid4()), business_id=other_business.id)

        response = await async_client.get(
            f"{BASE}/summary?period=30d",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["totalLeads"] == 0


class TestSourcesAndTimeline:
    """Tests for the sources and timeline endpoints."""

    async def test_sources(self, async_client: AsyncClient, auth_headers, recent_stats):
        response = await async_client.get(f"{BASE}/sources?period=30d", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert [item["sourceKey"] for item in data] == ["landing-page:spring-workshop", "event:evt-1"]
        assert data[0]["sourceType"] == "landing_page"
        assert data[0]["conversionRate"] == 50.0
        assert data[1]["bookings"] == 3

    async def test_timeline(self, async_client: AsyncClient, auth_headers, recent_stats, yesterday):
        response = await async_client.get(f"{BASE}/timeline?period=7d", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert [point["date"] for point in data] == [
            (yesterday - timedelta(days=1)).isoformat(),
            yesterday.isoformat(),
        ]
        assert data[1] == {
            "date": yesterday.isoformat(),
            "leads": 2,
            "bookings": 0,
            "payments": 1,
            "revenue": 200.0,
        }

    async def test_timeline_fill_gaps(self, async_client: AsyncClient, auth_headers, recent_stats):
        response = await async_client.get(
            f"{BASE}/timeline?period=7d&fill_gaps=true", headers=auth_headers
        )

        assert response.status_code == 200
        assert len(response.json()["data"]) == 8


class TestPeriodValidation:
    """An unknown period is rejected before any query runs."""

    @pytest.mark.parametrize("endpoint", READ_ENDPOINTS)
    @pytest.mark.parametrize("period", ["15d", "1y", "7", ""])
    async def test_invalid_period_is_400(self, async_client: AsyncClient, auth_headers, endpoint, period):
        with patch("api.routes.growth.get_summary", new_callable=AsyncMock) as mock_summary, patch(
            "api.routes.growth.get_source_breakdown", new_callable=AsyncMock
        ) as mock_sources, patch(
            "api.routes.growth.get_timeline", new_callable=AsyncMock
        ) as mock_timeline, patch(
            "api.routes.growth.get_ai_insights", new_callable=AsyncMock
        ) as mock_insights:
            response = await async_client.get(f"{BASE}/{endpoint}?period={period}", headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["detail"]
        mock_summary.assert_not_awaited()
        mock_sources.assert_not_awaited()
        mock_timeline.assert_not_awaited()
        mock_insights.assert_not_awaited()


class TestAIInsightsEndpoint:
    """Tests for GET /growth/get/ai-insights."""

    async def test_network_failure_returns_fallback(self, async_client: AsyncClient, auth_headers, recent_stats):
        with patch.object(
            insights_ai_service,
            "generate_text",
            new=AsyncMock(side_effect=httpx.ConnectError("network unreachable")),
        ):
            response = await async_client.get(f"{BASE}/ai-insights?period=30d", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["period"] == "30d"
        assert body["data"]["topSources"] == []
        assert body["data"]["weakSources"] == []
        assert len(body["data"]["recommendations"]) == 1
        assert body["data"]["summary"]

    async def test_model_answer(self, async_client: AsyncClient, auth_headers, recent_stats):
        reply = (
            '{"topSources": ["landing-page:spring-workshop"], "weakSources": ["event:evt-1"], '
            '"recommendations": ["Run the workshop page again"], "summary": "Workshop page leads."}'
        )
        with patch.object(insights_ai_service, "generate_text", new=AsyncMock(return_value=reply)):
            response = await async_client.get(f"{BASE}/ai-insights?period=7d", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["topSources"] == ["landing-page:spring-workshop"]
        assert data["summary"] == "Workshop page leads."


class TestAuthAndErrors:
    """Authentication and error responses."""

    @pytest.mark.parametrize("endpoint", READ_ENDPOINTS)
    async def test_requires_authentication(self, async_client: AsyncClient, endpoint):
        response = await async_client.get(f"{BASE}/{endpoint}?period=7d")

        assert response.status_code == 401

    async def test_invalid_token(self, async_client: AsyncClient):
        response = await async_client.get(
            f"{BASE}/summary?period=7d", headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401

    async def test_token_without_business(self, async_client: AsyncClient):
        token = token_service.create_access_token(str(uuid4()))

        response = await async_client.get(
            f"{BASE}/summary?period=7d", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 403

    async def test_cookie_authentication(self, async_client: AsyncClient, business):
        token = token_service.create_access_token(str(uuid4()), business_id=business.id)
        response = await async_client.get(
            f"{BASE}/summary?period=7d", headers={"Cookie": f"access_token={token}"}
        )

        assert response.status_code == 200

    async def test_database_error_is_500_with_localized_message(self, async_client: AsyncClient, auth_headers):
        with patch(
            "api.routes.growth.get_source_breakdown",
            new_callable=AsyncMock,
            side_effect=SQLAlchemyError("connection lost"),
        ):
            response = await async_client.get(f"{BASE}/sources?period=7d", headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["detail"] == "שגיאה בטעינת מקורות רכישה"


class TestAggregateEndpoint:
    """Tests for POST /growth/get/aggregate."""

    async def test_admin_can_aggregate(self, async_client: AsyncClient, admin_headers):
        response = await async_client.post(f"{BASE}/aggregate?date=2026-10-15", headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["date"] == "2026-10-15"
        assert body["data"]["rowsWritten"] == 0
        assert body["data"]["unattributedPayments"] == 0

    async def test_owner_is_forbidden(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(f"{BASE}/aggregate", headers=auth_headers)

        assert response.status_code == 403

    async def test_invalid_date(self, async_client: AsyncClient, admin_headers):
        response = await async_client.post(f"{BASE}/aggregate?date=yesterday", headers=admin_headers)

        assert response.status_code == 422


class TestHealth:
    async def test_health(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_health_db(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/health/db")

        assert response.json()["database"] == "connected"

    async def test_services_requires_admin(self, async_client: AsyncClient, auth_headers):
        response = await async_client.get("/api/v1/health/services", headers=auth_headers)

        assert response.status_code == 403

    async def test_services_for_admin(self, async_client: AsyncClient, admin_headers):
        response = await async_client.get("/api/v1/health/services", headers=admin_headers)

        assert response.status_code == 200
        assert set(response.json()["services"]) == {"anthropic", "growth_scheduler"}
