"""
Per-integration analytics fetches.

The social-platform integrations that actually talk to each network live in a
separate analytics service. This module is the HTTP client side of that
boundary: one GET per integration returning a list of labelled time series.

    GET {ANALYTICS_SERVICE_URL}/integrations/{integration_id}/analytics?date=30
    X-Organization-Id: <org id>

    [{"label": "Impressions", "data": [{"date": "2024-03-01", "total": 12}, ...]}, ...]
"""

import logging
from typing import Protocol

import httpx
from fastapi import Request
from pydantic import TypeAdapter, ValidationError

from app.core.config import settings
from app.core.exceptions import AnalyticsFetchError, ConfigurationError
from app.models.schemas import AnalyticsMetric

logger = logging.getLogger(__name__)

_metrics_adapter = TypeAdapter(list[AnalyticsMetric])


class AnalyticsSource(Protocol):
    async def check_analytics(
        self, org_id: str, integration_id: str, days: int
    ) -> list[AnalyticsMetric]: ...


class HttpAnalyticsSource:
    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def check_analytics(
        self, org_id: str, integration_id: str, days: int
    ) -> list[AnalyticsMetric]:
        if not self._base_url:
            raise ConfigurationError("ANALYTICS_SERVICE_URL")

        url = f"{self._base_url}/integrations/{integration_id}/analytics"
        try:
            response = await self._client.get(
                url,
                params={"date": str(days)},
                headers={"X-Organization-Id": org_id},
            )
        except httpx.HTTPError as exc:
            raise AnalyticsFetchError(integration_id, f"request failed: {exc}") from exc

        if response.status_code >= 400:
            raise AnalyticsFetchError(integration_id, f"HTTP {response.status_code}")

        try:
            return _metrics_adapter.validate_python(response.json())
        except (ValueError, ValidationError) as exc:
            raise AnalyticsFetchError(integration_id, f"malformed payload: {exc}") from exc


def get_analytics_source(request: Request) -> AnalyticsSource:
    """FastAPI dependency: shares the lifespan-scoped httpx client."""
    return HttpAnalyticsSource(request.app.state.http_client, settings.ANALYTICS_SERVICE_URL)
