"""
Dashboard aggregation.

Four per-organization read models:

- summary      post / channel counts plus impressions and traffic grand totals
- posts trend  published posts per (period bucket, platform)
- traffics     traffic totals per platform with percentage share
- impressions  impressions per period bucket

Summary, traffics and impressions go through the cache; posts trend is a
single database query and is always computed fresh.

Analytics are fetched concurrently, one call per active integration. A
failing integration is logged and skipped so the dashboard still renders
with whatever the other channels returned.
"""

import asyncio
import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from fastapi import Depends
from pydantic import TypeAdapter
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import (
    DashboardCache,
    get_redis,
    impressions_key,
    summary_key,
    traffics_key,
)
from app.core.config import settings
from app.core.dashboard_store import DashboardStore
from app.core.database import get_db
from app.core.exceptions import ConfigurationError
from app.models.db_models import Integration
from app.models.schemas import (
    AnalyticsMetric,
    DashboardSummary,
    ImpressionsPoint,
    PostsTrendPoint,
    TrafficShare,
)
from app.services.analytics_source import AnalyticsSource, get_analytics_source
from app.services.metric_classifier import MetricKind, classify_metric
from app.services.periods import Period, bucket_key, lookback_days, parse_point_date

logger = logging.getLogger(__name__)

# Analytics window requested from every integration, in days.
ANALYTICS_WINDOW_DAYS = 30

_summary_adapter = TypeAdapter(DashboardSummary)
_traffics_adapter = TypeAdapter(list[TrafficShare])
_impressions_adapter = TypeAdapter(list[ImpressionsPoint])


class DashboardRepository(Protocol):
    async def get_post_count(self, org_id: str) -> int: ...

    async def get_channel_count(self, org_id: str) -> int: ...

    async def get_active_integrations(self, org_id: str) -> list[Integration]: ...

    async def get_posts_for_trend(
        self, org_id: str, since: datetime
    ) -> list[tuple[datetime, str]]: ...


class DashboardService:
    def __init__(
        self,
        repository: DashboardRepository,
        analytics: AnalyticsSource,
        cache: DashboardCache,
    ) -> None:
        self._repository = repository
        self._analytics = analytics
        self._cache = cache

    # ------------------------------------------------------------------
    # Public read operations
    # ------------------------------------------------------------------

    async def get_summary(self, org_id: str) -> DashboardSummary:
        return await self._cache.get_or_compute(
            summary_key(org_id),
            _summary_adapter,
            lambda: self._compute_summary(org_id),
        )

    async def get_posts_trend(
        self, org_id: str, period: Period = Period.DAILY
    ) -> list[PostsTrendPoint]:
        since = datetime.now(timezone.utc) - timedelta(days=lookback_days(period))
        posts = await self._repository.get_posts_for_trend(org_id, since)

        buckets: dict[tuple[str, str], int] = defaultdict(int)
        for publish_date, platform in posts:
            if publish_date is None or not platform:
                continue
            buckets[(bucket_key(publish_date, period), platform)] += 1

        return [
            PostsTrendPoint(date=date_key, platform=platform, count=count)
            for (date_key, platform), count in sorted(buckets.items())
        ]

    async def get_traffics(self, org_id: str) -> list[TrafficShare]:
        return await self._cache.get_or_compute(
            traffics_key(org_id),
            _traffics_adapter,
            lambda: self._compute_traffics(org_id),
        )

    async def get_impressions(
        self, org_id: str, period: Period = Period.DAILY
    ) -> list[ImpressionsPoint]:
        period = Period(period)
        return await self._cache.get_or_compute(
            impressions_key(org_id, period.value),
            _impressions_adapter,
            lambda: self._compute_impressions(org_id, period),
        )

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    async def _compute_summary(self, org_id: str) -> DashboardSummary:
        post_count = await self._repository.get_post_count(org_id)
        channel_count = await self._repository.get_channel_count(org_id)
        integrations = await self._repository.get_active_integrations(org_id)

        impressions_total: int | float = 0
        traffics_total: int | float = 0
        for _, analytics in await self._fetch_all(org_id, integrations):
            for metric in analytics:
                kind = classify_metric(metric.label)
                if kind is MetricKind.IMPRESSIONS:
                    impressions_total += _metric_total(metric)
                elif kind is MetricKind.TRAFFIC:
                    traffics_total += _metric_total(metric)

        return DashboardSummary(
            post_count=post_count,
            channel_count=channel_count,
            impressions_total=impressions_total,
            traffics_total=traffics_total,
        )

    async def _compute_traffics(self, org_id: str) -> list[TrafficShare]:
        integrations = await self._repository.get_active_integrations(org_id)

        platform_values: dict[str, int | float] = {}
        for integration, analytics in await self._fetch_all(org_id, integrations):
            for metric in analytics:
                if classify_metric(metric.label) is not MetricKind.TRAFFIC:
                    continue
                platform = integration.provider_identifier
                platform_values[platform] = platform_values.get(platform, 0) + _metric_total(metric)

        grand_total = sum(platform_values.values())
        shares = [
            TrafficShare(
                platform=platform,
                value=value,
                percentage=_percentage(value, grand_total),
                delta=0,
            )
            for platform, value in platform_values.items()
        ]
        shares.sort(key=lambda share: share.value, reverse=True)
        return shares

    async def _compute_impressions(self, org_id: str, period: Period) -> list[ImpressionsPoint]:
        integrations = await self._repository.get_active_integrations(org_id)

        date_buckets: dict[str, int | float] = {}
        for _, analytics in await self._fetch_all(org_id, integrations):
            for metric in analytics:
                if classify_metric(metric.label) is not MetricKind.IMPRESSIONS:
                    continue
                for point in metric.data:
                    point_date = parse_point_date(point.date)
                    if point_date is None:
                        logger.debug("Skipping point with unreadable date %r", point.date)
                        continue
                    key = bucket_key(point_date, period)
                    date_buckets[key] = date_buckets.get(key, 0) + _to_number(point.total)

        return [
            ImpressionsPoint(date=date_key, impressions=total)
            for date_key, total in sorted(date_buckets.items())
        ]

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _fetch_all(
        self, org_id: str, integrations: list[Integration]
    ) -> list[tuple[Integration, list[AnalyticsMetric]]]:
        results = await asyncio.gather(
            *(self._fetch_one(org_id, integration) for integration in integrations)
        )
        return [
            (integration, analytics)
            for integration, analytics in zip(integrations, results)
            if analytics is not None
        ]

    async def _fetch_one(
        self, org_id: str, integration: Integration
    ) -> list[AnalyticsMetric] | None:
        try:
            return await self._analytics.check_analytics(
                org_id, integration.id, ANALYTICS_WINDOW_DAYS
            )
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.warning(
                "Skipping analytics for integration %s (%s): %s",
                integration.id,
                integration.provider_identifier,
                exc,
            )
            return None


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------


def _to_number(value: Any) -> int | float:
    """Coerce an upstream total to a number. Missing or non-numeric → 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(number) if number.is_integer() else number


def _metric_total(metric: AnalyticsMetric) -> int | float:
    return sum((_to_number(point.total) for point in metric.data), 0)


def _percentage(value: int | float, total: int | float) -> float:
    """Share of ``total`` in percent with two decimals, rounded half up. 0 if total is 0."""
    if total <= 0:
        return 0.0
    return math.floor(value / total * 10000 + 0.5) / 100


# ---------------------------------------------------------------------------
# FastAPI wiring
# ---------------------------------------------------------------------------


def get_dashboard_service(
    db: AsyncSession = Depends(get_db),
    redis: Redis = Depends(get_redis),
    analytics: AnalyticsSource = Depends(get_analytics_source),
) -> DashboardService:
    return DashboardService(
        repository=DashboardStore(db),
        analytics=analytics,
        cache=DashboardCache(redis, settings.cache_ttl),
    )
