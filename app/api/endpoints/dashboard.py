"""
Dashboard Endpoint — organization analytics

GET /dashboard/summary                       → post / channel counts and metric totals
GET /dashboard/posts-trend?period=daily      → published posts per bucket and platform
GET /dashboard/traffics                      → traffic share per platform
GET /dashboard/impressions?period=daily      → impressions per bucket

Every route is scoped to the organization resolved from the caller's
credential (or the impersonated one for super admins).
"""

from typing import List

from fastapi import APIRouter, Depends, Query, Request

from app.core.auth import get_auth_context
from app.core.limiter import limiter
from app.models.schemas import (
    AuthContext,
    DashboardSummary,
    ImpressionsPoint,
    PostsTrendPoint,
    TrafficShare,
)
from app.services.dashboard import DashboardService, get_dashboard_service
from app.services.periods import Period

router = APIRouter()


@router.get(
    "/summary",
    response_model=DashboardSummary,
    summary="Organization summary",
    description=(
        "Non-deleted post count, active channel count and the impressions and "
        "traffic totals of the last 30 days across all channels."
    ),
)
@limiter.limit("60/minute")
async def get_summary(
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    service: DashboardService = Depends(get_dashboard_service),
) -> DashboardSummary:
    return await service.get_summary(auth.organization.id)


@router.get(
    "/posts-trend",
    response_model=List[PostsTrendPoint],
    summary="Published posts per period and platform",
    description="Sorted by date, then platform. Lookback: 30 / 90 / 365 days.",
)
@limiter.limit("60/minute")
async def get_posts_trend(
    request: Request,
    period: Period = Query(Period.DAILY),
    auth: AuthContext = Depends(get_auth_context),
    service: DashboardService = Depends(get_dashboard_service),
) -> List[PostsTrendPoint]:
    return await service.get_posts_trend(auth.organization.id, period)


@router.get(
    "/traffics",
    response_model=List[TrafficShare],
    summary="Traffic share per platform",
    description="Clicks / engagement / traffic totals per platform, largest first.",
)
@limiter.limit("60/minute")
async def get_traffics(
    request: Request,
    auth: AuthContext = Depends(get_auth_context),
    service: DashboardService = Depends(get_dashboard_service),
) -> List[TrafficShare]:
    return await service.get_traffics(auth.organization.id)


@router.get(
    "/impressions",
    response_model=List[ImpressionsPoint],
    summary="Impressions per period",
    description="Impressions, views and reach summed per bucket, oldest first.",
)
@limiter.limit("60/minute")
async def get_impressions(
    request: Request,
    period: Period = Query(Period.DAILY),
    auth: AuthContext = Depends(get_auth_context),
    service: DashboardService = Depends(get_dashboard_service),
) -> List[ImpressionsPoint]:
    return await service.get_impressions(auth.organization.id, period)
