"""
Read-only queries backing the dashboard.

"Active" integrations are the organization's channels: type ``social``,
not disabled, not soft-deleted.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db_models import Integration, Post


def _active_integration_filters(org_id: str) -> tuple:
    return (
        Integration.organization_id == org_id,
        Integration.deleted_at.is_(None),
        Integration.disabled.is_(False),
        Integration.type == "social",
    )


class DashboardStore:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_post_count(self, org_id: str) -> int:
        result = await self._db.execute(
            select(func.count())
            .select_from(Post)
            .where(Post.organization_id == org_id, Post.deleted_at.is_(None))
        )
        return result.scalar_one() or 0

    async def get_channel_count(self, org_id: str) -> int:
        result = await self._db.execute(
            select(func.count())
            .select_from(Integration)
            .where(*_active_integration_filters(org_id))
        )
        return result.scalar_one() or 0

    async def get_active_integrations(self, org_id: str) -> list[Integration]:
        result = await self._db.execute(
            select(Integration)
            .where(*_active_integration_filters(org_id))
            .order_by(Integration.id)
        )
        return list(result.scalars().all())

    async def get_posts_for_trend(self, org_id: str, since: datetime) -> list[tuple[datetime, str]]:
        """Return ``(publish_date, provider_identifier)`` for published posts since ``since``.

        Posts whose integration has been soft-deleted are left out.
        """
        result = await self._db.execute(
            select(Post.publish_date, Integration.provider_identifier)
            .join(Integration, Post.integration_id == Integration.id)
            .where(
                Post.organization_id == org_id,
                Post.deleted_at.is_(None),
                Post.publish_date.is_not(None),
                Post.publish_date >= since,
                Integration.deleted_at.is_(None),
            )
        )
        return [(row.publish_date, row.provider_identifier) for row in result.all()]
