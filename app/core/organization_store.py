"""
Organization, user and membership persistence used by the auth flow and the
internal provisioning endpoint.
"""

import logging
import secrets

from fastapi import Depends
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.database import get_db
from app.core.exceptions import ProvisioningConflictError
from app.models.db_models import Organization, User, UserOrganization

logger = logging.getLogger(__name__)


def generate_api_key() -> str:
    return secrets.token_hex(20)


class OrganizationStore:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_user_by_id(self, user_id: str) -> User | None:
        return await self._db.get(User, user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        result = await self._db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def create_org_and_user_with_id(
        self,
        user_id: str,
        email: str,
        name: str | None = None,
    ) -> User:
        """Create-or-fetch the user ``user_id`` together with its own organization.

        Organization, user and membership are inserted in one transaction.
        If a concurrent call wins the race the primary-key conflict rolls the
        whole transaction back (no orphan organization) and the winner's user
        is returned instead.

        An email already owned by a different user raises
        ProvisioningConflictError instead of creating a second account.
        """
        existing = await self.get_user_by_id(user_id)
        if existing is not None:
            return existing

        owner = await self.get_user_by_email(email)
        if owner is not None and owner.id == user_id:
            return owner
        if owner is not None:
            logger.warning(
                "Cannot provision user %s: email %s already belongs to user %s",
                user_id,
                email,
                owner.id,
            )
            raise ProvisioningConflictError(user_id, email)

        organization = Organization(name=name or email, api_key=generate_api_key())
        user = User(id=user_id, email=email, name=name, activated=True)
        membership = UserOrganization(user=user, organization=organization, role="ADMIN")
        self._db.add_all([organization, user, membership])

        try:
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            winner = await self.get_user_by_id(user_id)
            if winner is None:
                if await self.get_user_by_email(email) is not None:
                    logger.warning(
                        "Cannot provision user %s: email %s was taken concurrently", user_id, email
                    )
                    raise ProvisioningConflictError(user_id, email) from exc
                raise
            logger.info("User %s was provisioned concurrently, reusing it", user_id)
            return winner

        logger.info("Provisioned user %s with organization %s", user_id, organization.id)
        return user

    async def get_user_org(self, membership_id: str) -> UserOrganization | None:
        """Load a membership with its user and its organization's full member list."""
        result = await self._db.execute(
            select(UserOrganization)
            .where(UserOrganization.id == membership_id)
            .options(
                selectinload(UserOrganization.user),
                selectinload(UserOrganization.organization).selectinload(Organization.members),
            )
        )
        return result.scalar_one_or_none()

    async def get_orgs_by_user_id(self, user_id: str) -> list[UserOrganization]:
        """Memberships of ``user_id`` (disabled ones included), oldest organization first."""
        result = await self._db.execute(
            select(UserOrganization)
            .join(UserOrganization.organization)
            .where(UserOrganization.user_id == user_id)
            .options(selectinload(UserOrganization.organization))
            .order_by(Organization.created_at, Organization.id)
        )
        return list(result.scalars().all())

    async def update_api_key(self, org_id: str) -> str:
        api_key = generate_api_key()
        await self._db.execute(
            update(Organization).where(Organization.id == org_id).values(api_key=api_key)
        )
        await self._db.commit()
        return api_key


def get_organization_store(db: AsyncSession = Depends(get_db)) -> OrganizationStore:
    return OrganizationStore(db)
