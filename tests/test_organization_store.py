from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.core.dashboard_store import DashboardStore
from app.core.exceptions import ProvisioningConflictError
from app.core.organization_store import OrganizationStore
from app.models.db_models import Integration, Organization, Post, User, UserOrganization


async def _count(session, model):
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


# ---------------------------------------------------------------------------
# create_org_and_user_with_id
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_user_with_its_own_organization(session_factory):
    async with session_factory() as session:
        user = await OrganizationStore(session).create_org_and_user_with_id(
            "sso-1", "one@example.com", "One"
        )
        assert user.id == "sso-1"
        assert user.activated is True
        assert user.password is None

    async with session_factory() as session:
        memberships = await OrganizationStore(session).get_orgs_by_user_id("sso-1")
        assert len(memberships) == 1
        assert memberships[0].role == "ADMIN"
        assert memberships[0].disabled is False
        assert memberships[0].organization.name == "One"
        assert memberships[0].organization.api_key


@pytest.mark.asyncio
async def test_create_is_idempotent(session_factory):
    async with session_factory() as session:
        first = await OrganizationStore(session).create_org_and_user_with_id("sso-2", "two@example.com")
    async with session_factory() as session:
        second = await OrganizationStore(session).create_org_and_user_with_id("sso-2", "two@example.com")

    assert first.id == second.id

    async with session_factory() as session:
        assert await _count(session, User) == 1
        assert await _count(session, Organization) == 1
        assert await _count(session, UserOrganization) == 1


class _LateStore(OrganizationStore):
    """Misses the user on the first lookup, as if another request inserted it meanwhile."""

    def __init__(self, db):
        super().__init__(db)
        self.lookups = 0

    async def get_user_by_id(self, user_id):
        self.lookups += 1
        if self.lookups == 1:
            return None
        return await super().get_user_by_id(user_id)

    async def get_user_by_email(self, email):
        if self.lookups == 1:
            return None
        return await super().get_user_by_email(email)


@pytest.mark.asyncio
async def test_concurrent_create_leaves_no_orphan_organization(session_factory):
    async with session_factory() as session:
        await OrganizationStore(session).create_org_and_user_with_id("sso-3", "three@example.com")

    async with session_factory() as session:
        store = _LateStore(session)
        user = await store.create_org_and_user_with_id("sso-3", "three@example.com")
        assert user.id == "sso-3"
        assert store.lookups == 2

    async with session_factory() as session:
        assert await _count(session, User) == 1
        assert await _count(session, Organization) == 1


@pytest.mark.asyncio
async def test_email_owned_by_another_user_is_a_conflict(session_factory):
    async with session_factory() as session:
        await OrganizationStore(session).create_org_and_user_with_id("sso-4", "shared@example.com")

    async with session_factory() as session:
        with pytest.raises(ProvisioningConflictError) as excinfo:
            await OrganizationStore(session).create_org_and_user_with_id("sso-5", "shared@example.com")
        assert excinfo.value.user_id == "sso-5"

    async with session_factory() as session:
        assert await _count(session, User) == 1
        assert await _count(session, Organization) == 1


class _BlindStore(OrganizationStore):
    """Never sees existing rows, so only the database constraint can catch the duplicate."""

    def __init__(self, db):
        super().__init__(db)
        self.email_lookups = 0

    async def get_user_by_email(self, email):
        self.email_lookups += 1
        if self.email_lookups == 1:
            return None
        return await super().get_user_by_email(email)


@pytest.mark.asyncio
async def test_email_taken_concurrently_is_a_conflict(session_factory):
    async with session_factory() as session:
        await OrganizationStore(session).create_org_and_user_with_id("sso-6", "race@example.com")

    async with session_factory() as session:
        with pytest.raises(ProvisioningConflictError):
            await _BlindStore(session).create_org_and_user_with_id("sso-7", "race@example.com")

    async with session_factory() as session:
        assert await _count(session, Organization) == 1


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def _seed_memberships(session):
    now = datetime.now(timezone.utc)
    user = User(id="u-1", email="u1@example.com", activated=True)
    other = User(id="u-2", email="u2@example.com", activated=True)
    newer = Organization(id="org-newer", name="Newer", created_at=now)
    older = Organization(id="org-older", name="Older", created_at=now - timedelta(days=10))
    session.add_all(
        [
            user,
            other,
            newer,
            older,
            UserOrganization(id="m-newer", user=user, organization=newer),
            UserOrganization(id="m-older", user=user, organization=older, disabled=True),
            UserOrganization(id="m-other", user=other, organization=newer),
        ]
    )
    await session.commit()


@pytest.mark.asyncio
async def test_get_orgs_by_user_id_oldest_first(session_factory):
    async with session_factory() as session:
        await _seed_memberships(session)

    async with session_factory() as session:
        memberships = await OrganizationStore(session).get_orgs_by_user_id("u-1")

    assert [m.id for m in memberships] == ["m-older", "m-newer"]
    assert memberships[0].disabled is True
    assert memberships[1].organization.name == "Newer"


@pytest.mark.asyncio
async def test_get_user_org_loads_user_and_members(session_factory):
    async with session_factory() as session:
        await _seed_memberships(session)

    async with session_factory() as session:
        store = OrganizationStore(session)
        membership = await store.get_user_org("m-newer")
        missing = await store.get_user_org("m-missing")

    assert missing is None
    assert membership.user.email == "u1@example.com"
    assert membership.organization.id == "org-newer"
    assert sorted(m.user_id for m in membership.organization.members) == ["u-1", "u-2"]


@pytest.mark.asyncio
async def test_update_api_key(session_factory):
    async with session_factory() as session:
        await _seed_memberships(session)
        api_key = await OrganizationStore(session).update_api_key("org-newer")

    assert len(api_key) == 40

    async with session_factory() as session:
        organization = await session.get(Organization, "org-newer")
        assert organization.api_key == api_key


# ---------------------------------------------------------------------------
# DashboardStore
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_dashboard_store_queries(session_factory):
    now = datetime.now(timezone.utc)
    async with session_factory() as session:
        session.add_all(
            [
                Organization(id="org-a", name="A"),
                Organization(id="org-b", name="B"),
                Integration(id="i-x", organization_id="org-a", provider_identifier="x"),
                Integration(id="i-li", organization_id="org-a", provider_identifier="linkedin"),
                Integration(
                    id="i-off", organization_id="org-a", provider_identifier="x", disabled=True
                ),
                Integration(
                    id="i-gone",
                    organization_id="org-a",
                    provider_identifier="facebook",
                    deleted_at=now,
                ),
                Integration(
                    id="i-blog",
                    organization_id="org-a",
                    provider_identifier="wordpress",
                    type="article",
                ),
                Integration(id="i-b", organization_id="org-b", provider_identifier="x"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                Post(organization_id="org-a", integration_id="i-x", publish_date=now - timedelta(days=1)),
                Post(organization_id="org-a", integration_id="i-li", publish_date=now - timedelta(days=2)),
                Post(organization_id="org-a", integration_id="i-x", publish_date=now - timedelta(days=40)),
                Post(organization_id="org-a", integration_id="i-gone", publish_date=now - timedelta(days=1)),
                Post(organization_id="org-a", integration_id="i-x", publish_date=None),
                Post(
                    organization_id="org-a",
                    integration_id="i-x",
                    publish_date=now - timedelta(days=1),
                    deleted_at=now,
                ),
                Post(organization_id="org-b", integration_id="i-b", publish_date=now - timedelta(days=1)),
            ]
        )
        await session.commit()

    async with session_factory() as session:
        store = DashboardStore(session)
        post_count = await store.get_post_count("org-a")
        channel_count = await store.get_channel_count("org-a")
        integrations = await store.get_active_integrations("org-a")
        trend = await store.get_posts_for_trend("org-a", now - timedelta(days=30))

    assert post_count == 5
    assert channel_count == 2
    assert [i.id for i in integrations] == ["i-li", "i-x"]
    assert sorted(platform for _, platform in trend) == ["linkedin", "x"]
