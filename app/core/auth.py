"""
Request authentication: credential → user → organization.

    credential ─▶ verify JWT ─▶ load user ─▶ active? ─┬─▶ impersonation (super admin)
                                                      └─▶ organization selection

Tokens come in two shapes:

- SSO tokens carry ``sub`` (the user id) and usually ``email``. A user seen
  for the first time is provisioned on the spot.
- Legacy session tokens are the serialized user object itself.

Every failure is raised internally as AuthenticationError with a reason and
logged; the caller only ever sees ForbiddenError.
"""

import logging
from typing import Any, Protocol

from fastapi import Depends, Request

from app.core.exceptions import (
    AuthenticationError,
    AuthFailureReason,
    ForbiddenError,
    ProvisioningConflictError,
)
from app.core.organization_store import OrganizationStore, get_organization_store
from app.core.security import extract_credential, verify_token
from app.models.db_models import User, UserOrganization
from app.models.schemas import AuthContext, AuthOrganization, AuthUser, OrganizationMember

logger = logging.getLogger(__name__)

IMPERSONATE_KEY = "impersonate"
SHOW_ORG_KEY = "showorg"


class OrganizationRepository(Protocol):
    async def get_user_by_id(self, user_id: str) -> User | None: ...

    async def create_org_and_user_with_id(
        self, user_id: str, email: str, name: str | None = None
    ) -> User: ...

    async def get_user_org(self, membership_id: str) -> UserOrganization | None: ...

    async def get_orgs_by_user_id(self, user_id: str) -> list[UserOrganization]: ...

    async def update_api_key(self, org_id: str) -> str: ...


class AuthResolver:
    def __init__(self, store: OrganizationRepository) -> None:
        self._store = store

    async def resolve(
        self,
        credential: str | None,
        impersonate: str | None = None,
        preferred_org: str | None = None,
    ) -> AuthContext:
        if not credential:
            raise AuthenticationError(AuthFailureReason.MISSING_CREDENTIAL)

        payload = verify_token(credential)
        user = await self._load_user(payload)

        if user is None:
            raise AuthenticationError(AuthFailureReason.USER_NOT_FOUND)
        if not user.activated:
            raise AuthenticationError(AuthFailureReason.USER_NOT_ACTIVATED, f"user {user.id}")

        if user.is_super_admin and impersonate:
            context = await self._impersonate(user, impersonate)
            if context is not None:
                return context

        return await self._select_organization(user, preferred_org)

    async def _load_user(self, payload: dict[str, Any]) -> AuthUser | None:
        subject = payload.get("sub")
        if subject:
            stored = await self._store.get_user_by_id(str(subject))
            if stored is None and payload.get("email"):
                logger.warning(
                    "SSO token valid but local user %s not found, creating lazily", subject
                )
                try:
                    stored = await self._store.create_org_and_user_with_id(
                        str(subject), payload["email"], payload.get("name")
                    )
                except ProvisioningConflictError as exc:
                    raise AuthenticationError(
                        AuthFailureReason.PROVISIONING_CONFLICT, str(exc)
                    ) from exc
            return AuthUser.model_validate(stored) if stored is not None else None

        if not payload.get("id"):
            return None
        # AuthUser has no password field, so the hash in legacy tokens is dropped here.
        return AuthUser.model_validate(payload)

    async def _impersonate(self, admin: AuthUser, membership_id: str) -> AuthContext | None:
        membership = await self._store.get_user_org(membership_id)
        if membership is None:
            logger.warning(
                "Super admin %s asked to impersonate unknown membership %s", admin.id, membership_id
            )
            return None

        target = AuthUser.model_validate(membership.user).model_copy(
            update={"is_super_admin": True}
        )
        organization = membership.organization
        logger.info(
            "Super admin %s impersonating user %s in organization %s",
            admin.id,
            target.id,
            organization.id,
        )
        return AuthContext(
            user=target,
            organization=AuthOrganization(
                id=organization.id,
                name=organization.name,
                api_key=organization.api_key,
                users=[
                    OrganizationMember.model_validate(member)
                    for member in organization.members
                    if member.user_id == target.id
                ],
            ),
            impersonating=True,
        )

    async def _select_organization(self, user: AuthUser, preferred_org: str | None) -> AuthContext:
        memberships = [
            membership
            for membership in await self._store.get_orgs_by_user_id(user.id)
            if not membership.disabled
        ]
        if not memberships:
            raise AuthenticationError(AuthFailureReason.NO_ORGANIZATION, f"user {user.id}")

        selected = next(
            (m for m in memberships if m.organization_id == preferred_org),
            memberships[0],
        )
        organization = selected.organization

        api_key = organization.api_key
        if not api_key:
            api_key = await self._store.update_api_key(organization.id)
            logger.info("Provisioned API key for organization %s", organization.id)

        return AuthContext(
            user=user,
            organization=AuthOrganization(
                id=organization.id,
                name=organization.name,
                api_key=api_key,
                users=[OrganizationMember.model_validate(selected)],
            ),
        )


def _header_or_cookie(request: Request, name: str) -> str | None:
    return request.cookies.get(name) or request.headers.get(name)


async def get_auth_context(
    request: Request,
    store: OrganizationStore = Depends(get_organization_store),
) -> AuthContext:
    """FastAPI dependency: resolves the caller or raises ForbiddenError."""
    resolver = AuthResolver(store)
    try:
        context = await resolver.resolve(
            extract_credential(request),
            impersonate=_header_or_cookie(request, IMPERSONATE_KEY),
            preferred_org=_header_or_cookie(request, SHOW_ORG_KEY),
        )
    except AuthenticationError as exc:
        logger.warning(
            "Auth rejected %s %s: %s", request.method, request.url.path, exc.reason.value
        )
        raise ForbiddenError() from exc
    except Exception as exc:
        logger.exception("Auth lookup failed on %s %s", request.method, request.url.path)
        raise ForbiddenError() from exc

    request.state.user = context.user
    request.state.org = context.organization
    return context
