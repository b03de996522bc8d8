"""
Internal Endpoint — service-to-service callbacks

POST /internal/users  →  create (or fetch) the local user for an SSO identity.

Called by the SSO service right after a registration. Requires a bearer JWT
carrying the ``system-internal`` role.
"""

import logging

from fastapi import APIRouter, Depends

from app.core.organization_store import OrganizationStore, get_organization_store
from app.core.security import verify_internal_token
from app.models.schemas import CreateInternalUserRequest, InternalUserCreated

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_internal_token)])


@router.post(
    "/users",
    response_model=InternalUserCreated,
    status_code=200,
    summary="Provision a local user for an SSO identity",
    description=(
        "Idempotent: an existing user with the same id is returned unchanged. "
        "409 when the email already belongs to a different user."
    ),
)
async def create_user(
    body: CreateInternalUserRequest,
    store: OrganizationStore = Depends(get_organization_store),
) -> InternalUserCreated:
    logger.info("Internal callback: creating local user id=%s, email=%s", body.id, body.email)

    user = await store.create_org_and_user_with_id(body.id, body.email, body.name)

    logger.info("Internal callback: local user ready, userId=%s", user.id)
    return InternalUserCreated(success=True, user_id=user.id)
