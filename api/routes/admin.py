"""
api/routes/admin.py -- Admin bootstrap and CNIC allow-list management.

Routes:
  GET    /api/admin/exists                   -- public; has the bootstrap admin been created?
  POST   /api/admin/register                 -- public, first call only; 400 afterwards
  GET    /api/admin/authorized-cnics         -- admin only
  POST   /api/admin/authorized-cnics         -- admin only; 201
  DELETE /api/admin/authorized-cnics/{cnic}  -- admin only; 204, idempotent

Revoking a CNIC removes only the allow-list entry. Sessions already open for
that CNIC stay valid until they expire or the user logs out.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.models import AuthorizeCnicRequest, AuthorizedCnicResponse, RegisterRequest, UserResponse
from auth.dependencies import require_admin
from auth.models import User
from auth.policy import AuthorizationPolicy, mask_cnic
from auth.store import CredentialStore

logger = logging.getLogger("lostfound.api.admin")

router = APIRouter(prefix="/admin")


# ---------------------------------------------------------------------------
# Bootstrap (public)
# ---------------------------------------------------------------------------


@router.get("/exists", response_model=bool)
def admin_exists(request: Request) -> bool:
    policy: AuthorizationPolicy = request.app.state.policy
    return policy.admin_exists()


@router.post("/register", response_model=UserResponse, status_code=201)
def register_admin(request: Request, body: RegisterRequest) -> UserResponse:
    """Create the bootstrap admin. Only the first successful call wins.

    A concurrent loser, or any later call, gets 400 conflict from the store's
    single-row bootstrap constraint.
    """
    policy: AuthorizationPolicy = request.app.state.policy
    admin = policy.register_admin(body.username, body.password, body.cnic)
    return UserResponse.from_user(admin)


# ---------------------------------------------------------------------------
# Allow-list (admin only)
# ---------------------------------------------------------------------------


@router.get("/authorized-cnics", response_model=list[AuthorizedCnicResponse])
def list_authorized_cnics(
    request: Request,
    current_user: User = Depends(require_admin),
) -> list[AuthorizedCnicResponse]:
    store: CredentialStore = request.app.state.credential_store
    return [AuthorizedCnicResponse.from_entry(e) for e in store.list_authorized_cnics()]


@router.post("/authorized-cnics", response_model=AuthorizedCnicResponse, status_code=201)
def authorize_cnic(
    request: Request,
    body: AuthorizeCnicRequest,
    current_user: User = Depends(require_admin),
) -> AuthorizedCnicResponse:
    store: CredentialStore = request.app.state.credential_store
    entry = store.authorize_cnic(body.cnic, added_by=current_user.id)
    logger.info("Admin %s authorized CNIC %s", current_user.id, mask_cnic(body.cnic))
    return AuthorizedCnicResponse.from_entry(entry)


@router.delete("/authorized-cnics/{cnic}", status_code=204)
def revoke_cnic(
    request: Request,
    cnic: str,
    current_user: User = Depends(require_admin),
) -> Response:
    store: CredentialStore = request.app.state.credential_store
    if store.revoke_cnic(cnic):
        logger.info("Admin %s revoked CNIC %s", current_user.id, mask_cnic(cnic))
    return Response(status_code=204)
