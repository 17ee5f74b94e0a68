"""
Company, supplier profile and supplier invitation routes.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from jobwork.api.deps import get_storage
from jobwork.api.serializers import serialize
from jobwork.core.rbac import CurrentUser, get_current_user, require_supplier
from jobwork.services import lifecycle, queries
from jobwork.services.accounts import (
    CompanyData, SupplierProfileData, save_company, save_supplier_profile,
)
from jobwork.storage import Storage

router = APIRouter(prefix="/api/protected", tags=["Companies"])


@router.post("/companies", status_code=201)
async def create_company(
    data: CompanyData,
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Create the caller's company, or update the one they belong to."""
    return serialize(save_company(storage, current_user, data))


@router.post("/suppliers/profile")
async def upsert_supplier_profile(
    data: SupplierProfileData,
    current_user: CurrentUser = Depends(require_supplier),
    storage: Storage = Depends(get_storage),
):
    return serialize(save_supplier_profile(storage, current_user, data))


@router.get("/suppliers/invites")
async def list_my_invites(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(require_supplier),
    storage: Storage = Depends(get_storage),
):
    """Invitations addressed to the calling supplier, with their RFQs."""
    return [
        dict(serialize(invite), rfq=serialize(rfq))
        for invite, rfq in queries.list_invites(storage, current_user, status=status)
    ]


@router.post("/suppliers/invites/{invite_id}/decline")
async def decline_invite(
    invite_id: str,
    current_user: CurrentUser = Depends(require_supplier),
    storage: Storage = Depends(get_storage),
):
    return serialize(lifecycle.decline_invite(storage, current_user, invite_id))
