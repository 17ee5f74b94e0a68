"""
RFQ routes for buyers, plus the buyer's view of curated offers.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from jobwork.api.deps import get_storage
from jobwork.api.serializers import serialize, serialize_offer_for_buyer
from jobwork.core.rbac import (
    CurrentUser, get_current_user, require_buyer, require_buyer_or_admin,
)
from jobwork.services import lifecycle, queries
from jobwork.services.lifecycle import RFQCreate
from jobwork.storage import Storage

router = APIRouter(prefix="/api/protected", tags=["RFQs"])


# ============= SCHEMAS =============

class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class AcceptOfferRequest(BaseModel):
    payment_ref: Optional[str] = Field(None, max_length=255, alias="paymentRef")

    model_config = {"populate_by_name": True}


# ============= RFQS =============

@router.post("/rfqs", status_code=201)
async def create_rfq(
    data: RFQCreate,
    current_user: CurrentUser = Depends(require_buyer),
    storage: Storage = Depends(get_storage),
):
    """Create a draft RFQ. The owner is always the caller."""
    return serialize(lifecycle.create_rfq(storage, current_user, data))


@router.get("/rfqs")
async def list_rfqs(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return [serialize(r) for r in queries.list_rfqs(storage, current_user, status=status)]


@router.get("/rfqs/{rfq_id}")
async def get_rfq(
    rfq_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return serialize(queries.get_rfq(storage, current_user, rfq_id))


@router.post("/rfqs/{rfq_id}/submit")
async def submit_rfq(
    rfq_id: str,
    current_user: CurrentUser = Depends(require_buyer),
    storage: Storage = Depends(get_storage),
):
    return serialize(lifecycle.submit_rfq(storage, current_user, rfq_id))


@router.post("/rfqs/{rfq_id}/cancel")
async def cancel_rfq(
    rfq_id: str,
    data: Optional[CancelRequest] = None,
    current_user: CurrentUser = Depends(require_buyer_or_admin),
    storage: Storage = Depends(get_storage),
):
    reason = data.reason if data else None
    return serialize(lifecycle.cancel_rfq(storage, current_user, rfq_id, reason=reason))


# ============= BUYER OFFERS =============

@router.get("/buyer/offers")
async def list_buyer_offers(
    rfq_id: Optional[str] = Query(None, alias="rfqId"),
    current_user: CurrentUser = Depends(require_buyer),
    storage: Storage = Depends(get_storage),
):
    """Published offers on the caller's own RFQs."""
    offers = queries.list_offers(storage, current_user, rfq_id=rfq_id)
    return [serialize_offer_for_buyer(o) for o in offers]


@router.post("/buyer/offers/{offer_id}/accept", status_code=201)
async def accept_offer(
    offer_id: str,
    data: Optional[AcceptOfferRequest] = None,
    current_user: CurrentUser = Depends(require_buyer),
    storage: Storage = Depends(get_storage),
):
    payment_ref = data.payment_ref if data else None
    order = lifecycle.accept_offer(storage, current_user, offer_id, payment_ref=payment_ref)
    return serialize(order)
