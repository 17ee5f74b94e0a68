"""
Order routes shared by buyers, suppliers and admins.

``order_ref`` is either the order id or its ORD- number.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from jobwork.api.deps import get_storage
from jobwork.api.serializers import serialize
from jobwork.core.rbac import CurrentUser, get_current_user, require_buyer
from jobwork.services import lifecycle, queries
from jobwork.storage import Storage

router = APIRouter(prefix="/api/protected/orders", tags=["Orders"])


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


@router.get("")
async def list_orders(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return [serialize(o) for o in queries.list_orders(storage, current_user, status=status)]


@router.get("/{order_ref}")
async def get_order(
    order_ref: str,
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return serialize(queries.get_order(storage, current_user, order_ref))


@router.get("/{order_ref}/updates")
async def list_order_updates(
    order_ref: str,
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return [serialize(u) for u in queries.list_order_updates(storage, current_user, order_ref)]


@router.post("/{order_ref}/cancel")
async def cancel_order(
    order_ref: str,
    data: Optional[CancelOrderRequest] = None,
    current_user: CurrentUser = Depends(require_buyer),
    storage: Storage = Depends(get_storage),
):
    reason = data.reason if data else None
    return serialize(lifecycle.cancel_order(storage, current_user, order_ref, reason=reason))
