"""
Supplier quote routes.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from jobwork.api.deps import get_storage
from jobwork.api.serializers import serialize
from jobwork.core.rbac import CurrentUser, require_supplier
from jobwork.services import lifecycle, queries
from jobwork.services.lifecycle import QuoteCreate
from jobwork.storage import Storage

router = APIRouter(prefix="/api/protected", tags=["Quotes"])


@router.post("/quotes", status_code=201)
async def submit_quote(
    data: QuoteCreate,
    current_user: CurrentUser = Depends(require_supplier),
    storage: Storage = Depends(get_storage),
):
    """Quote against the caller's open invitation for the RFQ."""
    return serialize(lifecycle.submit_quote(storage, current_user, data))


@router.get("/quotes")
async def list_my_quotes(
    rfq_id: Optional[str] = Query(None, alias="rfqId"),
    current_user: CurrentUser = Depends(require_supplier),
    storage: Storage = Depends(get_storage),
):
    return [serialize(q) for q, _, _ in queries.list_quotes(storage, current_user, rfq_id=rfq_id)]
