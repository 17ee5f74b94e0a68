"""
Admin API routes - supplier matching, offer curation and order operations.
Requires the admin role for all endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from jobwork.api.deps import get_storage
from jobwork.api.serializers import serialize, serialize_user
from jobwork.core.rbac import CurrentUser, require_admin
from jobwork.services import lifecycle, queries
from jobwork.services.accounts import verify_supplier
from jobwork.services.lifecycle import InviteCreate, OfferCreate
from jobwork.services.metrics import admin_metrics
from jobwork.storage import Storage
from jobwork.storage.entities import OrderStatus, RFQStatus, VerifiedStatus

router = APIRouter(prefix="/api/protected/admin", tags=["Admin"])


# ============= SCHEMAS =============

class RFQStatusUpdate(BaseModel):
    status: RFQStatus
    reason: Optional[str] = Field(None, max_length=1000)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class VerifySupplierRequest(BaseModel):
    verified_status: VerifiedStatus = Field(..., alias="verifiedStatus")

    model_config = {"populate_by_name": True}


class RecordAdvanceRequest(BaseModel):
    payment_ref: Optional[str] = Field(None, max_length=255, alias="paymentRef")

    model_config = {"populate_by_name": True}


class ProductionUpdateRequest(BaseModel):
    stage: str = Field(..., min_length=1, max_length=100)
    detail: Optional[str] = Field(None, max_length=2000)


# ============= SUPPLIERS & INVITES =============

@router.post("/invite", status_code=201)
async def invite_suppliers(
    data: InviteCreate,
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    """Invite suppliers to quote. Already-invited suppliers are skipped."""
    result = lifecycle.invite_suppliers(storage, current_user, data)
    return {
        "rfq": serialize(result["rfq"]),
        "invites": [serialize(i) for i in result["invites"]],
        "skipped": result["skipped"],
    }


@router.get("/suppliers")
async def list_suppliers(
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return [
        {"user": serialize_user(user), "company": serialize(company), "profile": serialize(profile)}
        for user, company, profile in storage.list_suppliers()
    ]


@router.post("/suppliers/{company_id}/verify")
async def verify_supplier_company(
    company_id: str,
    data: VerifySupplierRequest,
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return serialize(verify_supplier(storage, current_user, company_id, data.verified_status))


# ============= QUOTES & OFFERS =============

@router.get("/quotes")
async def list_all_quotes(
    rfq_id: Optional[str] = Query(None, alias="rfqId"),
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    """All quotes, each with a summary of its RFQ and of the supplier."""
    companies = {}
    result = []
    for quote, rfq, supplier in queries.list_quotes(storage, current_user, rfq_id=rfq_id):
        rfq_summary = None
        if rfq is not None:
            rfq_summary = {"id": rfq.id, "rfq_number": rfq.rfq_number, "title": rfq.title,
                           "status": rfq.status}
        supplier_summary = None
        if supplier is not None:
            company_id = supplier.company_id
            if company_id and company_id not in companies:
                companies[company_id] = storage.get_company(company_id)
            company = companies.get(company_id)
            supplier_summary = {"id": supplier.id, "name": supplier.name, "email": supplier.email,
                                "company_name": company.name if company else None}
        result.append(dict(serialize(quote), rfq=rfq_summary, supplier=supplier_summary))
    return result


@router.post("/curated-offers", status_code=201)
async def compose_offer(
    data: OfferCreate,
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return serialize(lifecycle.compose_offer(storage, current_user, data))


@router.get("/offers")
async def list_all_offers(
    rfq_id: Optional[str] = Query(None, alias="rfqId"),
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return [serialize(o) for o in queries.list_offers(storage, current_user, rfq_id=rfq_id)]


@router.post("/offers/{offer_id}/publish")
async def publish_offer(
    offer_id: str,
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    result = lifecycle.publish_offer(storage, current_user, offer_id)
    return {"offer": serialize(result["offer"]), "already_published": result["already_published"]}


# ============= RFQS =============

@router.patch("/rfqs/{rfq_id}/status")
async def override_rfq_status(
    rfq_id: str,
    data: RFQStatusUpdate,
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    """Force an RFQ status. Terminal RFQs cannot be reopened."""
    rfq = lifecycle.override_rfq_status(storage, current_user, rfq_id, data.status, data.reason)
    return serialize(rfq)


# ============= ORDERS =============

@router.get("/orders")
async def list_all_orders(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return [serialize(o) for o in queries.list_orders(storage, current_user, status=status)]


@router.post("/orders/{order_ref}/record-advance")
async def record_advance(
    order_ref: str,
    data: Optional[RecordAdvanceRequest] = None,
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    payment_ref = data.payment_ref if data else None
    return serialize(lifecycle.record_advance(storage, current_user, order_ref, payment_ref))


@router.post("/orders/{order_ref}/confirm")
async def confirm_order(
    order_ref: str,
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return serialize(lifecycle.confirm_order(storage, current_user, order_ref))


@router.put("/orders/{order_ref}/status")
async def set_order_status(
    order_ref: str,
    data: OrderStatusUpdate,
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return serialize(lifecycle.set_order_status(storage, current_user, order_ref, data.status))


@router.post("/orders/{order_ref}/updates", status_code=201)
async def add_production_update(
    order_ref: str,
    data: ProductionUpdateRequest,
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    update = lifecycle.add_production_update(storage, current_user, order_ref,
                                             data.stage, data.detail)
    return serialize(update)


@router.post("/orders/{order_ref}/recalculate")
async def recalculate_order_total(
    order_ref: str,
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    """Re-derive the order total from its offer's unit price and quantity."""
    result = lifecycle.recalculate_order_total(storage, current_user, order_ref)
    return {
        "order": serialize(result["order"]),
        "previous_amount": result["previous_amount"],
        "new_amount": result["new_amount"],
        "changed": result["changed"],
    }


# ============= REPORTING =============

@router.get("/metrics")
async def get_metrics(
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    return admin_metrics(storage)


@router.get("/audit-logs")
async def list_audit_logs(
    entity_type: Optional[str] = Query(None, alias="entityType"),
    entity_id: Optional[str] = Query(None, alias="entityId"),
    limit: int = Query(100, ge=1, le=1000),
    current_user: CurrentUser = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    logs = storage.list_audit_logs(entity_type=entity_type, entity_id=entity_id)
    return [serialize(entry) for entry in logs[:limit]]
