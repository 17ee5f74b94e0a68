"""
Role-scoped reads.

Each function returns only the slice of data the caller's role may see:
buyers their own records, suppliers what they were invited to or assigned,
admins everything.
"""
from typing import List, Optional, Tuple

from jobwork.core.errors import NotFound, PermissionDenied
from jobwork.core.rbac import CurrentUser
from jobwork.storage import Storage
from jobwork.storage.entities import (
    RFQ, SupplierInvite, Quote, CuratedOffer, Order, ProductionUpdate, User, UserRole,
)


def list_rfqs(storage: Storage, caller: CurrentUser, status: Optional[str] = None) -> List[RFQ]:
    if caller.role == UserRole.BUYER.value:
        return storage.list_rfqs(buyer_id=caller.id, status=status)
    if caller.role == UserRole.SUPPLIER.value:
        invited_ids = [i.rfq_id for i in storage.list_invites(supplier_id=caller.id)]
        return storage.list_rfqs(ids=invited_ids, status=status)
    return storage.list_rfqs(status=status)


def get_rfq(storage: Storage, caller: CurrentUser, rfq_id: str) -> RFQ:
    rfq = storage.get_rfq(rfq_id)
    if rfq is None:
        raise NotFound("RFQ")
    if caller.role == UserRole.BUYER.value and rfq.buyer_id != caller.id:
        raise PermissionDenied("Access denied to this RFQ")
    if caller.role == UserRole.SUPPLIER.value and storage.find_invite(rfq.id, caller.id) is None:
        raise PermissionDenied("Access denied to this RFQ")
    return rfq


def list_invites(storage: Storage, caller: CurrentUser,
                 status: Optional[str] = None) -> List[Tuple[SupplierInvite, Optional[RFQ]]]:
    """A supplier's own invitations, each paired with its RFQ."""
    invites = storage.list_invites(supplier_id=caller.id)
    if status:
        invites = [i for i in invites if i.status == status]
    return [(invite, storage.get_rfq(invite.rfq_id)) for invite in invites]


def list_quotes(storage: Storage, caller: CurrentUser,
                rfq_id: Optional[str] = None) -> List[Tuple[Quote, Optional[RFQ], Optional[User]]]:
    """Quotes with the RFQ they answer and the supplier who sent them."""
    if caller.role == UserRole.SUPPLIER.value:
        quotes = storage.list_quotes(rfq_id=rfq_id, supplier_id=caller.id)
    elif caller.is_admin:
        quotes = storage.list_quotes(rfq_id=rfq_id)
    else:
        raise PermissionDenied("Insufficient permissions")

    rfqs, suppliers = {}, {}
    result = []
    for quote in quotes:
        if quote.rfq_id not in rfqs:
            rfqs[quote.rfq_id] = storage.get_rfq(quote.rfq_id)
        if quote.supplier_id not in suppliers:
            suppliers[quote.supplier_id] = storage.get_user(quote.supplier_id)
        result.append((quote, rfqs[quote.rfq_id], suppliers[quote.supplier_id]))
    return result


def list_offers(storage: Storage, caller: CurrentUser,
                rfq_id: Optional[str] = None) -> List[CuratedOffer]:
    """Buyers see published offers on their own RFQs; admins see drafts too."""
    if caller.is_admin:
        return storage.list_offers(rfq_ids=[rfq_id] if rfq_id else None)
    if caller.role != UserRole.BUYER.value:
        raise PermissionDenied("Insufficient permissions")

    own_ids = [r.id for r in storage.list_rfqs(buyer_id=caller.id)]
    if rfq_id:
        own_ids = [i for i in own_ids if i == rfq_id]
    return [o for o in storage.list_offers(rfq_ids=own_ids) if o.published_at is not None]


def list_orders(storage: Storage, caller: CurrentUser, status: Optional[str] = None) -> List[Order]:
    if caller.role == UserRole.BUYER.value:
        return storage.list_orders(buyer_id=caller.id, status=status)
    if caller.role == UserRole.SUPPLIER.value:
        return storage.list_orders(supplier_id=caller.id, status=status)
    return storage.list_orders(status=status)


def get_order(storage: Storage, caller: CurrentUser, order_ref: str) -> Order:
    order = storage.get_order(order_ref)
    if order is None:
        raise NotFound("Order")
    if caller.role == UserRole.BUYER.value and order.buyer_id != caller.id:
        raise PermissionDenied("Access denied to this order")
    if caller.role == UserRole.SUPPLIER.value and order.supplier_id != caller.id:
        raise PermissionDenied("Access denied to this order")
    return order


def list_order_updates(storage: Storage, caller: CurrentUser,
                       order_ref: str) -> List[ProductionUpdate]:
    order = get_order(storage, caller, order_ref)
    return storage.list_production_updates(order.id)
