"""
RFQ and order lifecycle.

Holds the two status state machines and every role-gated operation that
moves them: submission, invitations, quoting, offer curation and
publication, acceptance, and order fulfilment. Each operation runs inside a
storage transaction, writes an audit entry, and emits notifications.

Owner fields (buyer, supplier, admin) always come from the ``caller``
argument and never from command data.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from jobwork.core.config import settings
from jobwork.core.errors import (
    Conflict, InvalidTransition, NotFound, PermissionDenied, ValidationFailed,
)
from jobwork.core.logging import get_logger
from jobwork.core.rbac import CurrentUser
from jobwork.services.audit import record_audit
from jobwork.services.notifications import notify, notify_admins
from jobwork.storage import Storage
from jobwork.storage.entities import (
    RFQ, SupplierInvite, Quote, CuratedOffer, Order, ProductionUpdate,
    RFQStatus, InviteStatus, QuoteStatus, OrderStatus, NotificationType, UserRole,
    utcnow,
)

logger = get_logger(__name__)

CENT = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


# ============= STATE MACHINES =============

RFQ_TERMINAL = {RFQStatus.COMPLETED.value, RFQStatus.CANCELLED.value}

RFQ_TRANSITIONS: Dict[str, Set[str]] = {
    RFQStatus.DRAFT.value: {RFQStatus.SUBMITTED.value},
    RFQStatus.SUBMITTED.value: {RFQStatus.UNDER_REVIEW.value, RFQStatus.INVITED.value},
    RFQStatus.UNDER_REVIEW.value: {RFQStatus.INVITED.value},
    RFQStatus.INVITED.value: {RFQStatus.INVITED.value, RFQStatus.QUOTED.value},
    RFQStatus.QUOTED.value: {RFQStatus.OFFERS_PUBLISHED.value},
    RFQStatus.OFFERS_PUBLISHED.value: {RFQStatus.ACCEPTED.value},
    RFQStatus.ACCEPTED.value: {RFQStatus.COMPLETED.value},
    RFQStatus.COMPLETED.value: set(),
    RFQStatus.CANCELLED.value: set(),
}

ORDER_TERMINAL = {OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value}

ORDER_TRANSITIONS: Dict[str, Set[str]] = {
    OrderStatus.CREATED.value: {OrderStatus.DEPOSIT_PAID.value},
    OrderStatus.DEPOSIT_PAID.value: {OrderStatus.CONFIRMED.value},
    OrderStatus.CONFIRMED.value: {OrderStatus.PRODUCTION.value},
    OrderStatus.PRODUCTION.value: {OrderStatus.PRODUCTION.value, OrderStatus.QUALITY_CHECK.value},
    OrderStatus.QUALITY_CHECK.value: {OrderStatus.PRODUCTION.value, OrderStatus.SHIPPED.value},
    OrderStatus.SHIPPED.value: {OrderStatus.DELIVERED.value},
    OrderStatus.DELIVERED.value: set(),
    OrderStatus.CANCELLED.value: set(),
}

INVITABLE_RFQ_STATUSES = {
    RFQStatus.SUBMITTED.value,
    RFQStatus.UNDER_REVIEW.value,
    RFQStatus.INVITED.value,
    RFQStatus.QUOTED.value,
}

QUOTABLE_RFQ_STATUSES = {RFQStatus.INVITED.value, RFQStatus.QUOTED.value}

OFFERABLE_RFQ_STATUSES = {RFQStatus.QUOTED.value, RFQStatus.OFFERS_PUBLISHED.value}

MAX_OFFER_VALIDITY_DAYS = 365


def can_transition_rfq(current: str, target: str) -> bool:
    if current in RFQ_TERMINAL:
        return False
    # Cancellation is open from every non-terminal status
    if target == RFQStatus.CANCELLED.value:
        return True
    return target in RFQ_TRANSITIONS.get(current, set())


def can_transition_order(current: str, target: str) -> bool:
    if current in ORDER_TERMINAL:
        return False
    # Shipping and cancellation are open from every non-terminal status
    if target in (OrderStatus.SHIPPED.value, OrderStatus.CANCELLED.value):
        return current != target
    return target in ORDER_TRANSITIONS.get(current, set())


def _move_rfq(storage: Storage, rfq: RFQ, target: RFQStatus) -> RFQ:
    if not can_transition_rfq(rfq.status, target.value):
        raise InvalidTransition("RFQ", rfq.status, target.value)
    if rfq.status == target.value:
        return rfq
    return storage.update_rfq_status(rfq, target.value)


def _move_order(storage: Storage, order: Order, target: OrderStatus) -> Order:
    if not can_transition_order(order.status, target.value):
        raise InvalidTransition("order", order.status, target.value)
    order.status = target.value
    return storage.save_order(order)


def _require_admin(caller: CurrentUser) -> None:
    if caller.role != UserRole.ADMIN.value:
        raise PermissionDenied("Insufficient permissions")


def _require_owner(caller: CurrentUser, rfq: RFQ) -> None:
    if rfq.buyer_id != caller.id:
        raise PermissionDenied("You do not own this RFQ")


def _refuse_cancel_with_live_order(storage: Storage, rfq: RFQ) -> None:
    live = [o for o in storage.list_orders(rfq_id=rfq.id) if o.status != OrderStatus.CANCELLED.value]
    if live:
        raise InvalidTransition("RFQ", rfq.status, RFQStatus.CANCELLED.value,
                                f"order {live[0].order_number} is still open; cancel it first")


# ============= COMMANDS =============

class CommandModel(BaseModel):
    """Accepts camelCase or snake_case keys; unknown keys are dropped."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RFQCreate(CommandModel):
    """New RFQ. Deliberately has no owner field."""
    title: str = Field(..., min_length=1, max_length=255)
    details: dict
    nda_required: bool = False
    confidential: bool = False
    budget_range: Optional[dict] = None

    @field_validator("details")
    @classmethod
    def validate_items(cls, v: dict) -> dict:
        items = v.get("items")
        if not isinstance(items, list) or not items:
            raise ValueError("details.items must contain at least one item")
        for index, item in enumerate(items):
            if not isinstance(item, dict) or not str(item.get("skuCode") or "").strip():
                raise ValueError(f"details.items[{index}].skuCode is required")
        return v


class InviteCreate(CommandModel):
    rfq_id: str
    supplier_ids: List[str] = Field(..., min_length=1)


class QuoteCreate(CommandModel):
    rfq_id: str
    unit_price: Decimal = Field(..., gt=0)
    lead_time_days: int = Field(..., gt=0)
    validity_days: Optional[int] = Field(None, gt=0)
    tooling_cost: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    terms: dict = Field(default_factory=dict)


class OfferCreate(CommandModel):
    rfq_id: str
    title: str = Field(..., min_length=1, max_length=255)
    unit_price: Decimal = Field(..., gt=0)
    quantity: int = Field(..., gt=0)
    lead_time_days: int = Field(..., gt=0)
    warranty: str = Field(..., min_length=1)
    advance_payment_percentage: int = Field(settings.DEFAULT_DEPOSIT_PERCENT, ge=0, le=100)
    payment_terms: Optional[str] = None
    payment_link: Optional[str] = None
    payment_deadline: Optional[datetime] = None
    details: dict = Field(default_factory=dict)
    quote_ids: List[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = None

    @field_validator("details")
    @classmethod
    def validate_validity_days(cls, v: dict) -> dict:
        days = v.get("validityDays")
        if days is None:
            return v
        if isinstance(days, bool) or not isinstance(days, int) or not 0 < days <= MAX_OFFER_VALIDITY_DAYS:
            raise ValueError(
                f"details.validityDays must be a whole number of days from 1 to {MAX_OFFER_VALIDITY_DAYS}")
        return v

    @field_validator("payment_deadline", "expires_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


# ============= RFQ =============

def create_rfq(storage: Storage, caller: CurrentUser, data: RFQCreate) -> RFQ:
    """Create a draft RFQ owned by the caller."""
    with storage.transaction():
        rfq = storage.create_rfq(RFQ(
            rfq_number=storage.next_rfq_number(),
            buyer_id=caller.id,
            title=data.title,
            details=data.details,
            nda_required=data.nda_required,
            confidential=data.confidential,
            budget_range=data.budget_range,
        ))
        record_audit(storage, "rfq_created", caller, "rfq", rfq.id,
                     {"rfq_number": rfq.rfq_number})
    logger.info(f"RFQ {rfq.rfq_number} created by {caller.id}")
    return rfq


def submit_rfq(storage: Storage, caller: CurrentUser, rfq_id: str) -> RFQ:
    with storage.transaction():
        rfq = storage.require(RFQ, rfq_id, lock=True)
        _require_owner(caller, rfq)
        rfq = _move_rfq(storage, rfq, RFQStatus.SUBMITTED)
        record_audit(storage, "rfq_submitted", caller, "rfq", rfq.id)
        notify_admins(
            storage, NotificationType.RFQ_SUBMITTED,
            "New RFQ submitted", f"RFQ {rfq.rfq_number} ({rfq.title}) awaits review",
            "rfq", rfq.id,
        )
    return rfq


def cancel_rfq(storage: Storage, caller: CurrentUser, rfq_id: str,
               reason: Optional[str] = None) -> RFQ:
    with storage.transaction():
        rfq = storage.require(RFQ, rfq_id, lock=True)
        if not caller.is_admin:
            _require_owner(caller, rfq)
        _refuse_cancel_with_live_order(storage, rfq)
        rfq = _move_rfq(storage, rfq, RFQStatus.CANCELLED)
        record_audit(storage, "rfq_cancelled", caller, "rfq", rfq.id, {"reason": reason})
        if caller.id != rfq.buyer_id:
            notify(storage, rfq.buyer_id, NotificationType.RFQ_STATUS_CHANGE,
                   "RFQ cancelled", f"RFQ {rfq.rfq_number} was cancelled", "rfq", rfq.id)
    return rfq


def override_rfq_status(storage: Storage, caller: CurrentUser, rfq_id: str,
                        status: RFQStatus, reason: Optional[str] = None) -> RFQ:
    """Admin force of an RFQ status, bypassing the transition table."""
    _require_admin(caller)
    with storage.transaction():
        rfq = storage.require(RFQ, rfq_id, lock=True)
        if rfq.status in RFQ_TERMINAL:
            raise InvalidTransition("RFQ", rfq.status, status.value, "status is terminal")
        if status == RFQStatus.CANCELLED:
            _refuse_cancel_with_live_order(storage, rfq)
        previous = rfq.status
        rfq = storage.update_rfq_status(rfq, status.value)
        record_audit(storage, "rfq_status_override", caller, "rfq", rfq.id,
                     {"from": previous, "to": status.value, "reason": reason})
        notify(storage, rfq.buyer_id, NotificationType.RFQ_STATUS_CHANGE,
               "RFQ status updated",
               f"RFQ {rfq.rfq_number} moved from {previous} to {status.value}", "rfq", rfq.id)
    logger.info(f"RFQ {rfq.rfq_number} forced {previous} -> {status.value} by {caller.id}")
    return rfq


# ============= INVITES =============

def invite_suppliers(storage: Storage, caller: CurrentUser, data: InviteCreate) -> dict:
    """
    Invite suppliers to quote on an RFQ.

    Suppliers already invited are reported under ``skipped``.
    """
    _require_admin(caller)
    created: List[SupplierInvite] = []
    skipped: List[str] = []

    with storage.transaction():
        rfq = storage.require(RFQ, data.rfq_id, lock=True)
        if rfq.status not in INVITABLE_RFQ_STATUSES:
            raise InvalidTransition("RFQ", rfq.status, RFQStatus.INVITED.value,
                                    "suppliers cannot be invited at this stage")

        for supplier_id in dict.fromkeys(data.supplier_ids):
            supplier = storage.get_user(supplier_id)
            if supplier is None or supplier.role != UserRole.SUPPLIER.value:
                raise ValidationFailed.for_field(
                    "supplierIds", f"{supplier_id} is not a registered supplier")
            if storage.find_invite(rfq.id, supplier_id) is not None:
                skipped.append(supplier_id)
                continue

            now = utcnow()
            invite = storage.create_invite(SupplierInvite(
                rfq_id=rfq.id,
                supplier_id=supplier_id,
                invited_by=caller.id,
                invited_at=now,
                response_deadline=now + timedelta(days=settings.INVITE_RESPONSE_DAYS),
            ))
            created.append(invite)
            notify(storage, supplier_id, NotificationType.SUPPLIER_INVITATION,
                   "New RFQ invitation",
                   f"You are invited to quote on {rfq.rfq_number}: {rfq.title}",
                   "rfq", rfq.id)

        # A quoted RFQ stays quoted when more suppliers are added
        if created and rfq.status != RFQStatus.QUOTED.value:
            rfq = _move_rfq(storage, rfq, RFQStatus.INVITED)

        record_audit(storage, "suppliers_invited", caller, "rfq", rfq.id,
                     {"invited": [i.supplier_id for i in created], "skipped": skipped})

    return {"rfq": rfq, "invites": created, "skipped": skipped}


def decline_invite(storage: Storage, caller: CurrentUser, invite_id: str) -> SupplierInvite:
    with storage.transaction():
        invite = storage.require(SupplierInvite, invite_id, lock=True)
        if invite.supplier_id != caller.id:
            raise PermissionDenied("This invitation is not addressed to you")
        if invite.status != InviteStatus.INVITED.value:
            raise InvalidTransition("invite", invite.status, InviteStatus.DECLINED.value)
        invite = storage.update_invite_status(invite, InviteStatus.DECLINED.value)
        record_audit(storage, "invite_declined", caller, "invite", invite.id,
                     {"rfq_id": invite.rfq_id})
    return invite


# ============= QUOTES =============

def submit_quote(storage: Storage, caller: CurrentUser, data: QuoteCreate) -> Quote:
    """
    Submit the caller's quote against their open invitation.

    Invite and RFQ are re-read under lock so two concurrent submissions for
    the same invitation cannot both succeed.
    """
    with storage.transaction():
        rfq = storage.require(RFQ, data.rfq_id, lock=True)
        found = storage.find_invite(rfq.id, caller.id)
        if found is None:
            raise PermissionDenied("You have not been invited to quote on this RFQ")
        invite = storage.require(SupplierInvite, found.id, lock=True)

        if invite.status != InviteStatus.INVITED.value:
            raise InvalidTransition("invite", invite.status, InviteStatus.RESPONDED.value)
        if invite.response_deadline < utcnow():
            raise ValidationFailed.for_field("rfqId", "Invitation has expired")
        if rfq.status not in QUOTABLE_RFQ_STATUSES:
            raise InvalidTransition("RFQ", rfq.status, RFQStatus.QUOTED.value,
                                    "RFQ is not accepting quotes")

        quote = storage.create_quote(Quote(
            rfq_id=rfq.id,
            supplier_id=caller.id,
            invite_id=invite.id,
            unit_price=money(data.unit_price),
            lead_time_days=data.lead_time_days,
            validity_days=data.validity_days,
            tooling_cost=money(data.tooling_cost) if data.tooling_cost is not None else None,
            notes=data.notes,
            terms=data.terms,
        ))
        storage.update_invite_status(invite, InviteStatus.RESPONDED.value)
        if rfq.status == RFQStatus.INVITED.value:
            _move_rfq(storage, rfq, RFQStatus.QUOTED)

        record_audit(storage, "quote_submitted", caller, "quote", quote.id,
                     {"rfq_id": rfq.id, "unit_price": str(quote.unit_price)})
        notify_admins(storage, NotificationType.QUOTE_RECEIVED, "Quote received",
                      f"A supplier quoted on {rfq.rfq_number}", "quote", quote.id)
    return quote


# ============= CURATED OFFERS =============

def compose_offer(storage: Storage, caller: CurrentUser, data: OfferCreate) -> CuratedOffer:
    """Build a draft offer from the admin's curation of an RFQ's quotes."""
    _require_admin(caller)
    with storage.transaction():
        rfq = storage.require(RFQ, data.rfq_id)
        if rfq.status not in OFFERABLE_RFQ_STATUSES:
            raise InvalidTransition("RFQ", rfq.status, RFQStatus.OFFERS_PUBLISHED.value,
                                    "offers need at least one quote")

        quotes = []
        for quote_id in data.quote_ids:
            quote = storage.get_quote(quote_id)
            if quote is None or quote.rfq_id != rfq.id:
                raise ValidationFailed.for_field(
                    "quoteIds", f"Quote {quote_id} does not belong to this RFQ")
            quotes.append(quote)

        total = money(data.unit_price * data.quantity)
        advance = money(total * data.advance_payment_percentage / Decimal(100))
        indicators = {"quotesUsed": len(quotes)}
        if quotes:
            average = sum(q.unit_price for q in quotes) / len(quotes)
            indicators["averagePrice"] = float(money(average))

        offer = storage.create_offer(CuratedOffer(
            rfq_id=rfq.id,
            admin_id=caller.id,
            title=data.title,
            unit_price=money(data.unit_price),
            quantity=data.quantity,
            total_price=total,
            lead_time_days=data.lead_time_days,
            warranty=data.warranty,
            advance_payment_percentage=data.advance_payment_percentage,
            advance_payment_amount=advance,
            final_payment_amount=total - advance,
            payment_terms=data.payment_terms,
            payment_link=data.payment_link,
            payment_deadline=data.payment_deadline,
            details=data.details,
            supplier_indicators=indicators,
            quote_ids=[q.id for q in quotes],
            expires_at=data.expires_at,
        ))
        record_audit(storage, "offer_composed", caller, "offer", offer.id,
                     {"rfq_id": rfq.id, "total_price": str(total)})
    return offer


def publish_offer(storage: Storage, caller: CurrentUser, offer_id: str) -> dict:
    """
    Make an offer visible to the buyer.

    Publishing twice is a successful no-op reported as ``already_published``.
    """
    _require_admin(caller)
    with storage.transaction():
        offer = storage.require(CuratedOffer, offer_id, lock=True)
        if offer.published_at is not None:
            return {"offer": offer, "already_published": True}

        rfq = storage.require(RFQ, offer.rfq_id, lock=True)
        if rfq.status not in OFFERABLE_RFQ_STATUSES:
            raise InvalidTransition("RFQ", rfq.status, RFQStatus.OFFERS_PUBLISHED.value)

        now = utcnow()
        offer.published_at = now
        validity_days = offer.details.get("validityDays")
        if offer.expires_at is None and validity_days:
            offer.expires_at = now + timedelta(days=validity_days)
        offer = storage.save_offer(offer)

        if rfq.status == RFQStatus.QUOTED.value:
            rfq = _move_rfq(storage, rfq, RFQStatus.OFFERS_PUBLISHED)

        record_audit(storage, "offer_published", caller, "offer", offer.id,
                     {"rfq_id": rfq.id})
        notify(storage, rfq.buyer_id, NotificationType.OFFER_PUBLISHED,
               "New offer available",
               f"An offer for {rfq.rfq_number} is ready for your review", "offer", offer.id)
    return {"offer": offer, "already_published": False}


def accept_offer(storage: Storage, caller: CurrentUser, offer_id: str,
                 payment_ref: Optional[str] = None) -> Order:
    """Accept a published offer and open exactly one order for it."""
    with storage.transaction():
        offer = storage.get_offer(offer_id, lock=True)
        # Drafts are invisible to buyers
        if offer is None or offer.published_at is None:
            raise NotFound("Offer")
        rfq = storage.require(RFQ, offer.rfq_id, lock=True)
        _require_owner(caller, rfq)

        if storage.list_orders(offer_id=offer.id):
            raise Conflict("This offer has already been accepted")
        if offer.expires_at is not None and offer.expires_at < utcnow():
            raise ValidationFailed.for_field("offerId", "Offer has expired")
        if rfq.status != RFQStatus.OFFERS_PUBLISHED.value:
            raise InvalidTransition("RFQ", rfq.status, RFQStatus.ACCEPTED.value)

        used_quotes = [q for q in storage.list_quotes(rfq_id=rfq.id) if q.id in offer.quote_ids]
        supplier_ids = {q.supplier_id for q in used_quotes}

        order = storage.create_order(Order(
            order_number=storage.next_order_number(),
            rfq_id=rfq.id,
            curated_offer_id=offer.id,
            buyer_id=caller.id,
            admin_id=offer.admin_id,
            supplier_id=supplier_ids.pop() if len(supplier_ids) == 1 else None,
            total_amount=money(offer.unit_price * offer.quantity),
            deposit_percent=offer.advance_payment_percentage,
            payment_ref=payment_ref,
        ))

        for quote in storage.list_quotes(rfq_id=rfq.id):
            target = QuoteStatus.ACCEPTED if quote.id in offer.quote_ids else QuoteStatus.REJECTED
            if quote.status != target.value:
                storage.update_quote_status(quote, target.value)

        _move_rfq(storage, rfq, RFQStatus.ACCEPTED)
        record_audit(storage, "offer_accepted", caller, "order", order.id,
                     {"offer_id": offer.id, "order_number": order.order_number,
                      "total_amount": str(order.total_amount)})
        notify(storage, caller.id, NotificationType.ORDER_CREATED, "Order created",
               f"Order {order.order_number} was created for {rfq.rfq_number}",
               "order", order.id)
        notify_admins(storage, NotificationType.ORDER_CREATED, "Order created",
                      f"Buyer accepted an offer on {rfq.rfq_number}: order {order.order_number}",
                      "order", order.id)
    logger.info(f"Order {order.order_number} created from offer {offer.id}")
    return order


# ============= ORDERS =============

def _load_order(storage: Storage, order_ref: str) -> Order:
    order = storage.get_order(order_ref, lock=True)
    if order is None:
        raise NotFound("Order")
    return order


def _order_changed(storage: Storage, caller: CurrentUser, order: Order, previous: str,
                   action: str, details: Optional[dict] = None) -> None:
    record_audit(storage, action, caller, "order", order.id,
                 dict({"from": previous, "to": order.status}, **(details or {})))
    if caller.id != order.buyer_id:
        notify(storage, order.buyer_id, NotificationType.ORDER_STATUS_CHANGE,
               "Order status updated",
               f"Order {order.order_number} is now {order.status}", "order", order.id)
    if order.status == OrderStatus.DELIVERED.value:
        rfq = storage.require(RFQ, order.rfq_id, lock=True)
        if can_transition_rfq(rfq.status, RFQStatus.COMPLETED.value):
            storage.update_rfq_status(rfq, RFQStatus.COMPLETED.value)


def record_advance(storage: Storage, caller: CurrentUser, order_ref: str,
                   payment_ref: Optional[str] = None) -> Order:
    """Record the buyer's deposit: total x deposit percent, to the cent."""
    _require_admin(caller)
    with storage.transaction():
        order = _load_order(storage, order_ref)
        previous = order.status
        if not can_transition_order(previous, OrderStatus.DEPOSIT_PAID.value):
            raise InvalidTransition("order", previous, OrderStatus.DEPOSIT_PAID.value)
        order.advance_payment = money(order.total_amount * order.deposit_percent / Decimal(100))
        order.deposit_paid = True
        if payment_ref:
            order.payment_ref = payment_ref
        order = _move_order(storage, order, OrderStatus.DEPOSIT_PAID)
        _order_changed(storage, caller, order, previous, "order_advance_recorded",
                       {"advance_payment": str(order.advance_payment)})
    return order


def confirm_order(storage: Storage, caller: CurrentUser, order_ref: str) -> Order:
    _require_admin(caller)
    with storage.transaction():
        order = _load_order(storage, order_ref)
        previous = order.status
        order = _move_order(storage, order, OrderStatus.CONFIRMED)
        _order_changed(storage, caller, order, previous, "order_confirmed")
    return order


def add_production_update(storage: Storage, caller: CurrentUser, order_ref: str,
                          stage: str, detail: Optional[str] = None) -> ProductionUpdate:
    """Append to the production trail; the first update starts production."""
    _require_admin(caller)
    with storage.transaction():
        order = _load_order(storage, order_ref)
        if order.status not in (OrderStatus.CONFIRMED.value, OrderStatus.PRODUCTION.value):
            raise InvalidTransition("order", order.status, OrderStatus.PRODUCTION.value,
                                    "production updates need a confirmed order")
        update = storage.add_production_update(ProductionUpdate(
            order_id=order.id, stage=stage, detail=detail, updated_by=caller.id,
        ))
        if order.status == OrderStatus.CONFIRMED.value:
            previous = order.status
            order = _move_order(storage, order, OrderStatus.PRODUCTION)
            record_audit(storage, "order_production_started", caller, "order", order.id,
                         {"from": previous, "to": order.status})
        record_audit(storage, "production_update", caller, "order", order.id,
                     {"stage": stage})
        notify(storage, order.buyer_id, NotificationType.PRODUCTION_UPDATE,
               "Production update", f"Order {order.order_number}: {stage}", "order", order.id)
    return update


def set_order_status(storage: Storage, caller: CurrentUser, order_ref: str,
                     status: OrderStatus) -> Order:
    """Admin status change along the order state machine."""
    if status == OrderStatus.DEPOSIT_PAID:
        return record_advance(storage, caller, order_ref)
    _require_admin(caller)
    with storage.transaction():
        order = _load_order(storage, order_ref)
        previous = order.status
        order = _move_order(storage, order, status)
        _order_changed(storage, caller, order, previous, "order_status_changed")
    return order


def cancel_order(storage: Storage, caller: CurrentUser, order_ref: str,
                 reason: Optional[str] = None) -> Order:
    with storage.transaction():
        order = _load_order(storage, order_ref)
        if not caller.is_admin and order.buyer_id != caller.id:
            raise PermissionDenied("You do not own this order")
        previous = order.status
        order = _move_order(storage, order, OrderStatus.CANCELLED)
        _order_changed(storage, caller, order, previous, "order_cancelled", {"reason": reason})
    return order


def recalculate_order_total(storage: Storage, caller: CurrentUser, order_ref: str) -> dict:
    """
    Re-derive ``total_amount`` from the accepted offer's unit price and quantity.

    Idempotent: a second call reports ``changed`` false.
    """
    _require_admin(caller)
    with storage.transaction():
        order = _load_order(storage, order_ref)
        offer = storage.require(CuratedOffer, order.curated_offer_id)
        previous = money(order.total_amount)
        new_amount = money(offer.unit_price * offer.quantity)
        changed = previous != new_amount
        if changed:
            order.total_amount = new_amount
            order = storage.save_order(order)
            record_audit(storage, "order_total_recalculated", caller, "order", order.id,
                         {"previous_amount": str(previous), "new_amount": str(new_amount)})
    return {
        "order": order,
        "previous_amount": previous,
        "new_amount": new_amount,
        "changed": changed,
    }
