"""
Domain records shared by every storage backend.

Both backends hand out these dataclasses rather than ORM rows, so callers
never hold a live session and the in-memory backend needs no SQLAlchemy.
Mutating a record has no effect until it is passed back to ``Storage.save``.
"""
import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============= ENUMS =============

class UserRole(str, enum.Enum):
    BUYER = "buyer"
    SUPPLIER = "supplier"
    ADMIN = "admin"


class VerifiedStatus(str, enum.Enum):
    UNVERIFIED = "unverified"
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"


class RFQStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    INVITED = "invited"
    QUOTED = "quoted"
    OFFERS_PUBLISHED = "offers_published"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InviteStatus(str, enum.Enum):
    INVITED = "invited"
    RESPONDED = "responded"
    DECLINED = "declined"


class QuoteStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class OrderStatus(str, enum.Enum):
    CREATED = "created"
    DEPOSIT_PAID = "deposit_paid"
    CONFIRMED = "confirmed"
    PRODUCTION = "production"
    QUALITY_CHECK = "quality_check"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class NotificationType(str, enum.Enum):
    RFQ_SUBMITTED = "rfq_submitted"
    RFQ_STATUS_CHANGE = "rfq_status_change"
    SUPPLIER_INVITATION = "supplier_invitation"
    QUOTE_RECEIVED = "quote_received"
    OFFER_PUBLISHED = "offer_published"
    ORDER_CREATED = "order_created"
    ORDER_STATUS_CHANGE = "order_status_change"
    PRODUCTION_UPDATE = "production_update"
    SUPPLIER_VERIFIED = "supplier_verified"
    GENERAL = "general"


# ============= RECORDS =============

@dataclass
class User:
    email: str
    hashed_password: str
    role: str
    name: Optional[str] = None
    company_id: Optional[str] = None
    phone: Optional[str] = None
    is_verified: bool = False
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class Company:
    name: str
    gstin: Optional[str] = None
    pan: Optional[str] = None
    address: Optional[dict] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: str = "India"
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class SupplierProfile:
    company_id: str
    capabilities: List[str] = field(default_factory=list)
    machines: List[str] = field(default_factory=list)
    certifications: List[str] = field(default_factory=list)
    moq_default: Optional[int] = None
    verified_status: str = VerifiedStatus.UNVERIFIED.value
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class SKU:
    code: str
    industry: str
    process_name: str
    description: Optional[str] = None
    default_moq: Optional[int] = None
    default_lead_time_days: Optional[int] = None
    parameters_schema: dict = field(default_factory=dict)
    active: bool = True
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class RFQ:
    rfq_number: str
    buyer_id: str
    title: str
    details: dict
    status: str = RFQStatus.DRAFT.value
    nda_required: bool = False
    confidential: bool = False
    budget_range: Optional[dict] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class SupplierInvite:
    rfq_id: str
    supplier_id: str
    invited_by: str
    response_deadline: datetime
    status: str = InviteStatus.INVITED.value
    id: str = field(default_factory=new_id)
    invited_at: datetime = field(default_factory=utcnow)


@dataclass
class Quote:
    rfq_id: str
    supplier_id: str
    invite_id: str
    unit_price: Decimal
    lead_time_days: int
    validity_days: Optional[int] = None
    tooling_cost: Optional[Decimal] = None
    notes: Optional[str] = None
    terms: dict = field(default_factory=dict)
    status: str = QuoteStatus.SUBMITTED.value
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class CuratedOffer:
    rfq_id: str
    admin_id: str
    title: str
    unit_price: Decimal
    quantity: int
    total_price: Decimal
    lead_time_days: int
    warranty: str
    advance_payment_percentage: int
    advance_payment_amount: Decimal
    final_payment_amount: Decimal
    payment_terms: Optional[str] = None
    payment_link: Optional[str] = None
    payment_deadline: Optional[datetime] = None
    details: dict = field(default_factory=dict)
    supplier_indicators: dict = field(default_factory=dict)
    quote_ids: List[str] = field(default_factory=list)
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Order:
    order_number: str
    rfq_id: str
    curated_offer_id: str
    buyer_id: str
    total_amount: Decimal
    admin_id: Optional[str] = None
    supplier_id: Optional[str] = None
    status: str = OrderStatus.CREATED.value
    deposit_percent: int = 30
    deposit_paid: bool = False
    advance_payment: Optional[Decimal] = None
    payment_ref: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class ProductionUpdate:
    order_id: str
    stage: str
    updated_by: str
    detail: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Document:
    doc_type: str
    file_name: str
    content_type: str
    size_bytes: int
    sha256: str
    file_ref: str
    uploaded_by: str
    company_id: Optional[str] = None
    id: str = field(default_factory=new_id)
    uploaded_at: datetime = field(default_factory=utcnow)


@dataclass
class Notification:
    user_id: str
    type: str
    title: str
    message: str
    is_read: bool = False
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class AuditLog:
    action: str
    entity_type: str
    entity_id: str
    user_id: Optional[str] = None
    details: dict = field(default_factory=dict)
    ip_address: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
