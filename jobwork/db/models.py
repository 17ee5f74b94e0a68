"""
SQLAlchemy ORM models for the jobwork marketplace.

Column names mirror the fields of the records in ``jobwork.storage.entities``
one to one; the SQL backend copies values across by name.
"""
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Numeric,
    ForeignKey, Enum, JSON, UniqueConstraint, Index
)

from jobwork.db.session import Base
from jobwork.storage.entities import (
    UserRole, VerifiedStatus, RFQStatus, InviteStatus, QuoteStatus, OrderStatus,
    NotificationType,
)


# ============= ENUMS =============
# Stored by value (lowercase), not by member name.

def enum_values(enum_cls):
    return [e.value for e in enum_cls]


UserRoleType = Enum(*enum_values(UserRole), name='user_role')
VerifiedStatusType = Enum(*enum_values(VerifiedStatus), name='supplier_verification')
RFQStatusType = Enum(*enum_values(RFQStatus), name='rfq_status')
InviteStatusType = Enum(*enum_values(InviteStatus), name='invite_status')
QuoteStatusType = Enum(*enum_values(QuoteStatus), name='quote_status')
OrderStatusType = Enum(*enum_values(OrderStatus), name='order_status')
NotificationTypeType = Enum(*enum_values(NotificationType), name='notification_type')

Money = Numeric(12, 2)


# ============= ACCOUNTS =============

class CompanyModel(Base):
    """Legal entity a user belongs to."""
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    gstin = Column(String(20))
    pan = Column(String(20))
    address = Column(JSON)
    city = Column(String(100))
    state = Column(String(100))
    country = Column(String(100), default="India")
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class UserModel(Base):
    """User accounts. Role never changes after creation."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(UserRoleType, nullable=False)
    name = Column(String(255))
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True)
    phone = Column(String(50))
    is_verified = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class SupplierProfileModel(Base):
    """Manufacturing capabilities of a supplier company."""
    __tablename__ = "supplier_profiles"

    id = Column(String(36), primary_key=True)
    company_id = Column(String(36), ForeignKey("companies.id"), unique=True, nullable=False)
    capabilities = Column(JSON, default=list)
    machines = Column(JSON, default=list)
    certifications = Column(JSON, default=list)
    moq_default = Column(Integer)
    verified_status = Column(VerifiedStatusType, default=VerifiedStatus.UNVERIFIED.value)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


# ============= CATALOG =============

class SKUModel(Base):
    """Industry/process reference data."""
    __tablename__ = "skus"

    id = Column(String(36), primary_key=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    industry = Column(String(100), nullable=False, index=True)
    process_name = Column(String(255), nullable=False)
    description = Column(Text)
    default_moq = Column(Integer)
    default_lead_time_days = Column(Integer)
    parameters_schema = Column(JSON, default=dict)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


# ============= RFQ WORKFLOW =============

class RFQModel(Base):
    """Buyer request for quotation."""
    __tablename__ = "rfqs"

    id = Column(String(36), primary_key=True)
    rfq_number = Column(String(50), unique=True, nullable=False)
    buyer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    status = Column(RFQStatusType, nullable=False, default=RFQStatus.DRAFT.value)
    details = Column(JSON, nullable=False)
    nda_required = Column(Boolean, default=False)
    confidential = Column(Boolean, default=False)
    budget_range = Column(JSON)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class SupplierInviteModel(Base):
    """Admin-issued permission for one supplier to quote on one RFQ."""
    __tablename__ = "supplier_invites"

    id = Column(String(36), primary_key=True)
    rfq_id = Column(String(36), ForeignKey("rfqs.id"), nullable=False)
    supplier_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    invited_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    status = Column(InviteStatusType, nullable=False, default=InviteStatus.INVITED.value)
    invited_at = Column(DateTime(timezone=True), nullable=False)
    response_deadline = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint('rfq_id', 'supplier_id', name='uq_invite_rfq_supplier'),
    )


class QuoteModel(Base):
    """Supplier price response. Always tied to the invite it answers."""
    __tablename__ = "quotes"

    id = Column(String(36), primary_key=True)
    rfq_id = Column(String(36), ForeignKey("rfqs.id"), nullable=False, index=True)
    supplier_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    invite_id = Column(String(36), ForeignKey("supplier_invites.id"), nullable=False, unique=True)
    unit_price = Column(Money, nullable=False)
    lead_time_days = Column(Integer, nullable=False)
    validity_days = Column(Integer)
    tooling_cost = Column(Money)
    notes = Column(Text)
    terms = Column(JSON, default=dict)
    status = Column(QuoteStatusType, nullable=False, default=QuoteStatus.SUBMITTED.value)
    created_at = Column(DateTime(timezone=True), nullable=False)


class CuratedOfferModel(Base):
    """Admin-composed buyer-facing offer. Draft until published_at is set."""
    __tablename__ = "curated_offers"

    id = Column(String(36), primary_key=True)
    rfq_id = Column(String(36), ForeignKey("rfqs.id"), nullable=False, index=True)
    admin_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=False)
    unit_price = Column(Money, nullable=False)
    quantity = Column(Integer, nullable=False)
    total_price = Column(Money, nullable=False)
    lead_time_days = Column(Integer, nullable=False)
    warranty = Column(String(255), nullable=False)
    advance_payment_percentage = Column(Integer, nullable=False)
    advance_payment_amount = Column(Money, nullable=False)
    final_payment_amount = Column(Money, nullable=False)
    payment_terms = Column(Text)
    payment_link = Column(Text)
    payment_deadline = Column(DateTime(timezone=True))
    details = Column(JSON, default=dict)
    supplier_indicators = Column(JSON, default=dict)
    quote_ids = Column(JSON, default=list)
    published_at = Column(DateTime(timezone=True))
    expires_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False)


# ============= ORDERS =============

class OrderModel(Base):
    """Order created when a buyer accepts and pays for an offer."""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True)
    order_number = Column(String(50), unique=True, nullable=False)
    rfq_id = Column(String(36), ForeignKey("rfqs.id"), nullable=False)
    curated_offer_id = Column(String(36), ForeignKey("curated_offers.id"), nullable=False, unique=True)
    buyer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    admin_id = Column(String(36), ForeignKey("users.id"))
    supplier_id = Column(String(36), ForeignKey("users.id"), index=True)
    status = Column(OrderStatusType, nullable=False, default=OrderStatus.CREATED.value)
    deposit_percent = Column(Integer, default=30)
    deposit_paid = Column(Boolean, default=False)
    advance_payment = Column(Money)
    total_amount = Column(Money, nullable=False)
    payment_ref = Column(String(255))
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class ProductionUpdateModel(Base):
    """Append-only production trail for an order."""
    __tablename__ = "production_updates"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    stage = Column(String(100), nullable=False)
    detail = Column(Text)
    updated_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


# ============= DOCUMENTS & NOTIFICATIONS =============

class DocumentModel(Base):
    """Uploaded file reference. Content is not stored here."""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True)
    company_id = Column(String(36), ForeignKey("companies.id"), index=True)
    doc_type = Column(String(100), nullable=False)
    file_name = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    sha256 = Column(String(64), nullable=False, index=True)
    file_ref = Column(Text, nullable=False)
    uploaded_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=False)


class NotificationModel(Base):
    """Per-user message with read state."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    type = Column(NotificationTypeType, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False)
    entity_type = Column(String(50))
    entity_id = Column(String(36))
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('ix_notifications_user_created', 'user_id', 'created_at'),
    )


class AuditLogModel(Base):
    """Audit trail of state-changing actions."""
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(100), nullable=False, index=True)
    entity_id = Column(String(36), nullable=False)
    details = Column(JSON)
    ip_address = Column(String(50))
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
