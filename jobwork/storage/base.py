"""
Storage interface for the marketplace entities.

A backend implements five primitives (insert, get, find, save, delete) plus
``transaction()``. The named operations used by services are written once
here on top of those primitives, so every backend answers them the same way.
"""
import secrets
from abc import ABC, abstractmethod
from datetime import datetime
from typing import ContextManager, List, Optional, Tuple, Type, TypeVar

from jobwork.core.errors import NotFound
from jobwork.storage.entities import (
    User, Company, SupplierProfile, SKU, RFQ, SupplierInvite, Quote,
    CuratedOffer, Order, ProductionUpdate, Document, Notification, AuditLog,
    UserRole, utcnow,
)

T = TypeVar("T")


class Storage(ABC):
    """Abstract entity store."""

    backend_name = "abstract"

    # ============= PRIMITIVES =============

    @abstractmethod
    def transaction(self) -> ContextManager[None]:
        """
        Group several operations atomically.

        Nested calls join the outer transaction. Reads made with
        ``lock=True`` inside a transaction hold the row until it ends.
        """

    @abstractmethod
    def insert(self, entity: T) -> T:
        """Persist a new record and return the stored copy."""

    @abstractmethod
    def get(self, kind: Type[T], entity_id: str, lock: bool = False) -> Optional[T]:
        """Fetch one record by id."""

    @abstractmethod
    def find(
        self,
        kind: Type[T],
        order_by: Optional[str] = None,
        descending: bool = False,
        **criteria,
    ) -> List[T]:
        """
        Fetch records matching equality criteria.

        A list, tuple or set value matches any of its members.
        """

    @abstractmethod
    def save(self, entity: T) -> T:
        """Write back every field of an existing record."""

    @abstractmethod
    def delete(self, kind: Type, entity_id: str) -> None:
        """Remove a record by id."""

    def close(self) -> None:
        """Release backend resources."""

    # ============= HELPERS =============

    def find_one(self, kind: Type[T], **criteria) -> Optional[T]:
        found = self.find(kind, **criteria)
        return found[0] if found else None

    def require(self, kind: Type[T], entity_id: str, lock: bool = False) -> T:
        entity = self.get(kind, entity_id, lock=lock)
        if entity is None:
            raise NotFound(_DISPLAY_NAMES.get(kind, kind.__name__))
        return entity

    def _touch(self, entity):
        if hasattr(entity, "updated_at"):
            entity.updated_at = utcnow()
        return self.save(entity)

    def _unique_number(self, kind: Type, column: str, prefix: str) -> str:
        year = datetime.now().year
        while True:
            candidate = f"{prefix}-{year}-{secrets.randbelow(10 ** 6):06d}"
            if not self.find(kind, **{column: candidate}):
                return candidate

    # ============= USERS & COMPANIES =============

    def get_user(self, user_id: str) -> Optional[User]:
        return self.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.find_one(User, email=email.strip().lower())

    def create_user(self, user: User) -> User:
        user.email = user.email.strip().lower()
        return self.insert(user)

    def update_user_company(self, user_id: str, company_id: str) -> User:
        user = self.require(User, user_id)
        user.company_id = company_id
        return self._touch(user)

    def list_users(self, role: Optional[str] = None) -> List[User]:
        criteria = {"role": role} if role else {}
        return self.find(User, order_by="created_at", **criteria)

    def get_company(self, company_id: str) -> Optional[Company]:
        return self.get(Company, company_id)

    def create_company(self, company: Company) -> Company:
        return self.insert(company)

    # ============= SUPPLIER PROFILES =============

    def get_supplier_profile(self, company_id: str) -> Optional[SupplierProfile]:
        return self.find_one(SupplierProfile, company_id=company_id)

    def upsert_supplier_profile(self, profile: SupplierProfile) -> SupplierProfile:
        """Create the company's profile, or replace its capability fields."""
        existing = self.get_supplier_profile(profile.company_id)
        if existing is None:
            return self.insert(profile)
        existing.capabilities = profile.capabilities
        existing.machines = profile.machines
        existing.certifications = profile.certifications
        existing.moq_default = profile.moq_default
        return self._touch(existing)

    def update_supplier_verification(self, company_id: str, status: str) -> SupplierProfile:
        profile = self.get_supplier_profile(company_id)
        if profile is None:
            raise NotFound("Supplier profile")
        profile.verified_status = status
        return self._touch(profile)

    def list_suppliers(self) -> List[Tuple[User, Optional[Company], Optional[SupplierProfile]]]:
        result = []
        for user in self.list_users(role=UserRole.SUPPLIER.value):
            company = self.get_company(user.company_id) if user.company_id else None
            profile = self.get_supplier_profile(user.company_id) if user.company_id else None
            result.append((user, company, profile))
        return result

    # ============= SKUS =============

    def list_skus(self) -> List[SKU]:
        return self.find(SKU, order_by="code", active=True)

    def get_sku(self, code: str) -> Optional[SKU]:
        return self.find_one(SKU, code=code)

    def list_skus_by_industry(self, industry: str) -> List[SKU]:
        return self.find(SKU, order_by="code", industry=industry, active=True)

    def seed_skus(self, skus: List[SKU]) -> int:
        added = 0
        for sku in skus:
            if self.get_sku(sku.code) is None:
                self.insert(sku)
                added += 1
        return added

    # ============= RFQS =============

    def create_rfq(self, rfq: RFQ) -> RFQ:
        return self.insert(rfq)

    def next_rfq_number(self) -> str:
        return self._unique_number(RFQ, "rfq_number", "RFQ")

    def get_rfq(self, rfq_id: str, lock: bool = False) -> Optional[RFQ]:
        return self.get(RFQ, rfq_id, lock=lock)

    def list_rfqs(self, buyer_id: Optional[str] = None, ids: Optional[List[str]] = None,
                  status: Optional[str] = None) -> List[RFQ]:
        criteria = {}
        if buyer_id is not None:
            criteria["buyer_id"] = buyer_id
        if ids is not None:
            if not ids:
                return []
            criteria["id"] = list(ids)
        if status:
            criteria["status"] = status
        return self.find(RFQ, order_by="created_at", descending=True, **criteria)

    def update_rfq_status(self, rfq: RFQ, status: str) -> RFQ:
        rfq.status = status
        return self._touch(rfq)

    # ============= INVITES =============

    def create_invite(self, invite: SupplierInvite) -> SupplierInvite:
        return self.insert(invite)

    def find_invite(self, rfq_id: str, supplier_id: str) -> Optional[SupplierInvite]:
        return self.find_one(SupplierInvite, rfq_id=rfq_id, supplier_id=supplier_id)

    def list_invites(self, supplier_id: Optional[str] = None,
                     rfq_id: Optional[str] = None) -> List[SupplierInvite]:
        criteria = {}
        if supplier_id is not None:
            criteria["supplier_id"] = supplier_id
        if rfq_id is not None:
            criteria["rfq_id"] = rfq_id
        return self.find(SupplierInvite, order_by="invited_at", descending=True, **criteria)

    def update_invite_status(self, invite: SupplierInvite, status: str) -> SupplierInvite:
        invite.status = status
        return self.save(invite)

    # ============= QUOTES =============

    def create_quote(self, quote: Quote) -> Quote:
        return self.insert(quote)

    def get_quote(self, quote_id: str) -> Optional[Quote]:
        return self.get(Quote, quote_id)

    def list_quotes(self, rfq_id: Optional[str] = None,
                    supplier_id: Optional[str] = None) -> List[Quote]:
        criteria = {}
        if rfq_id is not None:
            criteria["rfq_id"] = rfq_id
        if supplier_id is not None:
            criteria["supplier_id"] = supplier_id
        return self.find(Quote, order_by="created_at", descending=True, **criteria)

    def update_quote_status(self, quote: Quote, status: str) -> Quote:
        quote.status = status
        return self.save(quote)

    # ============= CURATED OFFERS =============

    def create_offer(self, offer: CuratedOffer) -> CuratedOffer:
        return self.insert(offer)

    def get_offer(self, offer_id: str, lock: bool = False) -> Optional[CuratedOffer]:
        return self.get(CuratedOffer, offer_id, lock=lock)

    def list_offers(self, rfq_ids: Optional[List[str]] = None) -> List[CuratedOffer]:
        criteria = {}
        if rfq_ids is not None:
            if not rfq_ids:
                return []
            criteria["rfq_id"] = list(rfq_ids)
        return self.find(CuratedOffer, order_by="created_at", descending=True, **criteria)

    def save_offer(self, offer: CuratedOffer) -> CuratedOffer:
        return self.save(offer)

    # ============= ORDERS =============

    def create_order(self, order: Order) -> Order:
        return self.insert(order)

    def next_order_number(self) -> str:
        return self._unique_number(Order, "order_number", "ORD")

    def get_order(self, id_or_number: str, lock: bool = False) -> Optional[Order]:
        order = self.get(Order, id_or_number, lock=lock)
        if order is None:
            by_number = self.find_one(Order, order_number=id_or_number)
            if by_number is not None and lock:
                return self.get(Order, by_number.id, lock=True)
            order = by_number
        return order

    def list_orders(self, buyer_id: Optional[str] = None, supplier_id: Optional[str] = None,
                    status: Optional[str] = None, offer_id: Optional[str] = None,
                    rfq_id: Optional[str] = None) -> List[Order]:
        criteria = {}
        if rfq_id is not None:
            criteria["rfq_id"] = rfq_id
        if buyer_id is not None:
            criteria["buyer_id"] = buyer_id
        if supplier_id is not None:
            criteria["supplier_id"] = supplier_id
        if status:
            criteria["status"] = status
        if offer_id is not None:
            criteria["curated_offer_id"] = offer_id
        return self.find(Order, order_by="created_at", descending=True, **criteria)

    def save_order(self, order: Order) -> Order:
        return self._touch(order)

    def add_production_update(self, update: ProductionUpdate) -> ProductionUpdate:
        return self.insert(update)

    def list_production_updates(self, order_id: str) -> List[ProductionUpdate]:
        return self.find(ProductionUpdate, order_by="created_at", order_id=order_id)

    # ============= DOCUMENTS =============

    def create_document(self, document: Document) -> Document:
        return self.insert(document)

    def get_document(self, document_id: str) -> Optional[Document]:
        return self.get(Document, document_id)

    def list_documents(self, company_id: Optional[str] = None, uploaded_by: Optional[str] = None,
                       doc_type: Optional[str] = None) -> List[Document]:
        criteria = {}
        if company_id is not None:
            criteria["company_id"] = company_id
        if uploaded_by is not None:
            criteria["uploaded_by"] = uploaded_by
        if doc_type:
            criteria["doc_type"] = doc_type
        return self.find(Document, order_by="uploaded_at", descending=True, **criteria)

    def delete_document(self, document_id: str) -> None:
        self.delete(Document, document_id)

    # ============= NOTIFICATIONS =============

    def create_notification(self, notification: Notification) -> Notification:
        return self.insert(notification)

    def list_notifications(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        criteria = {"user_id": user_id}
        if unread_only:
            criteria["is_read"] = False
        return self.find(Notification, order_by="created_at", descending=True, **criteria)

    def mark_notification_read(self, notification: Notification) -> Notification:
        notification.is_read = True
        return self.save(notification)

    # ============= AUDIT =============

    def add_audit_log(self, entry: AuditLog) -> AuditLog:
        return self.insert(entry)

    def list_audit_logs(self, entity_type: Optional[str] = None,
                        entity_id: Optional[str] = None) -> List[AuditLog]:
        criteria = {}
        if entity_type:
            criteria["entity_type"] = entity_type
        if entity_id:
            criteria["entity_id"] = entity_id
        return self.find(AuditLog, order_by="created_at", descending=True, **criteria)


_DISPLAY_NAMES = {
    User: "User",
    Company: "Company",
    SupplierProfile: "Supplier profile",
    SKU: "SKU",
    RFQ: "RFQ",
    SupplierInvite: "Invite",
    Quote: "Quote",
    CuratedOffer: "Offer",
    Order: "Order",
    Document: "Document",
    Notification: "Notification",
}
