"""
Tests for the storage backends. Every backend must answer the named
operations identically; the SQL backend runs on in-memory SQLite.
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from jobwork.core.config import settings
from jobwork.core.errors import Conflict, NotFound
from jobwork.db.session import Base, build_engine, build_session_factory
from jobwork.main import create_app
from jobwork.storage import MemoryStorage, build_storage
from jobwork.storage.entities import (
    RFQ, SupplierInvite, Quote, CuratedOffer, Order, User, utcnow,
)
from jobwork.storage.sql import SqlStorage

from conftest import make_account, accepted_order


def sql_storage() -> SqlStorage:
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    return SqlStorage(build_session_factory(engine))


@pytest.fixture(params=["memory", "sql"])
def backend(request):
    storage = MemoryStorage() if request.param == "memory" else sql_storage()
    yield storage
    storage.close()


def new_rfq(storage, buyer_id, **overrides) -> RFQ:
    values = dict(rfq_number=storage.next_rfq_number(), buyer_id=buyer_id, title="Brackets",
                  details={"items": [{"skuCode": "MECH_CNC_001"}]})
    values.update(overrides)
    return storage.create_rfq(RFQ(**values))


class TestBackendParity:

    def test_users_lowercase_email(self, backend):
        user = backend.create_user(User(email="Mixed.Case@Example.com", hashed_password="x", role="buyer"))
        assert user.email == "mixed.case@example.com"
        assert backend.get_user_by_email("MIXED.case@example.com").id == user.id

    def test_returned_records_are_copies(self, backend):
        buyer = make_account(backend, "buyer", "b@example.com").user
        rfq = new_rfq(backend, buyer.id)
        rfq.details["items"].append({"skuCode": "ELEC_PCB_001"})
        rfq.status = "cancelled"
        stored = backend.get_rfq(rfq.id)
        assert stored.status == "draft"
        assert len(stored.details["items"]) == 1

    def test_timestamps_are_timezone_aware(self, backend):
        buyer = make_account(backend, "buyer", "b@example.com").user
        rfq = backend.get_rfq(new_rfq(backend, buyer.id).id)
        assert rfq.created_at.tzinfo is not None

    def test_money_round_trips_as_decimal(self, backend):
        buyer = make_account(backend, "buyer", "b@example.com").user
        rfq = new_rfq(backend, buyer.id)
        offer = backend.create_offer(CuratedOffer(
            rfq_id=rfq.id, admin_id=buyer.id, title="o", unit_price=Decimal("2450.00"), quantity=100,
            total_price=Decimal("245000.00"), lead_time_days=10, warranty="1y",
            advance_payment_percentage=30, advance_payment_amount=Decimal("73500.00"),
            final_payment_amount=Decimal("171500.00"), quote_ids=["q1"],
        ))
        stored = backend.get_offer(offer.id)
        assert stored.unit_price == Decimal("2450.00")
        assert stored.quote_ids == ["q1"]

    def test_list_rfqs_filters(self, backend):
        buyer = make_account(backend, "buyer", "b@example.com").user
        other = make_account(backend, "buyer", "o@example.com").user
        first = new_rfq(backend, buyer.id)
        new_rfq(backend, other.id, status="submitted")
        assert [r.id for r in backend.list_rfqs(buyer_id=buyer.id)] == [first.id]
        assert len(backend.list_rfqs(status="submitted")) == 1
        assert backend.list_rfqs(ids=[]) == []
        assert [r.id for r in backend.list_rfqs(ids=[first.id])] == [first.id]

    def test_get_order_by_id_or_number(self, backend):
        buyer = make_account(backend, "buyer", "b@example.com").user
        rfq = new_rfq(backend, buyer.id)
        order = backend.create_order(Order(
            order_number=backend.next_order_number(), rfq_id=rfq.id, curated_offer_id="offer-1",
            buyer_id=buyer.id, total_amount=Decimal("10.00"),
        ))
        assert backend.get_order(order.id).id == order.id
        assert backend.get_order(order.order_number).id == order.id
        assert backend.get_order(order.order_number, lock=True).id == order.id
        assert backend.get_order("ORD-0000-000000") is None

    def test_transaction_rolls_back_on_error(self, backend):
        buyer = make_account(backend, "buyer", "b@example.com").user
        rfq = new_rfq(backend, buyer.id)
        with pytest.raises(RuntimeError):
            with backend.transaction():
                backend.update_rfq_status(backend.get_rfq(rfq.id, lock=True), "submitted")
                raise RuntimeError("abort")
        assert backend.get_rfq(rfq.id).status == "draft"

    def test_require_raises_not_found(self, backend):
        with pytest.raises(NotFound) as exc:
            backend.require(RFQ, "missing")
        assert exc.value.message == "RFQ not found"

    def test_save_unknown_record_raises(self, backend):
        with pytest.raises(NotFound):
            backend.save(RFQ(rfq_number="RFQ-1", buyer_id="b", title="t", details={}))

    def test_notifications_unread_filter(self, backend):
        from jobwork.services.notifications import notify, mark_all_read
        from jobwork.storage.entities import NotificationType
        user = make_account(backend, "buyer", "b@example.com").user
        notify(backend, user.id, NotificationType.GENERAL, "Hello", "World")
        notify(backend, user.id, NotificationType.GENERAL, "Hello", "Again")
        assert len(backend.list_notifications(user.id, unread_only=True)) == 2
        assert mark_all_read(backend, user.id) == 2
        assert backend.list_notifications(user.id, unread_only=True) == []


class TestSqlConstraints:

    def test_duplicate_invite_is_conflict(self):
        storage = sql_storage()
        buyer = make_account(storage, "buyer", "b@example.com").user
        supplier = make_account(storage, "supplier", "s@example.com").user
        rfq = new_rfq(storage, buyer.id)
        deadline = utcnow() + timedelta(days=7)
        storage.create_invite(SupplierInvite(rfq_id=rfq.id, supplier_id=supplier.id,
                                             invited_by=buyer.id, response_deadline=deadline))
        with pytest.raises(Conflict):
            storage.create_invite(SupplierInvite(rfq_id=rfq.id, supplier_id=supplier.id,
                                                 invited_by=buyer.id, response_deadline=deadline))

    def test_one_quote_per_invite(self):
        storage = sql_storage()
        buyer = make_account(storage, "buyer", "b@example.com").user
        supplier = make_account(storage, "supplier", "s@example.com").user
        rfq = new_rfq(storage, buyer.id)
        invite = storage.create_invite(SupplierInvite(rfq_id=rfq.id, supplier_id=supplier.id,
                                                      invited_by=buyer.id,
                                                      response_deadline=utcnow() + timedelta(days=7)))
        values = dict(rfq_id=rfq.id, supplier_id=supplier.id, invite_id=invite.id,
                      unit_price=Decimal("10.00"), lead_time_days=5)
        storage.create_quote(Quote(**values))
        with pytest.raises(Conflict):
            storage.create_quote(Quote(**values))

    def test_duplicate_email_is_conflict(self):
        storage = sql_storage()
        make_account(storage, "buyer", "b@example.com")
        with pytest.raises(Conflict):
            make_account(storage, "buyer", "B@example.com")


class TestBackendSelection:

    def test_memory_backend(self, monkeypatch):
        monkeypatch.setattr(settings, "STORAGE_BACKEND", "memory")
        assert isinstance(build_storage(settings), MemoryStorage)

    def test_sql_backend(self, monkeypatch):
        monkeypatch.setattr(settings, "STORAGE_BACKEND", "sql")
        monkeypatch.setattr(settings, "DATABASE_URL", "sqlite://")
        storage = build_storage(settings)
        try:
            assert isinstance(storage, SqlStorage)
        finally:
            storage.close()


class TestSqlEndToEnd:
    """The whole RFQ-to-order flow over HTTP against the SQL backend."""

    def test_flow_on_sqlite(self):
        storage = SqlStorage(build_session_factory(build_engine("sqlite://")))
        app = create_app(storage=storage)  # creates the schema on SQLite
        with TestClient(app) as client:
            buyer = make_account(storage, "buyer", "buyer@example.com", "Buyer Co")
            supplier = make_account(storage, "supplier", "supplier@example.com", "Supplier Co")
            admin = make_account(storage, "admin", "admin@example.com")

            flow = accepted_order(client, buyer, supplier, admin)
            assert Decimal(str(flow["order"]["total_amount"])) == Decimal("245000")

            again = client.post(f"/api/protected/buyer/offers/{flow['offer_id']}/accept",
                                headers=buyer.headers)
            assert again.status_code == 409
            assert len(client.get("/api/skus").json()) == 9
        storage.close()
