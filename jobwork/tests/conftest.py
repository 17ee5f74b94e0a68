"""
Shared fixtures. Settings are read at import time, so the environment is
prepared before anything from jobwork is imported.
"""
import os

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef0123456789abcdef")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SEED_SKUS", "true")

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from jobwork.core.rbac import CurrentUser  # noqa: E402
from jobwork.core.security import create_access_token, get_password_hash  # noqa: E402
from jobwork.main import create_app  # noqa: E402
from jobwork.storage import MemoryStorage  # noqa: E402
from jobwork.storage.entities import Company, User  # noqa: E402

PASSWORD = "Password123"

RFQ_BODY = {
    "title": "Aluminium brackets",
    "details": {
        "items": [{"skuCode": "MECH_CNC_001", "quantity": 100, "parameters": {"material": "Aluminum 6061"}}],
        "commercialTerms": {"incoterms": "EXW"},
    },
    "ndaRequired": False,
}


# ============= FIXTURES =============

@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def client(storage):
    app = create_app(storage=storage)
    with TestClient(app) as test_client:
        yield test_client


class Account:
    """A stored user plus ready-made auth headers."""

    def __init__(self, user: User):
        self.user = user
        self.id = user.id
        token = create_access_token({"sub": user.id, "email": user.email})
        self.headers = {"Authorization": f"Bearer {token}"}

    @property
    def caller(self) -> CurrentUser:
        return CurrentUser(id=self.user.id, email=self.user.email, role=self.user.role,
                           name=self.user.name, company_id=self.user.company_id)


def make_account(storage, role: str, email: str, company_name: str = None) -> Account:
    company_id = None
    if company_name:
        company_id = storage.create_company(Company(name=company_name)).id
    user = storage.create_user(User(
        email=email,
        hashed_password=get_password_hash(PASSWORD),
        role=role,
        name=email.split("@")[0],
        company_id=company_id,
    ))
    return Account(user)


@pytest.fixture
def buyer(storage):
    return make_account(storage, "buyer", "buyer@example.com", "Buyer Industries")


@pytest.fixture
def other_buyer(storage):
    return make_account(storage, "buyer", "other.buyer@example.com", "Other Buyer Co")


@pytest.fixture
def supplier(storage):
    return make_account(storage, "supplier", "supplier@example.com", "Precision Works")


@pytest.fixture
def other_supplier(storage):
    return make_account(storage, "supplier", "other.supplier@example.com", "Castings Ltd")


@pytest.fixture
def admin(storage):
    return make_account(storage, "admin", "admin@example.com")


# ============= FLOW HELPERS =============

def create_submitted_rfq(client, buyer) -> dict:
    rfq = client.post("/api/protected/rfqs", json=RFQ_BODY, headers=buyer.headers).json()
    response = client.post(f"/api/protected/rfqs/{rfq['id']}/submit", headers=buyer.headers)
    assert response.status_code == 200
    return response.json()


def invite(client, admin, rfq_id: str, *suppliers) -> dict:
    response = client.post(
        "/api/protected/admin/invite",
        json={"rfqId": rfq_id, "supplierIds": [s.id for s in suppliers]},
        headers=admin.headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def quote(client, supplier, rfq_id: str, unit_price=2400, lead_time_days=14):
    return client.post(
        "/api/protected/quotes",
        json={"rfqId": rfq_id, "unitPrice": unit_price, "leadTimeDays": lead_time_days},
        headers=supplier.headers,
    )


def compose_offer(client, admin, rfq_id: str, quote_ids, unit_price=2450, quantity=100):
    response = client.post(
        "/api/protected/admin/curated-offers",
        json={
            "rfqId": rfq_id,
            "title": "Curated offer",
            "unitPrice": unit_price,
            "quantity": quantity,
            "leadTimeDays": 14,
            "warranty": "12 months",
            "quoteIds": quote_ids,
            "details": {"validityDays": 15},
        },
        headers=admin.headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def published_offer(client, buyer, supplier, admin) -> dict:
    """Run an RFQ from submission to a published offer; returns the ids involved."""
    rfq = create_submitted_rfq(client, buyer)
    invite(client, admin, rfq["id"], supplier)
    quote_response = quote(client, supplier, rfq["id"])
    assert quote_response.status_code == 201, quote_response.text
    offer = compose_offer(client, admin, rfq["id"], [quote_response.json()["id"]])
    published = client.post(f"/api/protected/admin/offers/{offer['id']}/publish", headers=admin.headers)
    assert published.status_code == 200, published.text
    return {"rfq_id": rfq["id"], "quote_id": quote_response.json()["id"], "offer_id": offer["id"]}


def accepted_order(client, buyer, supplier, admin) -> dict:
    ids = published_offer(client, buyer, supplier, admin)
    response = client.post(f"/api/protected/buyer/offers/{ids['offer_id']}/accept", headers=buyer.headers)
    assert response.status_code == 201, response.text
    return dict(ids, order=response.json())


def as_decimal(value) -> Decimal:
    return Decimal(str(value))
