"""
Tests for companies, supplier profiles, verification, notifications,
admin metrics and the public SKU catalog.
"""
from unittest.mock import patch

from jobwork.db.seed import SKU_CATALOG
from jobwork.storage.entities import NotificationType

from conftest import accepted_order, create_submitted_rfq


class TestSkuCatalog:

    def test_catalog_is_seeded(self, client):
        skus = client.get("/api/skus").json()
        assert len(skus) == len(SKU_CATALOG) == 9
        assert {s["industry"] for s in skus} == {
            "mechanical_manufacturing", "electronics_electrical", "packaging_printing",
            "textile_leather", "construction_infrastructure",
        }

    def test_get_by_code(self, client):
        sku = client.get("/api/skus/MECH_CNC_001").json()
        assert sku["default_moq"] == 100
        assert sku["default_lead_time_days"] == 14
        assert client.get("/api/skus/NOPE").status_code == 404

    def test_by_industry(self, client):
        codes = [s["code"] for s in client.get("/api/skus/industry/packaging_printing").json()]
        assert codes == ["PACK_CORR_001", "PACK_FLEX_001"]

    def test_seeding_is_idempotent(self, storage, client):
        from jobwork.db.seed import seed_skus
        assert seed_skus(storage) == 0


class TestCompanies:

    def test_user_without_company_creates_one(self, client, admin):
        response = client.post("/api/protected/companies",
                               json={"name": "Ops Co", "gstin": "27ABCDE1234F1Z5", "city": "Pune"},
                               headers=admin.headers)
        assert response.status_code == 201
        me = client.get("/api/protected/auth/me", headers=admin.headers).json()
        assert me["company"]["name"] == "Ops Co"
        assert me["company"]["country"] == "India"

    def test_existing_company_is_updated(self, client, storage, buyer):
        company_id = buyer.user.company_id
        response = client.post("/api/protected/companies", json={"name": "Renamed", "state": "MH"},
                               headers=buyer.headers)
        assert response.json()["id"] == company_id
        assert storage.get_company(company_id).name == "Renamed"


class TestSupplierProfiles:

    def test_supplier_cannot_self_verify(self, client, storage, supplier):
        response = client.post(
            "/api/protected/suppliers/profile",
            json={"capabilities": ["CNC"], "machines": ["VMC"], "verifiedStatus": "gold"},
            headers=supplier.headers,
        )
        assert response.status_code == 200
        assert response.json()["verified_status"] == "unverified"

    def test_profile_is_upserted(self, client, storage, supplier):
        client.post("/api/protected/suppliers/profile", json={"capabilities": ["CNC"]}, headers=supplier.headers)
        client.post("/api/protected/suppliers/profile", json={"capabilities": ["Casting"]}, headers=supplier.headers)
        profile = storage.get_supplier_profile(supplier.user.company_id)
        assert profile.capabilities == ["Casting"]

    def test_buyer_cannot_write_supplier_profile(self, client, buyer):
        assert client.post("/api/protected/suppliers/profile", json={}, headers=buyer.headers).status_code == 403

    def test_admin_verifies_and_supplier_is_notified(self, client, storage, supplier, admin):
        client.post("/api/protected/suppliers/profile", json={"capabilities": ["CNC"]}, headers=supplier.headers)
        company_id = supplier.user.company_id
        response = client.post(f"/api/protected/admin/suppliers/{company_id}/verify",
                               json={"verifiedStatus": "silver"}, headers=admin.headers)
        assert response.status_code == 200
        assert response.json()["verified_status"] == "silver"
        types = [n.type for n in storage.list_notifications(supplier.id)]
        assert NotificationType.SUPPLIER_VERIFIED.value in types

    def test_admin_supplier_listing(self, client, supplier, other_supplier, admin):
        suppliers = client.get("/api/protected/admin/suppliers", headers=admin.headers).json()
        assert {s["user"]["id"] for s in suppliers} == {supplier.id, other_supplier.id}
        assert all("hashed_password" not in s["user"] for s in suppliers)


class TestNotifications:

    def test_read_and_read_all(self, client, buyer, supplier, admin):
        create_submitted_rfq(client, buyer)
        create_submitted_rfq(client, buyer)
        inbox = client.get("/api/protected/notifications", headers=admin.headers).json()
        assert len(inbox) == 2

        first = client.post(f"/api/protected/notifications/{inbox[0]['id']}/read", headers=admin.headers)
        assert first.json()["is_read"] is True
        unread = client.get("/api/protected/notifications?unreadOnly=true", headers=admin.headers).json()
        assert len(unread) == 1

        assert client.post("/api/protected/notifications/read-all", headers=admin.headers).json() == {"updated": 1}

    def test_cannot_read_someone_elses_notification(self, client, buyer, admin):
        create_submitted_rfq(client, buyer)
        notification_id = client.get("/api/protected/notifications", headers=admin.headers).json()[0]["id"]
        response = client.post(f"/api/protected/notifications/{notification_id}/read", headers=buyer.headers)
        assert response.status_code == 404


class TestMetricsAndAudit:

    def test_metrics(self, client, buyer, supplier, admin):
        accepted_order(client, buyer, supplier, admin)
        create_submitted_rfq(client, buyer)
        metrics = client.get("/api/protected/admin/metrics", headers=admin.headers).json()
        assert metrics["activeRFQs"] == 1
        assert metrics["verifiedSuppliers"] == 0
        assert metrics["monthlyVolume"] == 245000
        assert metrics["successRate"] == 0

    def test_audit_log_listing(self, client, buyer, admin):
        rfq = create_submitted_rfq(client, buyer)
        logs = client.get(f"/api/protected/admin/audit-logs?entityType=rfq&entityId={rfq['id']}",
                          headers=admin.headers).json()
        assert {entry["action"] for entry in logs} == {"rfq_created", "rfq_submitted"}

    def test_audit_events_are_also_logged(self, client, buyer):
        with patch("jobwork.services.audit.audit_logger") as mock_logger:
            create_submitted_rfq(client, buyer)
        actions = [call.kwargs["action"] for call in mock_logger.log.call_args_list]
        assert actions == ["rfq_created", "rfq_submitted"]
        actor = mock_logger.log.call_args.kwargs["actor"]
        assert (actor.id, actor.role, actor.company_id) == (buyer.id, "buyer", buyer.user.company_id)


class TestErrorMapping:

    def test_unhandled_errors_become_500(self, storage):
        from fastapi.testclient import TestClient
        from jobwork.main import create_app

        app = create_app(storage=storage)
        with patch("jobwork.api.skus.Storage.list_skus", side_effect=RuntimeError("boom")):
            with TestClient(app, raise_server_exceptions=False) as test_client:
                response = test_client.get("/api/skus")
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_health(self, client):
        response = client.get("/health")
        assert response.json()["status"] == "ok"
        assert response.json()["storage"] == "memory"
