"""
Tests for order fulfilment: deposit, confirmation, production, shipping,
delivery, cancellation and total recalculation.
"""
from decimal import Decimal

import pytest

from jobwork.services import lifecycle
from jobwork.services.lifecycle import can_transition_order, money
from jobwork.storage.entities import NotificationType

from conftest import accepted_order, as_decimal


@pytest.fixture
def order_flow(client, buyer, supplier, admin):
    return accepted_order(client, buyer, supplier, admin)


def advance(client, admin, order_ref):
    return client.post(f"/api/protected/admin/orders/{order_ref}/record-advance",
                       json={"paymentRef": "UTR-1234"}, headers=admin.headers)


def confirm(client, admin, order_ref):
    return client.post(f"/api/protected/admin/orders/{order_ref}/confirm", headers=admin.headers)


def set_status(client, admin, order_ref, status):
    return client.put(f"/api/protected/admin/orders/{order_ref}/status",
                      json={"status": status}, headers=admin.headers)


class TestDepositAndConfirmation:

    def test_record_advance_computes_deposit(self, client, admin, order_flow):
        """Advance is total x deposit percent / 100."""
        response = advance(client, admin, order_flow["order"]["id"])
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "deposit_paid"
        assert data["deposit_paid"] is True
        assert as_decimal(data["advance_payment"]) == Decimal("73500")
        assert data["payment_ref"] == "UTR-1234"

    def test_order_number_can_address_the_order(self, client, admin, order_flow):
        response = advance(client, admin, order_flow["order"]["order_number"])
        assert response.status_code == 200
        assert response.json()["id"] == order_flow["order"]["id"]

    def test_confirm_requires_deposit(self, client, admin, order_flow):
        response = confirm(client, admin, order_flow["order"]["id"])
        assert response.status_code == 400
        assert "created" in response.json()["error"]

    def test_advance_twice_is_invalid(self, client, admin, order_flow):
        advance(client, admin, order_flow["order"]["id"])
        assert advance(client, admin, order_flow["order"]["id"]).status_code == 400

    def test_buyer_is_notified_of_status_changes(self, client, storage, buyer, admin, order_flow):
        advance(client, admin, order_flow["order"]["id"])
        types = [n.type for n in storage.list_notifications(buyer.id)]
        assert NotificationType.ORDER_STATUS_CHANGE.value in types

    def test_buyer_cannot_record_advance(self, client, buyer, order_flow):
        response = client.post(f"/api/protected/admin/orders/{order_flow['order']['id']}/record-advance",
                               headers=buyer.headers)
        assert response.status_code == 403


class TestProduction:

    def test_first_update_starts_production(self, client, buyer, admin, order_flow):
        order_id = order_flow["order"]["id"]
        advance(client, admin, order_id)
        confirm(client, admin, order_id)

        response = client.post(f"/api/protected/admin/orders/{order_id}/updates",
                               json={"stage": "Material procured", "detail": "6061 bar stock"},
                               headers=admin.headers)
        assert response.status_code == 201
        assert response.json()["updated_by"] == admin.id

        order = client.get(f"/api/protected/orders/{order_id}", headers=buyer.headers).json()
        assert order["status"] == "production"

        client.post(f"/api/protected/admin/orders/{order_id}/updates",
                    json={"stage": "Machining"}, headers=admin.headers)
        updates = client.get(f"/api/protected/orders/{order_id}/updates", headers=buyer.headers).json()
        assert [u["stage"] for u in updates] == ["Material procured", "Machining"]

    def test_update_needs_confirmed_order(self, client, admin, order_flow):
        response = client.post(f"/api/protected/admin/orders/{order_flow['order']['id']}/updates",
                               json={"stage": "Early start"}, headers=admin.headers)
        assert response.status_code == 400

    def test_full_path_to_delivery_completes_rfq(self, client, storage, admin, order_flow):
        order_id = order_flow["order"]["id"]
        advance(client, admin, order_id)
        confirm(client, admin, order_id)
        client.post(f"/api/protected/admin/orders/{order_id}/updates",
                    json={"stage": "Machining"}, headers=admin.headers)
        assert set_status(client, admin, order_id, "quality_check").json()["status"] == "quality_check"
        assert set_status(client, admin, order_id, "shipped").json()["status"] == "shipped"
        assert set_status(client, admin, order_id, "delivered").json()["status"] == "delivered"
        assert storage.get_rfq(order_flow["rfq_id"]).status == "completed"

    def test_delivered_is_terminal(self, client, admin, order_flow):
        order_id = order_flow["order"]["id"]
        set_status(client, admin, order_id, "shipped")
        set_status(client, admin, order_id, "delivered")
        assert set_status(client, admin, order_id, "cancelled").status_code == 400

    def test_cannot_skip_to_delivered(self, client, admin, order_flow):
        response = set_status(client, admin, order_flow["order"]["id"], "delivered")
        assert response.status_code == 400


class TestCancellation:

    def test_owner_cancels_order(self, client, buyer, order_flow):
        response = client.post(f"/api/protected/orders/{order_flow['order']['id']}/cancel",
                               json={"reason": "Budget cut"}, headers=buyer.headers)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_other_buyer_cannot_cancel(self, client, other_buyer, order_flow):
        response = client.post(f"/api/protected/orders/{order_flow['order']['id']}/cancel",
                               headers=other_buyer.headers)
        assert response.status_code == 403

    def test_admin_cancels_via_status(self, client, admin, order_flow):
        response = set_status(client, admin, order_flow["order"]["id"], "cancelled")
        assert response.status_code == 200


class TestRecalculation:
    """Order totals are derived from the offer, never trusted from storage."""

    def test_recalculate_fixes_stale_total(self, client, storage, admin, order_flow):
        """unitPrice 2450 x quantity 100 gives 245000 whatever was stored."""
        order = storage.get_order(order_flow["order"]["id"])
        order.total_amount = Decimal("1.00")
        storage.save_order(order)

        response = client.post(f"/api/protected/admin/orders/{order.id}/recalculate", headers=admin.headers)
        assert response.status_code == 200
        data = response.json()
        assert as_decimal(data["previous_amount"]) == Decimal("1")
        assert as_decimal(data["new_amount"]) == Decimal("245000")
        assert data["changed"] is True
        assert storage.get_order(order.id).total_amount == Decimal("245000.00")

    def test_recalculate_is_idempotent(self, storage, admin, client, order_flow):
        order_id = order_flow["order"]["id"]
        first = lifecycle.recalculate_order_total(storage, admin.caller, order_id)
        second = lifecycle.recalculate_order_total(storage, admin.caller, order_id)
        assert first["changed"] is False
        assert second["changed"] is False
        assert second["new_amount"] == Decimal("245000.00")


class TestOrderRules:

    @pytest.mark.parametrize("current,target,allowed", [
        ("created", "deposit_paid", True),
        ("created", "confirmed", False),
        ("deposit_paid", "confirmed", True),
        ("confirmed", "production", True),
        ("production", "quality_check", True),
        ("quality_check", "production", True),
        ("quality_check", "shipped", True),
        ("created", "shipped", True),
        ("shipped", "shipped", False),
        ("shipped", "delivered", True),
        ("production", "delivered", False),
        ("delivered", "cancelled", False),
        ("cancelled", "created", False),
    ])
    def test_transition_table(self, current, target, allowed):
        assert can_transition_order(current, target) is allowed

    @pytest.mark.parametrize("value,expected", [
        ("2450", Decimal("2450.00")),
        (Decimal("0.005"), Decimal("0.01")),
        (245000, Decimal("245000.00")),
    ])
    def test_money_rounds_half_up_to_cents(self, value, expected):
        assert money(value) == expected
