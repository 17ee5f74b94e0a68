"""
Admin dashboard metrics.
"""
from decimal import Decimal

from jobwork.storage import Storage
from jobwork.storage.entities import (
    RFQStatus, OrderStatus, SupplierProfile, VerifiedStatus, utcnow,
)

ACTIVE_RFQ_STATUSES = [
    RFQStatus.SUBMITTED.value,
    RFQStatus.UNDER_REVIEW.value,
    RFQStatus.INVITED.value,
    RFQStatus.QUOTED.value,
    RFQStatus.OFFERS_PUBLISHED.value,
]


def admin_metrics(storage: Storage) -> dict:
    active_rfqs = sum(len(storage.list_rfqs(status=s)) for s in ACTIVE_RFQ_STATUSES)

    verified = [
        p for p in storage.find(SupplierProfile)
        if p.verified_status != VerifiedStatus.UNVERIFIED.value
    ]

    now = utcnow()
    orders = storage.list_orders()
    monthly_volume = sum(
        (Decimal(o.total_amount) for o in orders
         if o.created_at.year == now.year and o.created_at.month == now.month),
        Decimal("0"),
    )
    delivered = sum(1 for o in orders if o.status == OrderStatus.DELIVERED.value)
    success_rate = round(delivered / len(orders) * 100, 2) if orders else 0.0

    return {
        "activeRFQs": active_rfqs,
        "verifiedSuppliers": len(verified),
        "monthlyVolume": float(monthly_volume),
        "successRate": success_rate,
    }
