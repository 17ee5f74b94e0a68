"""
SKU catalog API routes. Public and read-only.
"""
from fastapi import APIRouter, Depends

from jobwork.api.deps import get_storage
from jobwork.api.serializers import serialize
from jobwork.core.errors import NotFound
from jobwork.storage import Storage

router = APIRouter(prefix="/api/skus", tags=["SKUs"])


@router.get("")
async def list_skus(storage: Storage = Depends(get_storage)):
    return [serialize(s) for s in storage.list_skus()]


@router.get("/industry/{industry}")
async def list_skus_by_industry(industry: str, storage: Storage = Depends(get_storage)):
    return [serialize(s) for s in storage.list_skus_by_industry(industry)]


@router.get("/{code}")
async def get_sku(code: str, storage: Storage = Depends(get_storage)):
    sku = storage.get_sku(code)
    if sku is None:
        raise NotFound("SKU")
    return serialize(sku)
