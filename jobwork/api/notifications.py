"""
Notification inbox routes.
"""
from fastapi import APIRouter, Depends, Query

from jobwork.api.deps import get_storage
from jobwork.api.serializers import serialize
from jobwork.core.rbac import CurrentUser, get_current_user
from jobwork.services import notifications
from jobwork.storage import Storage

router = APIRouter(prefix="/api/protected/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    items = notifications.list_for_user(storage, current_user.id, unread_only=unread_only)
    return [serialize(n) for n in items]


@router.post("/read-all")
async def mark_all_read(
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return {"updated": notifications.mark_all_read(storage, current_user.id)}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return serialize(notifications.mark_read(storage, current_user.id, notification_id))
