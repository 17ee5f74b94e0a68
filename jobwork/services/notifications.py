"""
In-app notifications.

Lifecycle operations create these as side effects; users read and dismiss
their own.
"""
from typing import List, Optional

from jobwork.core.errors import NotFound
from jobwork.core.logging import get_logger
from jobwork.storage import Storage
from jobwork.storage.entities import Notification, NotificationType, UserRole

logger = get_logger(__name__)


def notify(
    storage: Storage,
    user_id: str,
    type: NotificationType,
    title: str,
    message: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
) -> Notification:
    return storage.create_notification(Notification(
        user_id=user_id,
        type=type.value,
        title=title,
        message=message,
        entity_type=entity_type,
        entity_id=entity_id,
    ))


def notify_admins(storage: Storage, type: NotificationType, title: str, message: str,
                  entity_type: Optional[str] = None, entity_id: Optional[str] = None) -> int:
    admins = storage.list_users(role=UserRole.ADMIN.value)
    for admin in admins:
        notify(storage, admin.id, type, title, message, entity_type, entity_id)
    if not admins:
        logger.warning(f"No admin accounts to notify for {type.value}")
    return len(admins)


def notify_company_users(storage: Storage, company_id: str, role: UserRole,
                         type: NotificationType, title: str, message: str,
                         entity_type: Optional[str] = None,
                         entity_id: Optional[str] = None) -> int:
    recipients = [u for u in storage.list_users(role=role.value) if u.company_id == company_id]
    for user in recipients:
        notify(storage, user.id, type, title, message, entity_type, entity_id)
    return len(recipients)


# ============= READ STATE =============

def list_for_user(storage: Storage, user_id: str, unread_only: bool = False) -> List[Notification]:
    return storage.list_notifications(user_id, unread_only=unread_only)


def mark_read(storage: Storage, user_id: str, notification_id: str) -> Notification:
    notification = storage.get(Notification, notification_id)
    # Another user's notification is reported as missing
    if notification is None or notification.user_id != user_id:
        raise NotFound("Notification")
    if notification.is_read:
        return notification
    return storage.mark_notification_read(notification)


def mark_all_read(storage: Storage, user_id: str) -> int:
    with storage.transaction():
        unread = storage.list_notifications(user_id, unread_only=True)
        for notification in unread:
            storage.mark_notification_read(notification)
    return len(unread)
