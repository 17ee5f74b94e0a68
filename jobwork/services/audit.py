"""
Audit trail: every state-changing action is persisted and logged.
"""
from typing import Optional

from jobwork.core.logging import audit_logger
from jobwork.storage import Storage
from jobwork.storage.entities import AuditLog


def record_audit(
    storage: Storage,
    action: str,
    actor,
    entity_type: str,
    entity_id: str,
    details: Optional[dict] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """
    Store an ``AuditLog`` row and emit the matching audit log line.

    ``actor`` is the caller (or the user just registered); its role and
    company travel with the log line.
    """
    entry = storage.add_audit_log(AuditLog(
        action=action,
        user_id=actor.id if actor is not None else None,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
        ip_address=ip_address,
    ))
    audit_logger.log(
        action=action,
        actor=actor,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    return entry
