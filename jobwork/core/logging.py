"""
JSON logging for the marketplace, with secrets and file payloads redacted.

Audit events carry who acted (user, role, company) and on what (entity type
and id) as structured fields, so log search can follow one RFQ or order
across its lifecycle.
"""
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Optional

from jobwork.core.config import settings

REDACTED = "***REDACTED***"

# key=value or "key": "value" pairs inside free text
_SECRET_IN_TEXT = re.compile(
    r'(password|secret|token|authorization|file_?data)["\']?\s*[:=]\s*["\']?[^\s,;"\'{}]+',
    re.IGNORECASE,
)

_SECRET_KEYS = frozenset({
    "password", "hashed_password", "secret_key", "token", "access_token",
    "authorization", "file_data", "filedata", "bank_details",
})

# Structured fields copied from a record's ``extra``
AUDIT_FIELDS = ("user_id", "role", "company_id", "action", "entity_type", "entity_id")


def scrub(value):
    """Redact secrets in nested dicts and lists, and in strings."""
    if isinstance(value, dict):
        return {k: REDACTED if k.lower() in _SECRET_KEYS else scrub(v) for k, v in value.items()}
    if isinstance(value, list):
        return [scrub(v) for v in value]
    if isinstance(value, str):
        return _SECRET_IN_TEXT.sub(lambda m: f"{m.group(1)}={REDACTED}", value)
    return value


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": scrub(record.getMessage()),
        }
        for key in AUDIT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info:
            entry["exception"] = scrub(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


def setup_logging():
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class AuditLogger:
    """
    Emits audit events on the ``jobwork.audit`` logger.

    ``actor`` is any object with ``id``, ``role`` and ``company_id``: the
    authenticated caller, or a freshly registered user.
    """

    def __init__(self):
        self.logger = get_logger("jobwork.audit")

    def log(self, action: str, actor=None, entity_type: Optional[str] = None,
            entity_id: Optional[str] = None, details: Optional[dict] = None):
        extra = {
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "user_id": getattr(actor, "id", None),
            "role": getattr(actor, "role", None),
            "company_id": getattr(actor, "company_id", None),
        }
        message = f"AUDIT {action}"
        if entity_type and entity_id:
            message += f" {entity_type}:{entity_id}"
        if details:
            message += f" {json.dumps(scrub(details), default=str)}"
        self.logger.info(message, extra=extra)


audit_logger = AuditLogger()
