"""
Document uploads.

Clients send file content base64-encoded in JSON. Size limits apply to
the decoded byte count (estimated from the encoded length before decoding);
the size the client reports is ignored.
"""
import base64
import binascii
import hashlib
from typing import List, Optional

from pydantic import Field

from jobwork.core.config import settings
from jobwork.core.errors import NotFound, PermissionDenied, ValidationFailed
from jobwork.core.logging import get_logger
from jobwork.core.rbac import CurrentUser
from jobwork.services.audit import record_audit
from jobwork.services.lifecycle import CommandModel
from jobwork.storage import Storage
from jobwork.storage.entities import Document

logger = get_logger(__name__)


class DocumentUpload(CommandModel):
    doc_type: str = Field(..., min_length=1, max_length=100)
    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=1, max_length=100)
    file_data: str = Field(..., min_length=1)
    # Client-reported; never trusted
    size: Optional[int] = None


def size_limit(content_type: str) -> int:
    if content_type.lower().startswith("image/"):
        return settings.MAX_IMAGE_UPLOAD_BYTES
    return settings.MAX_DOCUMENT_UPLOAD_BYTES


def _too_large(limit: int) -> ValidationFailed:
    return ValidationFailed.for_field("fileData", f"File exceeds the {limit // (1024 * 1024)} MB limit")


def decode_file_data(file_data: str, max_bytes: Optional[int] = None) -> bytes:
    """
    Decode base64 content, tolerating a ``data:...;base64,`` prefix.

    With ``max_bytes``, a payload whose encoded length already implies more
    bytes than that is rejected without being decoded.
    """
    payload = file_data.strip()
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    if max_bytes is not None:
        padding = len(payload) - len(payload.rstrip("="))
        if len(payload) * 3 // 4 - padding > max_bytes:
            raise _too_large(max_bytes)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationFailed.for_field("fileData", "File data is not valid base64")


def upload_document(storage: Storage, caller: CurrentUser, data: DocumentUpload) -> Document:
    limit = size_limit(data.content_type)
    content = decode_file_data(data.file_data, max_bytes=limit)
    if len(content) > limit:
        raise _too_large(limit)
    if not content:
        raise ValidationFailed.for_field("fileData", "File is empty")

    digest = hashlib.sha256(content).hexdigest()
    document = storage.create_document(Document(
        company_id=caller.company_id,
        doc_type=data.doc_type,
        file_name=data.file_name,
        content_type=data.content_type,
        size_bytes=len(content),
        sha256=digest,
        file_ref=f"doc://{digest}",
        uploaded_by=caller.id,
    ))
    record_audit(storage, "document_uploaded", caller, "document", document.id,
                 {"doc_type": document.doc_type, "size_bytes": document.size_bytes})
    if data.size is not None and data.size != len(content):
        logger.warning(
            f"Document {document.id}: client reported {data.size} bytes, decoded {len(content)}"
        )
    return document


def list_documents(storage: Storage, caller: CurrentUser,
                   doc_type: Optional[str] = None) -> List[Document]:
    if caller.company_id:
        return storage.list_documents(company_id=caller.company_id, doc_type=doc_type)
    return storage.list_documents(uploaded_by=caller.id, doc_type=doc_type)


def delete_document(storage: Storage, caller: CurrentUser, document_id: str) -> None:
    document = storage.get_document(document_id)
    if document is None:
        raise NotFound("Document")
    owns = (document.company_id is not None and document.company_id == caller.company_id) \
        or document.uploaded_by == caller.id
    if not owns and not caller.is_admin:
        raise PermissionDenied("Access denied to this document")
    storage.delete_document(document.id)
    record_audit(storage, "document_deleted", caller, "document", document.id)
