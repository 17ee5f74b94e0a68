"""
Document upload routes.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from jobwork.api.deps import get_storage
from jobwork.api.serializers import serialize
from jobwork.core.rbac import CurrentUser, get_current_user
from jobwork.services import documents
from jobwork.services.documents import DocumentUpload
from jobwork.storage import Storage

router = APIRouter(prefix="/api/protected/documents", tags=["Documents"])


@router.post("", status_code=201)
async def upload_document(
    data: DocumentUpload,
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Upload a base64-encoded document for the caller's company."""
    return serialize(documents.upload_document(storage, current_user, data))


@router.get("")
async def list_documents(
    doc_type: Optional[str] = Query(None, alias="docType"),
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return [serialize(d) for d in documents.list_documents(storage, current_user, doc_type)]


@router.delete("/{document_id}", status_code=204)
async def delete_document(
    document_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    documents.delete_document(storage, current_user, document_id)
