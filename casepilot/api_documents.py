"""
Document API Endpoints
======================

- POST   /api/v1/documents                        - Upload (multipart)
- GET    /api/v1/documents                        - Own and shared documents
- GET    /api/v1/documents/clients/all            - Lawyer's client documents
- GET    /api/v1/documents/{id}                   - Get document
- GET    /api/v1/documents/{id}/download          - Download link
- PUT    /api/v1/documents/{id}                   - Update metadata
- PATCH  /api/v1/documents/{id}/review            - Approve or reject
- POST   /api/v1/documents/{id}/share             - Share / visibility
- DELETE /api/v1/documents/{id}/share/{principal} - Remove a share
- DELETE /api/v1/documents/{id}                   - Delete (owner)
"""

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .auth import Principal
from .dependencies import get_current_principal, get_db_dependency, get_storage_dependency, require_lawyer
from .serializers import document_to_dict, envelope, list_envelope
from .services import DocumentService
from .storage import BlobStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class DocumentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None


class DocumentReview(BaseModel):
    status: Literal["approved", "rejected"]


class ShareEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    principal_id: str = Field(..., alias="principalId")
    principal_kind: Literal["citizen", "lawyer"] = Field(..., alias="principalKind")
    permission: Literal["read", "edit"] = "read"


class DocumentShareRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_public: Optional[bool] = Field(None, alias="isPublic")
    shared_with: List[ShareEntry] = Field(default_factory=list, alias="sharedWith")


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("", status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    case_id: Optional[str] = Form(None, alias="caseId"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
    storage: BlobStorage = Depends(get_storage_dependency),
):
    data = await file.read()
    doc = DocumentService(db, storage).upload(
        principal,
        filename=file.filename or "upload",
        data=data,
        content_type=file.content_type,
        title=title,
        description=description,
        category=category,
        tags=tags,
        case_id=case_id,
    )
    return envelope("Document uploaded successfully", document_to_dict(doc))


@router.get("")
def list_documents(
    category: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    case_id: Optional[str] = Query(None, alias="caseId"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    docs = DocumentService(db).list(principal, category=category, status=status, case_id=case_id)
    return list_envelope("Documents retrieved successfully", [document_to_dict(d) for d in docs])


@router.get("/clients/all")
def list_client_documents(
    principal: Principal = Depends(require_lawyer),
    db: Session = Depends(get_db_dependency),
):
    docs = DocumentService(db).client_documents(principal)
    return list_envelope("Client documents retrieved successfully", [document_to_dict(d) for d in docs])


@router.get("/{document_id}")
def get_document(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    doc = DocumentService(db).get(principal, document_id)
    return envelope("Document retrieved successfully", document_to_dict(doc))


@router.get("/{document_id}/download")
def download_document(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    doc = DocumentService(db).get(principal, document_id)
    return envelope(
        "Download link generated",
        {"downloadUrl": doc.file_url, "fileName": doc.file_name, "fileType": doc.file_type},
    )


@router.put("/{document_id}")
def update_document(
    document_id: str,
    body: DocumentUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    doc = DocumentService(db).update(
        principal, document_id,
        title=body.title, description=body.description, category=body.category, tags=body.tags,
    )
    return envelope("Document updated successfully", document_to_dict(doc))


@router.patch("/{document_id}/review")
def review_document(
    document_id: str,
    body: DocumentReview,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    doc = DocumentService(db).review(principal, document_id, body.status)
    return envelope(f"Document {body.status}", document_to_dict(doc))


@router.post("/{document_id}/share")
def share_document(
    document_id: str,
    body: DocumentShareRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    doc = DocumentService(db).share(
        principal, document_id,
        is_public=body.is_public,
        shares=[
            {"principalId": s.principal_id, "principalKind": s.principal_kind, "permission": s.permission}
            for s in body.shared_with
        ],
    )
    return envelope("Document sharing updated", document_to_dict(doc))


@router.delete("/{document_id}/share/{principal_id}")
def unshare_document(
    document_id: str,
    principal_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    doc = DocumentService(db).unshare(principal, document_id, principal_id)
    return envelope("Share removed", document_to_dict(doc))


@router.delete("/{document_id}")
def delete_document(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
    storage: BlobStorage = Depends(get_storage_dependency),
):
    DocumentService(db, storage).delete(principal, document_id)
    return envelope("Document deleted successfully")
