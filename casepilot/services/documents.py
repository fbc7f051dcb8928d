"""
Document lifecycle.

Owner-only mutation with explicit shares. Review status moves one way:
pending -> approved | rejected.
"""

import logging
import os
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import Principal, find_identity
from ..config import get_settings
from ..db.models import (
    Case, Document, DocumentCategory, DocumentShare, DocumentStatus, Role, SharePermission,
)
from ..errors import Forbidden, InvalidStateTransition, NotFound, UpstreamFailure, ValidationError
from ..policy import Action, ResourceKind, authorize, require_permission, scoped_query
from ..storage import BlobStorage
from .base import normalize_tags, parse_enum, require_text

logger = logging.getLogger(__name__)

REVIEW_OUTCOMES = (DocumentStatus.APPROVED, DocumentStatus.REJECTED)


class DocumentService:
    def __init__(self, db: Session, storage: Optional[BlobStorage] = None):
        self.db = db
        self.storage = storage
        self.settings = get_settings()

    def _validate_file(self, filename: str, data: bytes) -> None:
        if not data:
            raise ValidationError("No file uploaded")
        if len(data) > self.settings.max_upload_bytes:
            limit_mb = self.settings.max_upload_bytes // (1024 * 1024)
            raise ValidationError(f"File exceeds the {limit_mb}MB size limit")
        ext = os.path.splitext(filename or "")[1].lower().lstrip(".")
        if ext not in self.settings.upload_extensions():
            raise ValidationError(f"File type '.{ext}' is not allowed" if ext else "File has no extension")

    def upload(
        self,
        principal: Principal,
        filename: str,
        data: bytes,
        content_type: Optional[str],
        title: Optional[str] = None,
        description: Optional[str] = None,
        category=None,
        tags=None,
        case_id: Optional[str] = None,
    ) -> Document:
        require_permission(principal, Action.CREATE, ResourceKind.DOCUMENT)
        self._validate_file(filename, data)
        category = parse_enum(DocumentCategory, category or DocumentCategory.OTHER, "category")
        if case_id:
            authorize(self.db, principal, Action.READ, ResourceKind.CASE, case_id)

        key = self.storage.generate_key(principal.id, case_id or "general", filename)
        try:
            meta = self.storage.put(key, data, content_type)
        except (OSError, ValueError) as e:
            logger.error(f"Blob store upload failed for {principal.id}: {e}")
            raise UpstreamFailure()

        doc = Document(
            title=(title or "").strip() or filename,
            description=description,
            category=category,
            file_name=filename,
            file_type=content_type or "application/octet-stream",
            file_size=meta.size_bytes,
            file_url=meta.url,
            blob_public_id=meta.key,
            status=DocumentStatus.PENDING,
            tags=normalize_tags(tags),
            owner_id=principal.id,
            owner_kind=principal.role,
            case_id=case_id or None,
            is_public=False,
        )
        try:
            self.db.add(doc)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Document record for blob {meta.key} could not be saved; removing the blob")
            self._discard_blob(meta.key)
            raise
        self.db.refresh(doc)
        logger.info(f"Document {doc.id} uploaded by {principal.role.value} {principal.id}")
        return doc

    def _discard_blob(self, key: str) -> None:
        try:
            self.storage.delete(key)
        except Exception as e:
            logger.warning(f"Failed to delete blob {key}: {e}")

    def list(self, principal: Principal, category=None, status=None, case_id: Optional[str] = None) -> List[Document]:
        query = scoped_query(self.db, principal, ResourceKind.DOCUMENT)
        if category:
            query = query.filter(Document.category == parse_enum(DocumentCategory, category, "category"))
        if status:
            query = query.filter(Document.status == parse_enum(DocumentStatus, status, "status"))
        if case_id:
            query = query.filter(Document.case_id == case_id)
        return query.order_by(Document.created_at.desc()).all()

    def get(self, principal: Principal, document_id: str) -> Document:
        return authorize(self.db, principal, Action.READ, ResourceKind.DOCUMENT, document_id)

    def update(
        self,
        principal: Principal,
        document_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        category=None,
        tags=None,
    ) -> Document:
        doc = authorize(self.db, principal, Action.UPDATE, ResourceKind.DOCUMENT, document_id)
        if title is not None:
            doc.title = require_text(title, "title")
        if description is not None:
            doc.description = description
        if category is not None:
            doc.category = parse_enum(DocumentCategory, category, "category")
        if tags is not None:
            doc.tags = normalize_tags(tags)
        doc.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(doc)
        return doc

    def review(self, principal: Principal, document_id: str, status) -> Document:
        doc = authorize(self.db, principal, Action.REVIEW, ResourceKind.DOCUMENT, document_id)
        target = parse_enum(DocumentStatus, status, "status")
        if target not in REVIEW_OUTCOMES:
            raise ValidationError("Review status must be 'approved' or 'rejected'")

        result = self.db.execute(
            update(Document)
            .where(Document.id == doc.id, Document.status == DocumentStatus.PENDING)
            .values(status=target, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(doc)
        if result.rowcount != 1:
            raise InvalidStateTransition(doc.status.value)
        return doc

    def share(self, principal: Principal, document_id: str, is_public: Optional[bool] = None, shares=None) -> Document:
        """
        Update visibility. `shares` is a list of dicts with principalId,
        principalKind and permission; existing entries are overwritten.
        """
        doc = authorize(self.db, principal, Action.SHARE, ResourceKind.DOCUMENT, document_id)
        if is_public is not None:
            doc.is_public = bool(is_public)

        for entry in shares or []:
            kind = parse_enum(Role, entry.get("principalKind"), "principalKind")
            target_id = entry.get("principalId")
            permission = parse_enum(SharePermission, entry.get("permission") or SharePermission.READ, "permission")
            if (kind, target_id) == (principal.role, principal.id):
                raise ValidationError("Cannot share a document with yourself")
            if find_identity(self.db, kind, target_id) is None:
                raise NotFound("User to share with not found")

            existing = self.db.get(DocumentShare, (doc.id, target_id))
            if existing:
                existing.permission = permission
                existing.principal_kind = kind
            else:
                self.db.add(DocumentShare(
                    document_id=doc.id, principal_id=target_id, principal_kind=kind, permission=permission,
                ))

        doc.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(doc)
        return doc

    def unshare(self, principal: Principal, document_id: str, target_id: str) -> Document:
        doc = authorize(self.db, principal, Action.SHARE, ResourceKind.DOCUMENT, document_id)
        existing = self.db.get(DocumentShare, (doc.id, target_id))
        if existing is None:
            raise NotFound("Share not found")
        self.db.delete(existing)
        doc.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(doc)
        return doc

    def delete(self, principal: Principal, document_id: str) -> None:
        doc = authorize(self.db, principal, Action.DELETE, ResourceKind.DOCUMENT, document_id)
        blob_key = doc.blob_public_id
        self.db.delete(doc)
        self.db.commit()
        logger.info(f"Document {document_id} deleted by {principal.id}")

        if blob_key and self.storage is not None:
            self._discard_blob(blob_key)

    def client_documents(self, principal: Principal) -> List[Document]:
        """Documents of the citizens whose cases this lawyer holds."""
        if not principal.is_lawyer:
            raise Forbidden()
        my_cases = select(Case.id).where(Case.lawyer_id == principal.id)
        my_clients = select(Case.citizen_id).where(Case.lawyer_id == principal.id)
        return (
            self.db.query(Document)
            .filter(or_(
                Document.case_id.in_(my_cases),
                (Document.owner_kind == Role.CITIZEN) & Document.owner_id.in_(my_clients),
            ))
            .order_by(Document.created_at.desc())
            .all()
        )
