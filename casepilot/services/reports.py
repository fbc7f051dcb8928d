"""
Report lifecycle.

draft -> final is one-way. Final reports become visible to the principals
linked to the report's case; only the owner can edit them afterwards.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.orm import Session

from ..auth import Principal, find_identity
from ..db.models import Case, Report, ReportShare, ReportStatus, ReportType, Role, SharePermission
from ..errors import Forbidden, InvalidStateTransition, NotFound, ValidationError
from ..policy import Action, ResourceKind, authorize, require_permission, scoped_query
from .base import normalize_tags, parse_enum, require_text

logger = logging.getLogger(__name__)


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        principal: Principal,
        title: str,
        content: str,
        report_type=None,
        case_id: Optional[str] = None,
        case_name: Optional[str] = None,
        tags=None,
    ) -> Report:
        require_permission(principal, Action.CREATE, ResourceKind.REPORT)
        if case_id:
            case = authorize(self.db, principal, Action.READ, ResourceKind.CASE, case_id)
            case_name = case_name or case.title

        now = datetime.utcnow()
        report = Report(
            title=require_text(title, "title"),
            content=require_text(content, "content"),
            report_type=parse_enum(ReportType, report_type or ReportType.OTHER, "reportType"),
            status=ReportStatus.DRAFT,
            created_by_id=principal.id,
            created_by_kind=principal.role,
            case_id=case_id or None,
            case_name=case_name,
            tags=normalize_tags(tags),
            created_at=now,
            updated_at=now,
            last_modified=now,
        )
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        return report

    def list(self, principal: Principal, status=None, report_type=None) -> List[Report]:
        query = scoped_query(self.db, principal, ResourceKind.REPORT)
        if status:
            query = query.filter(Report.status == parse_enum(ReportStatus, status, "status"))
        if report_type:
            query = query.filter(Report.report_type == parse_enum(ReportType, report_type, "reportType"))
        return query.order_by(Report.updated_at.desc()).all()

    def get(self, principal: Principal, report_id: str) -> Report:
        return authorize(self.db, principal, Action.READ, ResourceKind.REPORT, report_id)

    def update(self, principal: Principal, report_id: str, **changes) -> Report:
        report = authorize(self.db, principal, Action.UPDATE, ResourceKind.REPORT, report_id)

        if changes.get("status") is not None:
            target = parse_enum(ReportStatus, changes["status"], "status")
            if target != report.status:
                # draft -> final goes through finalize; final never returns to draft
                raise InvalidStateTransition(report.status.value)
        if changes.get("title") is not None:
            report.title = require_text(changes["title"], "title")
        if changes.get("content") is not None:
            report.content = require_text(changes["content"], "content")
        if changes.get("report_type") is not None:
            report.report_type = parse_enum(ReportType, changes["report_type"], "reportType")
        if changes.get("tags") is not None:
            report.tags = normalize_tags(changes["tags"])
        if changes.get("case_name") is not None:
            report.case_name = changes["case_name"]

        now = datetime.utcnow()
        report.updated_at = now
        report.last_modified = now
        self.db.commit()
        self.db.refresh(report)
        return report

    def finalize(self, principal: Principal, report_id: str) -> Report:
        report = authorize(self.db, principal, Action.FINALIZE, ResourceKind.REPORT, report_id)
        now = datetime.utcnow()
        result = self.db.execute(
            update(Report)
            .where(Report.id == report.id, Report.status == ReportStatus.DRAFT)
            .values(status=ReportStatus.FINAL, updated_at=now, last_modified=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(report)
        if result.rowcount != 1:
            raise InvalidStateTransition(report.status.value, "Report is already finalized")
        logger.info(f"Report {report.id} finalized by {principal.id}")
        return report

    def share(self, principal: Principal, report_id: str, target_id: str, target_kind, permission=None) -> Report:
        """Share with one principal; re-sharing overwrites the permission."""
        report = authorize(self.db, principal, Action.SHARE, ResourceKind.REPORT, report_id)
        kind = parse_enum(Role, target_kind, "principalKind")
        permission = parse_enum(SharePermission, permission or SharePermission.READ, "permission")
        if (kind, target_id) == (principal.role, principal.id):
            raise ValidationError("Cannot share a report with yourself")
        if find_identity(self.db, kind, target_id) is None:
            raise NotFound("User to share with not found")

        existing = self.db.get(ReportShare, (report.id, target_id))
        if existing:
            existing.permission = permission
            existing.principal_kind = kind
        else:
            self.db.add(ReportShare(
                report_id=report.id, principal_id=target_id, principal_kind=kind, permission=permission,
            ))
        report.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(report)
        return report

    def delete(self, principal: Principal, report_id: str) -> None:
        report = authorize(self.db, principal, Action.DELETE, ResourceKind.REPORT, report_id)
        self.db.delete(report)
        self.db.commit()

    def shared_with_citizen(self, principal: Principal) -> List[Report]:
        """Final reports from the lawyers of this citizen's cases, plus explicit shares."""
        if not principal.is_citizen:
            raise Forbidden()
        my_lawyers = select(Case.lawyer_id).where(Case.citizen_id == principal.id, Case.lawyer_id.isnot(None))
        shared = select(ReportShare.report_id).where(
            ReportShare.principal_kind == Role.CITIZEN, ReportShare.principal_id == principal.id
        )
        return (
            self.db.query(Report)
            .filter(
                (Report.id.in_(shared))
                | and_(
                    Report.status == ReportStatus.FINAL,
                    Report.created_by_kind == Role.LAWYER,
                    Report.created_by_id.in_(my_lawyers),
                )
            )
            .order_by(Report.updated_at.desc())
            .all()
        )
