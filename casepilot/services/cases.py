"""
Case lifecycle.

    pending -> in progress -> resolved -> closed
    pending -> rejected

`pending -> in progress` and `pending -> rejected` happen only through
assign (accept/reject) in the assignment engine. Cases are never deleted.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ..assignment import ClaimResult, accept_case, assigned_cases_query, reject_case
from ..auth import Principal
from ..db.models import Case, CaseStatus, CaseType
from ..errors import Forbidden, InvalidStateTransition, ValidationError
from ..policy import Action, ResourceKind, authorize, require_permission, scoped_query
from .base import parse_enum, require_text

logger = logging.getLogger(__name__)

# Status edges reachable through a plain update, with who may take them
UPDATE_EDGES = {
    (CaseStatus.IN_PROGRESS, CaseStatus.RESOLVED): {"lawyer"},
    (CaseStatus.RESOLVED, CaseStatus.CLOSED): {"lawyer", "citizen"},
}


class CaseService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, principal: Principal, title: str, description: str, case_type) -> Case:
        require_permission(principal, Action.CREATE, ResourceKind.CASE)
        case = Case(
            title=require_text(title, "title"),
            description=require_text(description, "description"),
            case_type=parse_enum(CaseType, case_type, "caseType"),
            status=CaseStatus.PENDING,
            citizen_id=principal.id,
            lawyer_id=None,
        )
        self.db.add(case)
        self.db.commit()
        self.db.refresh(case)
        logger.info(f"Case {case.id} created by citizen {principal.id}")
        return case

    def list(self, principal: Principal, status=None, case_type=None) -> List[Case]:
        query = scoped_query(self.db, principal, ResourceKind.CASE)
        if status:
            query = query.filter(Case.status == parse_enum(CaseStatus, status, "status"))
        if case_type:
            query = query.filter(Case.case_type == parse_enum(CaseType, case_type, "caseType"))
        return query.order_by(Case.created_at.desc()).all()

    def get(self, principal: Principal, case_id: str) -> Case:
        return authorize(self.db, principal, Action.READ, ResourceKind.CASE, case_id)

    def update(
        self,
        principal: Principal,
        case_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        case_type=None,
        status=None,
    ) -> Case:
        case = authorize(self.db, principal, Action.UPDATE, ResourceKind.CASE, case_id)

        if status is not None:
            target = parse_enum(CaseStatus, status, "status")
            if target != case.status:
                allowed_roles = UPDATE_EDGES.get((case.status, target))
                if allowed_roles is None:
                    logger.warning(f"Case {case.id}: rejected transition {case.status.value} -> {target.value}")
                    raise InvalidStateTransition(case.status.value)
                if principal.role.value not in allowed_roles:
                    raise Forbidden(f"Only the assigned lawyer can mark a case as {target.value}")
                case.status = target

        if title is not None:
            case.title = require_text(title, "title")
        if description is not None:
            case.description = require_text(description, "description")
        if case_type is not None:
            case.case_type = parse_enum(CaseType, case_type, "caseType")

        case.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(case)
        return case

    def assign(self, principal: Principal, case_id: str, action: str) -> ClaimResult:
        """Lawyer accepts or rejects a pending case."""
        if action not in ("accept", "reject"):
            raise ValidationError("Action must be 'accept' or 'reject'")
        authorize(self.db, principal, Action.ASSIGN, ResourceKind.CASE, case_id)

        claim = accept_case if action == "accept" else reject_case
        result = claim(self.db, case_id, principal.id)
        self.db.commit()
        self.db.refresh(result.resource)
        if not result.replayed:
            logger.info(f"Case {case_id} {action}ed by lawyer {principal.id}")
        return result

    def citizen_cases(self, principal: Principal) -> List[Case]:
        if not principal.is_citizen:
            raise Forbidden()
        return (
            self.db.query(Case)
            .filter(Case.citizen_id == principal.id)
            .order_by(Case.created_at.desc())
            .all()
        )

    def lawyer_cases(self, principal: Principal) -> List[Case]:
        if not principal.is_lawyer:
            raise Forbidden()
        return assigned_cases_query(self.db, principal.id).all()
