"""
Role Policy Evaluator
=====================

Maps (principal, action, resource kind) to a Decision:
- `allowed`: the role carries the `resource:action` permission
- `scope_filter`: SQLAlchemy clause restricting which rows the principal may
  act on (None = no row restriction)

List endpoints apply the scope filter to their query; detail endpoints go
through `authorize`, which applies the detail scope (wider than the list
scope for public documents and final reports) and then the action scope.

Failure rules:
- permission missing -> Forbidden
- row absent or outside the read scope -> NotFound
- row readable but outside the action scope -> Forbidden
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy import and_, or_, select, true
from sqlalchemy.orm import Session

from .auth import Principal
from .db.models import (
    Case, Dispute, DisputeNotification, Document, DocumentShare, Reminder, Report,
    ReportShare, Role, AssignmentStatus, PartyKind, ReportStatus, SharePermission,
)
from .errors import Forbidden, NotFound

logger = logging.getLogger(__name__)


# =============================================================================
# PERMISSION TYPES
# =============================================================================

class ResourceKind(str, Enum):
    CASE = "case"
    DISPUTE = "dispute"
    DOCUMENT = "document"
    REMINDER = "reminder"
    REPORT = "report"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    ASSIGN = "assign"
    ESCALATE = "escalate"
    MESSAGE = "message"
    SHARE = "share"
    REVIEW = "review"
    FINALIZE = "finalize"


class Permission(str, Enum):
    """Available permissions in the system"""
    # Case permissions
    CASE_CREATE = "case:create"
    CASE_READ = "case:read"
    CASE_UPDATE = "case:update"
    CASE_ASSIGN = "case:assign"

    # Dispute permissions
    DISPUTE_CREATE = "dispute:create"
    DISPUTE_READ = "dispute:read"
    DISPUTE_UPDATE = "dispute:update"
    DISPUTE_MESSAGE = "dispute:message"
    DISPUTE_ASSIGN = "dispute:assign"
    DISPUTE_ESCALATE = "dispute:escalate"

    # Document permissions
    DOCUMENT_CREATE = "document:create"
    DOCUMENT_READ = "document:read"
    DOCUMENT_UPDATE = "document:update"
    DOCUMENT_DELETE = "document:delete"
    DOCUMENT_SHARE = "document:share"
    DOCUMENT_REVIEW = "document:review"

    # Reminder permissions
    REMINDER_CREATE = "reminder:create"
    REMINDER_READ = "reminder:read"
    REMINDER_UPDATE = "reminder:update"
    REMINDER_DELETE = "reminder:delete"

    # Report permissions
    REPORT_CREATE = "report:create"
    REPORT_READ = "report:read"
    REPORT_UPDATE = "report:update"
    REPORT_DELETE = "report:delete"
    REPORT_SHARE = "report:share"
    REPORT_FINALIZE = "report:finalize"


_SHARED_PERMISSIONS = {
    Permission.CASE_READ, Permission.CASE_UPDATE,
    Permission.DISPUTE_CREATE, Permission.DISPUTE_READ,
    Permission.DISPUTE_UPDATE, Permission.DISPUTE_MESSAGE,
    Permission.DOCUMENT_CREATE, Permission.DOCUMENT_READ, Permission.DOCUMENT_UPDATE,
    Permission.DOCUMENT_DELETE, Permission.DOCUMENT_SHARE, Permission.DOCUMENT_REVIEW,
    Permission.REMINDER_CREATE, Permission.REMINDER_READ,
    Permission.REMINDER_UPDATE, Permission.REMINDER_DELETE,
    Permission.REPORT_CREATE, Permission.REPORT_READ, Permission.REPORT_UPDATE,
    Permission.REPORT_DELETE, Permission.REPORT_SHARE, Permission.REPORT_FINALIZE,
}

# Role to permissions mapping
ROLE_PERMISSIONS = {
    Role.CITIZEN: _SHARED_PERMISSIONS | {Permission.CASE_CREATE},
    Role.LAWYER: _SHARED_PERMISSIONS | {
        Permission.CASE_ASSIGN, Permission.DISPUTE_ASSIGN, Permission.DISPUTE_ESCALATE,
    },
}

RESOURCE_MODELS = {
    ResourceKind.CASE: Case,
    ResourceKind.DISPUTE: Dispute,
    ResourceKind.DOCUMENT: Document,
    ResourceKind.REMINDER: Reminder,
    ResourceKind.REPORT: Report,
}


def permission_for(action: Action, kind: ResourceKind) -> Optional[Permission]:
    try:
        return Permission(f"{ResourceKind(kind).value}:{Action(action).value}")
    except ValueError:
        return None


def has_permission(role: Role, permission: Optional[Permission]) -> bool:
    return permission is not None and permission in ROLE_PERMISSIONS.get(Role(role), set())


@dataclass(frozen=True)
class Decision:
    allowed: bool
    scope_filter: Optional[object] = None


# =============================================================================
# ROW SCOPES
# =============================================================================

def _lawyer_case_ids(lawyer_id: str):
    return select(Case.id).where(Case.lawyer_id == lawyer_id)


def _citizen_case_ids(citizen_id: str):
    return select(Case.id).where(Case.citizen_id == citizen_id)


def _my_case_ids(principal: Principal):
    if principal.is_lawyer:
        return _lawyer_case_ids(principal.id)
    return _citizen_case_ids(principal.id)


def _case_scope(principal: Principal, action: Action):
    me = principal.id
    if action == Action.READ:
        if principal.is_citizen:
            return Case.citizen_id == me
        return or_(Case.lawyer_id.is_(None), Case.lawyer_id == me)
    if action == Action.UPDATE:
        if principal.is_citizen:
            return Case.citizen_id == me
        return Case.lawyer_id == me
    # create, assign: eligibility is decided by the assignment engine
    return None


def _dispute_creator(principal: Principal):
    return and_(Dispute.created_by_kind == principal.role, Dispute.created_by_id == principal.id)


def dispute_participant_filter(principal: Principal):
    """Creator or assigned lawyer."""
    if principal.is_lawyer:
        return or_(_dispute_creator(principal), Dispute.assigned_lawyer_id == principal.id)
    return _dispute_creator(principal)


def dispute_available_filter():
    """Unassigned disputes any lawyer may claim."""
    return and_(
        Dispute.assigned_lawyer_id.is_(None),
        Dispute.assignment_status.in_([AssignmentStatus.UNASSIGNED, AssignmentStatus.DECLINED]),
    )


def _dispute_scope(principal: Principal, action: Action):
    me = principal.id
    if action == Action.READ:
        if principal.is_citizen:
            return or_(
                _dispute_creator(principal),
                and_(Dispute.plaintiff_kind == Role.CITIZEN, Dispute.plaintiff_id == me),
                and_(Dispute.defendant_kind == PartyKind.CITIZEN, Dispute.defendant_id == me),
            )
        notified = select(DisputeNotification.dispute_id).where(
            DisputeNotification.recipient_kind == Role.LAWYER,
            DisputeNotification.recipient_id == me,
        )
        return or_(
            Dispute.assigned_lawyer_id == me,
            _dispute_creator(principal),
            dispute_available_filter(),
            Dispute.id.in_(notified),
        )
    if action in (Action.UPDATE, Action.MESSAGE):
        return dispute_participant_filter(principal)
    if action == Action.ESCALATE:
        return Dispute.assigned_lawyer_id == me
    return None


def _owned_by(model, principal: Principal, kind_col: str = "owner_kind", id_col: str = "owner_id"):
    return and_(getattr(model, kind_col) == principal.role, getattr(model, id_col) == principal.id)


def _document_shared_with(principal: Principal, permission: Optional[SharePermission] = None):
    shared = select(DocumentShare.document_id).where(
        DocumentShare.principal_kind == principal.role,
        DocumentShare.principal_id == principal.id,
    )
    if permission is not None:
        shared = shared.where(DocumentShare.permission == permission)
    return Document.id.in_(shared)


def _document_scope(principal: Principal, action: Action, detail: bool):
    owner = _owned_by(Document, principal)
    if action == Action.READ:
        if not detail:
            return or_(owner, _document_shared_with(principal))
        clauses = [owner, _document_shared_with(principal), Document.is_public == True]
        if principal.is_lawyer:
            clauses.append(Document.case_id.in_(_lawyer_case_ids(principal.id)))
            clauses.append(and_(
                Document.owner_kind == Role.CITIZEN,
                Document.owner_id.in_(
                    select(Case.citizen_id).where(Case.lawyer_id == principal.id)
                ),
            ))
        return or_(*clauses)
    if action == Action.UPDATE:
        return or_(owner, _document_shared_with(principal, SharePermission.EDIT))
    if action == Action.REVIEW:
        if principal.is_lawyer:
            return or_(owner, Document.case_id.in_(_lawyer_case_ids(principal.id)))
        return owner
    if action in (Action.DELETE, Action.SHARE):
        return owner
    return None


def _reminder_scope(principal: Principal, action: Action):
    if action == Action.CREATE:
        return None
    return _owned_by(Reminder, principal)


def _report_shared_with(principal: Principal, permission: Optional[SharePermission] = None):
    shared = select(ReportShare.report_id).where(
        ReportShare.principal_kind == principal.role,
        ReportShare.principal_id == principal.id,
    )
    if permission is not None:
        shared = shared.where(ReportShare.permission == permission)
    return Report.id.in_(shared)


def _report_scope(principal: Principal, action: Action, detail: bool):
    owner = _owned_by(Report, principal, "created_by_kind", "created_by_id")
    if action == Action.READ:
        if not detail:
            return or_(owner, _report_shared_with(principal))
        clauses = [
            owner,
            _report_shared_with(principal),
            and_(Report.status == ReportStatus.FINAL, Report.case_id.in_(_my_case_ids(principal))),
        ]
        if principal.is_citizen:
            my_lawyers = select(Case.lawyer_id).where(
                Case.citizen_id == principal.id, Case.lawyer_id.isnot(None)
            )
            clauses.append(and_(
                Report.status == ReportStatus.FINAL,
                Report.created_by_kind == Role.LAWYER,
                Report.created_by_id.in_(my_lawyers),
            ))
        return or_(*clauses)
    if action == Action.UPDATE:
        return or_(
            owner,
            and_(Report.status == ReportStatus.DRAFT, _report_shared_with(principal, SharePermission.EDIT)),
        )
    if action in (Action.DELETE, Action.SHARE, Action.FINALIZE):
        return owner
    return None


# =============================================================================
# EVALUATION
# =============================================================================

def evaluate(
    principal: Principal,
    action: Action,
    kind: ResourceKind,
    resource_id: Optional[str] = None,
) -> Decision:
    """
    Decide whether `principal` may perform `action` on `kind`.

    Without a resource id the scope is the list scope; with one it is the
    detail scope for reads (possibly wider) and the action scope otherwise.
    """
    action = Action(action)
    kind = ResourceKind(kind)
    if not has_permission(principal.role, permission_for(action, kind)):
        return Decision(allowed=False)

    detail = resource_id is not None
    if kind == ResourceKind.CASE:
        scope = _case_scope(principal, action)
    elif kind == ResourceKind.DISPUTE:
        scope = _dispute_scope(principal, action)
    elif kind == ResourceKind.DOCUMENT:
        scope = _document_scope(principal, action, detail)
    elif kind == ResourceKind.REMINDER:
        scope = _reminder_scope(principal, action)
    else:
        scope = _report_scope(principal, action, detail)

    if detail and scope is not None:
        model = RESOURCE_MODELS[kind]
        scope = and_(model.id == resource_id, scope)
    return Decision(allowed=True, scope_filter=scope)


def require_permission(principal: Principal, action: Action, kind: ResourceKind) -> None:
    """Role-level check only (no row scope)."""
    if not has_permission(principal.role, permission_for(action, kind)):
        logger.warning(
            f"Permission denied: {principal.role.value} {principal.id} lacks "
            f"{ResourceKind(kind).value}:{Action(action).value}"
        )
        raise Forbidden()


def scoped_query(db: Session, principal: Principal, kind: ResourceKind, action: Action = Action.READ):
    """Query over the rows `principal` may list. Raises Forbidden without permission."""
    decision = evaluate(principal, action, kind)
    if not decision.allowed:
        logger.warning(f"Permission denied: {principal.role.value} {principal.id} lacks {kind.value}:{action.value}")
        raise Forbidden()
    model = RESOURCE_MODELS[ResourceKind(kind)]
    query = db.query(model)
    if decision.scope_filter is not None:
        query = query.filter(decision.scope_filter)
    return query


def authorize(db: Session, principal: Principal, action: Action, kind: ResourceKind, resource_id: str):
    """
    Load a resource the principal may perform `action` on.

    Actions without a row restriction (assign) only check existence; the
    assignment engine decides eligibility.
    """
    action = Action(action)
    kind = ResourceKind(kind)
    model = RESOURCE_MODELS[kind]
    label = kind.value.capitalize()

    decision = evaluate(principal, action, kind, resource_id)
    if not decision.allowed:
        logger.warning(f"Permission denied: {principal.role.value} {principal.id} lacks {kind.value}:{action.value}")
        raise Forbidden()

    if action != Action.READ and decision.scope_filter is None:
        row = db.get(model, resource_id)
        if row is None:
            raise NotFound(f"{label} not found")
        return row

    read = evaluate(principal, Action.READ, kind, resource_id)
    row = db.query(model).filter(read.scope_filter if read.scope_filter is not None else true()).filter(
        model.id == resource_id
    ).first()
    if row is None:
        raise NotFound(f"{label} not found")

    if action == Action.READ:
        return row

    permitted = db.query(model.id).filter(decision.scope_filter).first()
    if permitted is None:
        logger.warning(
            f"Resource access denied: {principal.role.value} {principal.id} cannot {action.value} {kind.value} {resource_id}"
        )
        raise Forbidden()
    return row


def can(db: Session, principal: Principal, action: Action, kind: ResourceKind, resource_id: str) -> bool:
    """Boolean form of the action scope check on an existing row."""
    decision = evaluate(principal, action, kind, resource_id)
    if not decision.allowed:
        return False
    if decision.scope_filter is None:
        return True
    model = RESOURCE_MODELS[ResourceKind(kind)]
    return db.query(model.id).filter(decision.scope_filter).first() is not None
