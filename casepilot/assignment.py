"""
Assignment & Matching Engine
============================

Claims of cases and disputes by lawyers. Every claim is a conditional
UPDATE (compare-and-swap) so two lawyers racing for the same resource
cannot both win; when no row changes, the resource is reloaded and the
miss is classified:

- held by another lawyer       -> Forbidden
- already held by the actor    -> replay, current state returned unchanged
- anything else                -> InvalidStateTransition naming the status

Functions here flush but never commit; callers commit together with any
ledger entries so the whole claim is one transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from .db.models import (
    Case, CaseStatus, Dispute, DisputeStatus, AssignmentStatus,
    DisputeCategory, Lawyer, Specialization,
)
from .errors import Conflict, Forbidden, InvalidStateTransition, NotFound

logger = logging.getLogger(__name__)

CLAIMABLE_ASSIGNMENT_STATES = (
    AssignmentStatus.UNASSIGNED,
    AssignmentStatus.PENDING_ACCEPTANCE,
    AssignmentStatus.DECLINED,
)
CLAIMABLE_DISPUTE_STATES = (DisputeStatus.DRAFT, DisputeStatus.PENDING)
TERMINAL_DISPUTE_STATES = (DisputeStatus.RESOLVED, DisputeStatus.DISMISSED, DisputeStatus.WITHDRAWN)


@dataclass
class ClaimResult:
    resource: object
    replayed: bool = False


def is_eligible(current_lawyer_id: Optional[str], actor_id: str) -> bool:
    """A resource is claimable by a lawyer if it has no lawyer or already has this one."""
    return current_lawyer_id is None or current_lawyer_id == actor_id


def _eligible(column, actor_id: str):
    """SQL form of is_eligible."""
    return or_(column.is_(None), column == actor_id)


def _reload(db: Session, model, resource_id: str):
    row = db.query(model).populate_existing().filter(model.id == resource_id).first()
    if row is None:
        raise NotFound(f"{model.__name__} not found")
    return row


# =============================================================================
# CASES
# =============================================================================

def _claim_case(db: Session, case_id: str, lawyer_id: str, values: dict, accepting: bool) -> ClaimResult:
    result = db.execute(
        update(Case)
        .where(
            Case.id == case_id,
            Case.status == CaseStatus.PENDING,
            _eligible(Case.lawyer_id, lawyer_id),
        )
        .values(updated_at=datetime.utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    case = _reload(db, Case, case_id)
    if result.rowcount == 1:
        return ClaimResult(case)

    if not is_eligible(case.lawyer_id, lawyer_id):
        logger.warning(f"Case claim lost: case {case_id} is held by another lawyer (actor {lawyer_id})")
        raise Forbidden("This case is assigned to another lawyer")
    if accepting and case.lawyer_id == lawyer_id and case.status == CaseStatus.IN_PROGRESS:
        return ClaimResult(case, replayed=True)
    logger.warning(f"Case claim rejected: case {case_id} is '{case.status.value}'")
    raise InvalidStateTransition(case.status.value)


def accept_case(db: Session, case_id: str, lawyer_id: str) -> ClaimResult:
    """pending -> in progress, lawyer = actor"""
    return _claim_case(
        db, case_id, lawyer_id,
        {"status": CaseStatus.IN_PROGRESS, "lawyer_id": lawyer_id},
        accepting=True,
    )


def reject_case(db: Session, case_id: str, lawyer_id: str) -> ClaimResult:
    """pending -> rejected, lawyer cleared"""
    return _claim_case(
        db, case_id, lawyer_id,
        {"status": CaseStatus.REJECTED, "lawyer_id": None},
        accepting=False,
    )


# =============================================================================
# DISPUTES
# =============================================================================

def accept_dispute(db: Session, dispute_id: str, lawyer_id: str) -> ClaimResult:
    """Claim a draft/pending dispute; assignment becomes accepted, status assigned."""
    now = datetime.utcnow()
    result = db.execute(
        update(Dispute)
        .where(
            Dispute.id == dispute_id,
            Dispute.assignment_status.in_(CLAIMABLE_ASSIGNMENT_STATES),
            Dispute.status.in_(CLAIMABLE_DISPUTE_STATES),
            _eligible(Dispute.assigned_lawyer_id, lawyer_id),
        )
        .values(
            assigned_lawyer_id=lawyer_id,
            assignment_status=AssignmentStatus.ACCEPTED,
            assignment_date=now,
            status=DisputeStatus.ASSIGNED,
            updated_at=now,
            last_activity=now,
        )
        .execution_options(synchronize_session=False)
    )
    dispute = _reload(db, Dispute, dispute_id)
    if result.rowcount == 1:
        return ClaimResult(dispute)

    if not is_eligible(dispute.assigned_lawyer_id, lawyer_id):
        logger.warning(f"Dispute claim lost: dispute {dispute_id} is held by another lawyer (actor {lawyer_id})")
        raise Forbidden("This dispute is assigned to another lawyer")
    if dispute.assigned_lawyer_id == lawyer_id and dispute.assignment_status == AssignmentStatus.ACCEPTED:
        return ClaimResult(dispute, replayed=True)
    logger.warning(f"Dispute claim rejected: dispute {dispute_id} is '{dispute.status.value}'")
    raise InvalidStateTransition(dispute.status.value)


def decline_dispute(db: Session, dispute_id: str, lawyer_id: str) -> Dispute:
    """The named lawyer declines a pending-acceptance assignment; the dispute becomes claimable again."""
    now = datetime.utcnow()
    result = db.execute(
        update(Dispute)
        .where(
            Dispute.id == dispute_id,
            Dispute.assigned_lawyer_id == lawyer_id,
            Dispute.assignment_status == AssignmentStatus.PENDING_ACCEPTANCE,
            Dispute.status.in_(CLAIMABLE_DISPUTE_STATES),
        )
        .values(
            assigned_lawyer_id=None,
            assignment_status=AssignmentStatus.DECLINED,
            assignment_date=None,
            status=DisputeStatus.PENDING,
            updated_at=now,
            last_activity=now,
        )
        .execution_options(synchronize_session=False)
    )
    dispute = _reload(db, Dispute, dispute_id)
    if result.rowcount == 1:
        return dispute

    if dispute.status in TERMINAL_DISPUTE_STATES:
        logger.warning(f"Dispute decline rejected: dispute {dispute_id} is '{dispute.status.value}'")
        raise InvalidStateTransition(dispute.status.value)
    if dispute.assigned_lawyer_id != lawyer_id:
        raise Forbidden("This dispute was not offered to you")
    raise InvalidStateTransition(
        dispute.status.value,
        f"Assignment cannot be declined while it is '{dispute.assignment_status.value}'",
    )


def bind_escalation(db: Session, dispute_id: str, lawyer_id: str, case_id: str) -> Dispute:
    """
    Link a freshly created case to its dispute exactly once.

    Succeeds only while the dispute has no related case, is held by the
    actor and is not terminal.
    """
    now = datetime.utcnow()
    result = db.execute(
        update(Dispute)
        .where(
            Dispute.id == dispute_id,
            Dispute.related_case_id.is_(None),
            Dispute.assigned_lawyer_id == lawyer_id,
            Dispute.status.notin_(TERMINAL_DISPUTE_STATES),
        )
        .values(
            related_case_id=case_id,
            status=DisputeStatus.COURT_PREP,
            updated_at=now,
            last_activity=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return _reload(db, Dispute, dispute_id)

    dispute = _reload(db, Dispute, dispute_id)
    if dispute.related_case_id:
        raise Conflict(f"A case has already been created from this dispute: {dispute.related_case_id}")
    if dispute.assigned_lawyer_id != lawyer_id:
        raise Forbidden("Only the assigned lawyer can create a case from this dispute")
    raise InvalidStateTransition(dispute.status.value)


# =============================================================================
# MATCHING
# =============================================================================

def candidate_lawyers(db: Session, category: DisputeCategory, limit: int) -> List[Lawyer]:
    """Lawyers specialised in `category` or in `other`, in registration order."""
    if limit < 1:
        return []
    specializations = [Specialization(DisputeCategory(category).value), Specialization.OTHER]
    return (
        db.query(Lawyer)
        .filter(Lawyer.specialization.in_(specializations))
        .order_by(Lawyer.created_at.asc(), Lawyer.id.asc())
        .limit(limit)
        .all()
    )


def assigned_cases_query(db: Session, lawyer_id: str):
    """A lawyer's assigned cases, derived from Case.lawyer_id."""
    return db.query(Case).filter(Case.lawyer_id == lawyer_id).order_by(Case.created_at.desc())
