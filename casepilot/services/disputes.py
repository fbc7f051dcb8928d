"""
Dispute lifecycle.

    draft -> pending -> assigned -> {mediation, negotiation} -> court-prep
          -> court-hearing -> resolved | dismissed | withdrawn

`assigned` is entered only by a lawyer accepting the dispute; `court-prep`
also by escalating the dispute into a case. Every transition appends a
status-update message and notifies the counterpart participant.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import ledger
from ..assignment import (
    TERMINAL_DISPUTE_STATES, ClaimResult, accept_dispute, bind_escalation,
    candidate_lawyers, decline_dispute,
)
from ..auth import Principal, find_identity
from ..config import get_settings
from ..db.models import (
    AssignmentStatus, Case, CaseStatus, CaseType, DeadlineStatus, Dispute,
    DisputeCategory, DisputeDeadline, DisputeMessage, DisputeStatus, HearingType,
    Lawyer, MessageType, NotificationType, OfferStatus, PartyKind, Priority, Role,
    SettlementOffer,
)
from ..errors import (
    CasePilotError, Conflict, Forbidden, InvalidStateTransition, NotFound, ValidationError,
)
from ..policy import (
    Action, ResourceKind, authorize, dispute_available_filter, require_permission, scoped_query,
)
from .base import naive_utc, parse_enum, require_text

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (
    DisputeStatus.PENDING, DisputeStatus.ASSIGNED,
    DisputeStatus.MEDIATION, DisputeStatus.NEGOTIATION,
)
DASHBOARD_ACTIVE_STATUSES = (DisputeStatus.ASSIGNED, DisputeStatus.MEDIATION, DisputeStatus.NEGOTIATION)

STATUS_EDGES = {
    DisputeStatus.DRAFT: {DisputeStatus.PENDING, DisputeStatus.WITHDRAWN},
    DisputeStatus.PENDING: {DisputeStatus.WITHDRAWN},
    DisputeStatus.ASSIGNED: {
        DisputeStatus.MEDIATION, DisputeStatus.NEGOTIATION, DisputeStatus.COURT_PREP,
        DisputeStatus.RESOLVED, DisputeStatus.DISMISSED, DisputeStatus.WITHDRAWN,
    },
    DisputeStatus.MEDIATION: {
        DisputeStatus.NEGOTIATION, DisputeStatus.COURT_PREP,
        DisputeStatus.RESOLVED, DisputeStatus.DISMISSED, DisputeStatus.WITHDRAWN,
    },
    DisputeStatus.NEGOTIATION: {
        DisputeStatus.MEDIATION, DisputeStatus.COURT_PREP,
        DisputeStatus.RESOLVED, DisputeStatus.DISMISSED, DisputeStatus.WITHDRAWN,
    },
    DisputeStatus.COURT_PREP: {
        DisputeStatus.COURT_HEARING, DisputeStatus.RESOLVED,
        DisputeStatus.DISMISSED, DisputeStatus.WITHDRAWN,
    },
    DisputeStatus.COURT_HEARING: {DisputeStatus.RESOLVED, DisputeStatus.DISMISSED},
}

# Case type for an escalated dispute
CATEGORY_CASE_TYPES = {
    DisputeCategory.CIVIL: CaseType.CIVIL,
    DisputeCategory.CRIMINAL: CaseType.CRIMINAL,
    DisputeCategory.FAMILY: CaseType.FAMILY,
    DisputeCategory.PROPERTY: CaseType.PROPERTY,
    DisputeCategory.CORPORATE: CaseType.CIVIL,
    DisputeCategory.CONTRACT: CaseType.CIVIL,
    DisputeCategory.EMPLOYMENT: CaseType.CIVIL,
    DisputeCategory.INTELLECTUAL_PROPERTY: CaseType.OTHERS,
}


def _is_creator(dispute: Dispute, principal: Principal) -> bool:
    return dispute.created_by_kind == principal.role and dispute.created_by_id == principal.id


def _is_assigned_lawyer(dispute: Dispute, principal: Principal) -> bool:
    return (
        principal.is_lawyer
        and dispute.assigned_lawyer_id == principal.id
        and dispute.assignment_status == AssignmentStatus.ACCEPTED
    )


def _is_participant(dispute: Dispute, principal: Principal) -> bool:
    return _is_creator(dispute, principal) or _is_assigned_lawyer(dispute, principal)


def _ensure_open(dispute: Dispute) -> None:
    if dispute.status in TERMINAL_DISPUTE_STATES:
        raise InvalidStateTransition(dispute.status.value)


class DisputeService:
    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    # =========================================================================
    # CREATE / READ
    # =========================================================================

    def _resolve_defendant(self, defendant: dict) -> dict:
        if not isinstance(defendant, dict):
            raise ValidationError("Defendant information is required")
        kind = parse_enum(PartyKind, defendant.get("type") or PartyKind.EXTERNAL, "defendant type")
        name = defendant.get("name")
        email = defendant.get("email")
        defendant_id = defendant.get("id")

        if kind != PartyKind.EXTERNAL and defendant_id:
            record = find_identity(self.db, Role(kind.value), defendant_id)
            if record is None:
                raise NotFound("Defendant not found")
            name = name or record.name
            email = email or record.email
        elif kind == PartyKind.EXTERNAL:
            defendant_id = None

        return {
            "defendant_id": defendant_id,
            "defendant_kind": kind,
            "defendant_name": require_text(name, "defendant name"),
            "defendant_email": email,
        }

    def create(
        self,
        principal: Principal,
        title: str,
        description: str,
        defendant: dict,
        category,
        priority=None,
        preferred_lawyer_id: Optional[str] = None,
        can_create_case: bool = False,
    ) -> Dispute:
        require_permission(principal, Action.CREATE, ResourceKind.DISPUTE)
        now = datetime.utcnow()
        dispute = Dispute(
            title=require_text(title, "title"),
            description=require_text(description, "description"),
            plaintiff_id=principal.id,
            plaintiff_kind=principal.role,
            plaintiff_name=principal.name,
            plaintiff_email=principal.email,
            category=parse_enum(DisputeCategory, category, "category"),
            priority=parse_enum(Priority, priority or Priority.MEDIUM, "priority"),
            created_by_id=principal.id,
            created_by_kind=principal.role,
            can_create_case=bool(can_create_case),
            created_at=now,
            updated_at=now,
            last_activity=now,
            **self._resolve_defendant(defendant),
        )

        preferred = None
        if preferred_lawyer_id:
            preferred = self.db.get(Lawyer, preferred_lawyer_id)
            if preferred is None:
                raise NotFound("Preferred lawyer not found")
            dispute.status = DisputeStatus.PENDING
            dispute.assignment_status = AssignmentStatus.PENDING_ACCEPTANCE
            dispute.assigned_lawyer_id = preferred.id
            dispute.assignment_date = now
        else:
            dispute.status = DisputeStatus.DRAFT
            dispute.assignment_status = AssignmentStatus.UNASSIGNED

        self.db.add(dispute)
        self.db.flush()

        if preferred is not None:
            ledger.notify(
                self.db, dispute, (Role.LAWYER, preferred.id), NotificationType.ASSIGNMENT,
                f"You have been requested to handle the dispute: {dispute.title}",
            )
        elif principal.is_citizen:
            candidates = candidate_lawyers(self.db, dispute.category, self.settings.candidate_lawyer_limit)
            for lawyer in candidates:
                ledger.notify(
                    self.db, dispute, (Role.LAWYER, lawyer.id), NotificationType.ASSIGNMENT,
                    f"New {dispute.category.value} dispute available: {dispute.title}",
                )
            logger.info(f"Dispute {dispute.id}: notified {len(candidates)} candidate lawyer(s)")

        self.db.commit()
        self.db.refresh(dispute)
        return dispute

    def annotate(self, principal: Principal, disputes: List[Dispute]) -> Dict[str, dict]:
        """Per-viewer computed fields keyed by dispute id."""
        ids = [d.id for d in disputes]
        unread = ledger.unread_counts(self.db, ids, ledger.actor_ref(principal))
        upcoming = set()
        if ids:
            rows = (
                self.db.query(DisputeDeadline.dispute_id)
                .filter(
                    DisputeDeadline.dispute_id.in_(ids),
                    DisputeDeadline.status == DeadlineStatus.PENDING,
                    DisputeDeadline.due_date > datetime.utcnow(),
                )
                .distinct()
                .all()
            )
            upcoming = {row[0] for row in rows}

        return {
            d.id: {
                "isMyDispute": _is_creator(d, principal),
                "isAssignedToMe": d.assigned_lawyer_id == principal.id,
                "unreadMessages": unread.get(d.id, 0),
                "hasUpcomingDeadlines": d.id in upcoming,
            }
            for d in disputes
        }

    def list(
        self,
        principal: Principal,
        status: Optional[str] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
        assigned: str = "all",
        timeline: str = "all",
        search: Optional[str] = None,
    ) -> List[Tuple[Dispute, dict]]:
        query = scoped_query(self.db, principal, ResourceKind.DISPUTE)

        if status and status != "all":
            if status == "active":
                query = query.filter(Dispute.status.in_(ACTIVE_STATUSES))
            elif status == "resolved":
                query = query.filter(Dispute.status.in_(TERMINAL_DISPUTE_STATES))
            else:
                query = query.filter(Dispute.status == parse_enum(DisputeStatus, status, "status"))
        if category and category != "all":
            query = query.filter(Dispute.category == parse_enum(DisputeCategory, category, "category"))
        if priority and priority != "all":
            query = query.filter(Dispute.priority == parse_enum(Priority, priority, "priority"))

        if principal.is_lawyer and assigned and assigned != "all":
            if assigned == "mine":
                query = query.filter(Dispute.assigned_lawyer_id == principal.id)
            elif assigned == "available":
                query = query.filter(
                    dispute_available_filter(),
                    Dispute.status.in_([DisputeStatus.DRAFT, DisputeStatus.PENDING]),
                )
            else:
                raise ValidationError("assigned must be one of: mine, available, all")

        now = datetime.utcnow()
        if timeline == "today":
            start = now.replace(hour=0, minute=0, second=0, microsecond=0)
            query = query.filter(Dispute.next_hearing >= start, Dispute.next_hearing < start + timedelta(days=1))
        elif timeline == "week":
            query = query.filter(Dispute.next_hearing >= now, Dispute.next_hearing <= now + timedelta(days=7))

        if search:
            # AND-ed with the scope filter already on the query
            query = query.filter(or_(
                Dispute.title.icontains(search, autoescape=True),
                Dispute.description.icontains(search, autoescape=True),
                Dispute.plaintiff_name.icontains(search, autoescape=True),
                Dispute.defendant_name.icontains(search, autoescape=True),
            ))

        disputes = query.order_by(Dispute.last_activity.desc(), Dispute.created_at.desc()).all()
        extras = self.annotate(principal, disputes)
        return [(d, extras[d.id]) for d in disputes]

    def get(self, principal: Principal, dispute_id: str) -> Tuple[Dispute, dict, List[DisputeMessage]]:
        dispute = authorize(self.db, principal, Action.READ, ResourceKind.DISPUTE, dispute_id)
        extras = self.annotate(principal, [dispute])[dispute.id]
        messages = ledger.visible_messages(self.db, dispute.id, ledger.actor_ref(principal))
        return dispute, extras, messages

    def dashboard(self, principal: Principal) -> dict:
        require_permission(principal, Action.READ, ResourceKind.DISPUTE)
        if principal.is_citizen:
            scope = and_(Dispute.created_by_kind == Role.CITIZEN, Dispute.created_by_id == principal.id)
        else:
            scope = Dispute.assigned_lawyer_id == principal.id

        base = self.db.query(Dispute).filter(scope)
        return {
            "summary": {
                "total": base.count(),
                "active": base.filter(Dispute.status.in_(DASHBOARD_ACTIVE_STATUSES)).count(),
                "pending": base.filter(Dispute.status == DisputeStatus.PENDING).count(),
                "resolved": base.filter(Dispute.status == DisputeStatus.RESOLVED).count(),
            },
            "upcomingHearings": (
                base.filter(Dispute.next_hearing >= datetime.utcnow())
                .order_by(Dispute.next_hearing.asc())
                .limit(5)
                .all()
            ),
            "recentActivity": base.order_by(Dispute.last_activity.desc()).limit(10).all(),
        }

    # =========================================================================
    # ASSIGNMENT
    # =========================================================================

    def accept(self, principal: Principal, dispute_id: str) -> ClaimResult:
        authorize(self.db, principal, Action.ASSIGN, ResourceKind.DISPUTE, dispute_id)
        result = accept_dispute(self.db, dispute_id, principal.id)
        if result.replayed:
            return result

        dispute = result.resource
        ledger.post_message(
            self.db, dispute, ledger.actor_ref(principal),
            f"Lawyer {principal.name} has accepted this dispute",
            message_type=MessageType.STATUS_UPDATE,
            notification_type=None,
        )
        ledger.notify(
            self.db, dispute, (Role(dispute.created_by_kind), dispute.created_by_id),
            NotificationType.ASSIGNMENT,
            f"Your dispute has been accepted by {principal.name}",
        )
        self.db.commit()
        self.db.refresh(dispute)
        logger.info(f"Dispute {dispute_id} accepted by lawyer {principal.id}")
        return result

    def decline(self, principal: Principal, dispute_id: str) -> Dispute:
        authorize(self.db, principal, Action.ASSIGN, ResourceKind.DISPUTE, dispute_id)
        dispute = decline_dispute(self.db, dispute_id, principal.id)
        ledger.notify(
            self.db, dispute, (Role(dispute.created_by_kind), dispute.created_by_id),
            NotificationType.ASSIGNMENT,
            f"{principal.name} declined your dispute: {dispute.title}",
        )
        self.db.commit()
        self.db.refresh(dispute)
        logger.info(f"Dispute {dispute_id} declined by lawyer {principal.id}")
        return dispute

    # =========================================================================
    # STATUS
    # =========================================================================

    def change_status(self, principal: Principal, dispute_id: str, new_status, note: Optional[str] = None) -> Dispute:
        dispute = authorize(self.db, principal, Action.UPDATE, ResourceKind.DISPUTE, dispute_id)
        target = parse_enum(DisputeStatus, new_status, "status")
        current = dispute.status

        if target not in STATUS_EDGES.get(current, set()):
            logger.warning(f"Dispute {dispute_id}: rejected transition {current.value} -> {target.value}")
            raise InvalidStateTransition(current.value)

        creator_edge = target == DisputeStatus.WITHDRAWN or (
            current == DisputeStatus.DRAFT and target == DisputeStatus.PENDING
        )
        if creator_edge and not _is_creator(dispute, principal):
            raise Forbidden("Only the dispute creator can make this change")
        if not creator_edge and not _is_assigned_lawyer(dispute, principal):
            raise Forbidden("Only the assigned lawyer can make this change")

        now = datetime.utcnow()
        values = {"status": target, "updated_at": now, "last_activity": now}
        if target == DisputeStatus.WITHDRAWN and dispute.assignment_status == AssignmentStatus.PENDING_ACCEPTANCE:
            # An unanswered lawyer request dies with the dispute
            values.update(
                assigned_lawyer_id=None,
                assignment_status=AssignmentStatus.UNASSIGNED,
                assignment_date=None,
            )
        result = self.db.execute(
            update(Dispute)
            .where(Dispute.id == dispute_id, Dispute.status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(dispute)
        if result.rowcount != 1:
            raise InvalidStateTransition(dispute.status.value)

        text = f"Status changed from {current.value} to {target.value}"
        if note:
            text = f"{text}: {note}"
        ledger.post_message(
            self.db, dispute, ledger.actor_ref(principal), text,
            message_type=MessageType.STATUS_UPDATE,
            notification_type=NotificationType.STATUS_CHANGE,
            notification_text=f"Dispute '{dispute.title}' is now {target.value}",
        )
        self.db.commit()
        self.db.refresh(dispute)
        return dispute

    # =========================================================================
    # MESSAGES
    # =========================================================================

    def post_message(
        self,
        principal: Principal,
        dispute_id: str,
        content: str,
        message_type=None,
        is_private: bool = False,
    ) -> DisputeMessage:
        dispute = authorize(self.db, principal, Action.MESSAGE, ResourceKind.DISPUTE, dispute_id)
        message_type = parse_enum(MessageType, message_type or MessageType.MESSAGE, "messageType")
        notification_type = (
            NotificationType.DOCUMENT if message_type == MessageType.DOCUMENT_SHARED else NotificationType.MESSAGE
        )
        message = ledger.post_message(
            self.db, dispute, ledger.actor_ref(principal),
            require_text(content, "content"),
            message_type=message_type,
            is_private=is_private,
            notification_type=notification_type,
            notification_text=f"New message from {principal.name} on: {dispute.title}",
        )
        self.db.commit()
        self.db.refresh(message)
        return message

    def list_messages(self, principal: Principal, dispute_id: str) -> List[DisputeMessage]:
        dispute = authorize(self.db, principal, Action.READ, ResourceKind.DISPUTE, dispute_id)
        return ledger.visible_messages(self.db, dispute.id, ledger.actor_ref(principal))

    def mark_messages_read(self, principal: Principal, dispute_id: str) -> int:
        dispute = authorize(self.db, principal, Action.READ, ResourceKind.DISPUTE, dispute_id)
        count = ledger.mark_messages_read(self.db, dispute.id, ledger.actor_ref(principal))
        self.db.commit()
        return count

    # =========================================================================
    # HEARINGS, SETTLEMENTS, DEADLINES
    # =========================================================================

    def schedule_hearing(
        self,
        principal: Principal,
        dispute_id: str,
        next_hearing: datetime,
        hearing_location: Optional[str] = None,
        hearing_type=None,
    ) -> Dispute:
        dispute = authorize(self.db, principal, Action.UPDATE, ResourceKind.DISPUTE, dispute_id)
        if not _is_assigned_lawyer(dispute, principal):
            raise Forbidden("Only the assigned lawyer can schedule hearings")
        _ensure_open(dispute)
        if next_hearing is None:
            raise ValidationError("nextHearing is required")
        next_hearing = naive_utc(next_hearing)
        if next_hearing <= datetime.utcnow():
            raise ValidationError("nextHearing must be in the future")

        dispute.next_hearing = next_hearing
        dispute.hearing_location = hearing_location
        dispute.hearing_type = parse_enum(HearingType, hearing_type, "hearingType") if hearing_type else None

        when = next_hearing.strftime("%Y-%m-%d %H:%M")
        where = f" at {hearing_location}" if hearing_location else ""
        ledger.post_message(
            self.db, dispute, ledger.actor_ref(principal),
            f"Hearing scheduled for {when}{where}",
            message_type=MessageType.HEARING_SCHEDULED,
            notification_type=NotificationType.HEARING,
            notification_text=f"Hearing scheduled for '{dispute.title}' on {when}",
        )
        self.db.commit()
        self.db.refresh(dispute)
        return dispute

    def _load_offer(self, dispute: Dispute, offer_id: str) -> SettlementOffer:
        offer = self.db.query(SettlementOffer).filter(
            SettlementOffer.id == offer_id, SettlementOffer.dispute_id == dispute.id
        ).first()
        if offer is None:
            raise NotFound("Settlement offer not found")
        return offer

    def propose_settlement(
        self,
        principal: Principal,
        dispute_id: str,
        amount: Optional[float] = None,
        terms: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> SettlementOffer:
        dispute = authorize(self.db, principal, Action.UPDATE, ResourceKind.DISPUTE, dispute_id)
        if not _is_participant(dispute, principal):
            raise Forbidden()
        _ensure_open(dispute)
        if amount is None and not (terms and terms.strip()):
            raise ValidationError("A settlement offer needs an amount or terms")
        if amount is not None and amount < 0:
            raise ValidationError("Amount cannot be negative")

        offer = SettlementOffer(
            dispute_id=dispute.id,
            offered_by_id=principal.id,
            offered_by_kind=principal.role,
            amount=amount,
            terms=terms,
            expires_at=naive_utc(expires_at),
            status=OfferStatus.PENDING,
            created_at=datetime.utcnow(),
        )
        self.db.add(offer)
        summary = f"amount {amount}" if amount is not None else "new terms"
        ledger.post_message(
            self.db, dispute, ledger.actor_ref(principal),
            f"Settlement offer proposed ({summary})",
            message_type=MessageType.SETTLEMENT_OFFER,
            notification_type=NotificationType.SETTLEMENT,
            notification_text=f"New settlement offer on '{dispute.title}'",
        )
        self.db.commit()
        self.db.refresh(offer)
        return offer

    def respond_settlement(self, principal: Principal, dispute_id: str, offer_id: str, action: str) -> SettlementOffer:
        if action not in ("accept", "reject"):
            raise ValidationError("Action must be 'accept' or 'reject'")
        dispute = authorize(self.db, principal, Action.UPDATE, ResourceKind.DISPUTE, dispute_id)
        offer = self._load_offer(dispute, offer_id)

        proposer = (Role(offer.offered_by_kind), offer.offered_by_id)
        if ledger.counterpart(dispute, proposer) != ledger.actor_ref(principal):
            raise Forbidden("Only the other participant can respond to this offer")
        if offer.status != OfferStatus.PENDING:
            raise InvalidStateTransition(offer.status.value)
        if offer.expires_at and offer.expires_at < datetime.utcnow():
            raise InvalidStateTransition(offer.status.value, "Settlement offer has expired")

        offer.status = OfferStatus.ACCEPTED if action == "accept" else OfferStatus.REJECTED
        offer.responded_at = datetime.utcnow()
        ledger.post_message(
            self.db, dispute, ledger.actor_ref(principal),
            f"Settlement offer {offer.status.value}",
            message_type=MessageType.SETTLEMENT_OFFER,
            notification_type=NotificationType.SETTLEMENT,
            notification_text=f"Your settlement offer on '{dispute.title}' was {offer.status.value}",
        )
        self.db.commit()
        self.db.refresh(offer)
        return offer

    def withdraw_settlement(self, principal: Principal, dispute_id: str, offer_id: str) -> SettlementOffer:
        dispute = authorize(self.db, principal, Action.UPDATE, ResourceKind.DISPUTE, dispute_id)
        offer = self._load_offer(dispute, offer_id)
        if (offer.offered_by_kind, offer.offered_by_id) != (principal.role, principal.id):
            raise Forbidden("Only the proposer can withdraw this offer")
        if offer.status != OfferStatus.PENDING:
            raise InvalidStateTransition(offer.status.value)

        offer.status = OfferStatus.WITHDRAWN
        offer.responded_at = datetime.utcnow()
        ledger.post_message(
            self.db, dispute, ledger.actor_ref(principal),
            "Settlement offer withdrawn",
            message_type=MessageType.SETTLEMENT_OFFER,
            notification_type=NotificationType.SETTLEMENT,
            notification_text=f"A settlement offer on '{dispute.title}' was withdrawn",
        )
        self.db.commit()
        self.db.refresh(offer)
        return offer

    def add_deadline(
        self,
        principal: Principal,
        dispute_id: str,
        title: str,
        due_date: datetime,
        description: Optional[str] = None,
        assigned_to_id: Optional[str] = None,
        assigned_to_kind=None,
    ) -> DisputeDeadline:
        dispute = authorize(self.db, principal, Action.UPDATE, ResourceKind.DISPUTE, dispute_id)
        if not _is_participant(dispute, principal):
            raise Forbidden()
        _ensure_open(dispute)
        if due_date is None:
            raise ValidationError("dueDate is required")

        assignee = None
        if assigned_to_id:
            assignee = (parse_enum(Role, assigned_to_kind, "assignedTo kind"), assigned_to_id)
            participants = {(Role(dispute.created_by_kind), dispute.created_by_id)}
            if dispute.assigned_lawyer_id and dispute.assignment_status == AssignmentStatus.ACCEPTED:
                participants.add((Role.LAWYER, dispute.assigned_lawyer_id))
            if assignee not in participants:
                raise ValidationError("Deadlines can only be assigned to dispute participants")

        deadline = DisputeDeadline(
            dispute_id=dispute.id,
            title=require_text(title, "title"),
            description=description,
            due_date=naive_utc(due_date),
            assigned_to_id=assignee[1] if assignee else None,
            assigned_to_kind=assignee[0] if assignee else None,
            status=DeadlineStatus.PENDING,
            created_by_id=principal.id,
            created_by_kind=principal.role,
        )
        self.db.add(deadline)
        ledger.touch(dispute)
        if assignee and assignee != ledger.actor_ref(principal):
            ledger.notify(
                self.db, dispute, assignee, NotificationType.DEADLINE,
                f"New deadline '{deadline.title}' due {due_date.strftime('%Y-%m-%d')}",
            )
        self.db.commit()
        self.db.refresh(deadline)
        return deadline

    def complete_deadline(self, principal: Principal, dispute_id: str, deadline_id: str) -> DisputeDeadline:
        dispute = authorize(self.db, principal, Action.UPDATE, ResourceKind.DISPUTE, dispute_id)
        if not _is_participant(dispute, principal):
            raise Forbidden()
        deadline = self.db.query(DisputeDeadline).filter(
            DisputeDeadline.id == deadline_id, DisputeDeadline.dispute_id == dispute.id
        ).first()
        if deadline is None:
            raise NotFound("Deadline not found")
        if deadline.status == DeadlineStatus.COMPLETED:
            raise InvalidStateTransition(deadline.status.value)

        deadline.status = DeadlineStatus.COMPLETED
        deadline.completed_at = datetime.utcnow()
        ledger.touch(dispute)
        self.db.commit()
        self.db.refresh(deadline)
        return deadline

    # =========================================================================
    # ESCALATION
    # =========================================================================

    def create_case(self, principal: Principal, dispute_id: str) -> Tuple[Case, Dispute]:
        """Escalate a dispute into a case, once."""
        dispute = authorize(self.db, principal, Action.ESCALATE, ResourceKind.DISPUTE, dispute_id)
        if dispute.related_case_id:
            raise Conflict(f"A case has already been created from this dispute: {dispute.related_case_id}")
        if not dispute.can_create_case:
            raise Forbidden("Case creation is not enabled for this dispute")
        if dispute.assignment_status != AssignmentStatus.ACCEPTED:
            raise InvalidStateTransition(dispute.status.value)
        _ensure_open(dispute)
        if dispute.plaintiff_kind != Role.CITIZEN:
            raise ValidationError("Only disputes filed by a citizen can become cases")

        case = Case(
            title=f"Case: {dispute.title}",
            description=dispute.description,
            case_type=CATEGORY_CASE_TYPES[dispute.category],
            status=CaseStatus.IN_PROGRESS,
            citizen_id=dispute.plaintiff_id,
            lawyer_id=principal.id,
            origin_dispute_id=dispute.id,
        )
        try:
            self.db.add(case)
            self.db.flush()
            dispute = bind_escalation(self.db, dispute.id, principal.id, case.id)
            ledger.post_message(
                self.db, dispute, ledger.actor_ref(principal),
                f"Formal case created: {case.title}",
                message_type=MessageType.STATUS_UPDATE,
                notification_type=NotificationType.STATUS_CHANGE,
                notification_text=f"A formal case has been created from your dispute '{dispute.title}'",
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.db.query(Case.id).filter(Case.origin_dispute_id == dispute_id).first()
            logger.warning(f"Dispute {dispute_id}: concurrent escalation lost")
            raise Conflict(
                f"A case has already been created from this dispute: {existing[0] if existing else 'unknown'}"
            )
        except CasePilotError:
            self.db.rollback()
            raise

        self.db.refresh(case)
        self.db.refresh(dispute)
        logger.info(f"Dispute {dispute_id} escalated to case {case.id} by lawyer {principal.id}")
        return case, dispute
