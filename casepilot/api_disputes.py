"""
Dispute API Endpoints
=====================

- GET   /api/v1/disputes/dashboard                           - Summary counts
- GET   /api/v1/disputes                                     - List (filters)
- POST  /api/v1/disputes/create                              - Create
- GET   /api/v1/disputes/{id}                                - Detail
- PUT   /api/v1/disputes/{id}/accept                         - Lawyer accepts
- PUT   /api/v1/disputes/{id}/decline                        - Requested lawyer declines
- PATCH /api/v1/disputes/{id}/status                         - Status transition
- GET   /api/v1/disputes/{id}/messages                       - Messages
- POST  /api/v1/disputes/{id}/messages                       - Post message
- PATCH /api/v1/disputes/{id}/messages/read                  - Mark all read
- PUT   /api/v1/disputes/{id}/hearing                        - Schedule hearing
- POST  /api/v1/disputes/{id}/settlements                    - Propose settlement
- PUT   /api/v1/disputes/{id}/settlements/{offer}/respond    - Accept/reject offer
- PUT   /api/v1/disputes/{id}/settlements/{offer}/withdraw   - Withdraw offer
- POST  /api/v1/disputes/{id}/deadlines                      - Add deadline
- PATCH /api/v1/disputes/{id}/deadlines/{deadline}/complete  - Complete deadline
- POST  /api/v1/disputes/{id}/create-case                    - Escalate to a case
"""

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.orm import Session

from .auth import Principal
from .dependencies import get_current_principal, get_db_dependency
from .serializers import (
    case_to_dict, deadline_to_dict, dispute_to_dict, envelope, list_envelope,
    message_to_dict, offer_to_dict,
)
from .services import DisputeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/disputes", tags=["disputes"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class DefendantInput(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: Literal["citizen", "lawyer", "external"] = "external"
    email: Optional[EmailStr] = None
    id: Optional[str] = None


class DisputeCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    defendant: DefendantInput
    category: str
    priority: Optional[str] = None
    preferred_lawyer: Optional[str] = Field(None, alias="preferredLawyer")
    can_create_case: bool = Field(False, alias="canCreateCase")


class StatusChange(BaseModel):
    status: str
    note: Optional[str] = None


class MessageCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(..., min_length=1)
    message_type: Optional[str] = Field(None, alias="messageType")
    is_private: bool = Field(False, alias="isPrivate")


class HearingSchedule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    next_hearing: datetime = Field(..., alias="nextHearing")
    hearing_location: Optional[str] = Field(None, alias="hearingLocation")
    hearing_type: Optional[str] = Field(None, alias="hearingType")


class SettlementCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: Optional[float] = None
    terms: Optional[str] = None
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")


class SettlementResponse(BaseModel):
    action: Literal["accept", "reject"]


class AssigneeInput(BaseModel):
    kind: Literal["citizen", "lawyer"]
    id: str


class DeadlineCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: datetime = Field(..., alias="dueDate")
    assigned_to: Optional[AssigneeInput] = Field(None, alias="assignedTo")


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/dashboard")
def get_dashboard(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    data = DisputeService(db).dashboard(principal)
    data["upcomingHearings"] = [dispute_to_dict(d) for d in data["upcomingHearings"]]
    data["recentActivity"] = [dispute_to_dict(d) for d in data["recentActivity"]]
    return envelope("Dashboard retrieved successfully", data)


@router.get("")
def list_disputes(
    status: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    assigned: str = Query("all"),
    timeline: str = Query("all"),
    search: Optional[str] = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    rows = DisputeService(db).list(
        principal,
        status=status, category=category, priority=priority,
        assigned=assigned, timeline=timeline, search=search,
    )
    return list_envelope("Disputes retrieved successfully", [dispute_to_dict(d, extras) for d, extras in rows])


@router.post("/create", status_code=201)
def create_dispute(
    body: DisputeCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    dispute = DisputeService(db).create(
        principal,
        title=body.title,
        description=body.description,
        defendant=body.defendant.model_dump(),
        category=body.category,
        priority=body.priority,
        preferred_lawyer_id=body.preferred_lawyer,
        can_create_case=body.can_create_case,
    )
    return envelope("Dispute created successfully", dispute_to_dict(dispute))


@router.get("/{dispute_id}")
def get_dispute(
    dispute_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    dispute, extras, messages = DisputeService(db).get(principal, dispute_id)
    return envelope("Dispute retrieved successfully", dispute_to_dict(dispute, extras, messages))


@router.put("/{dispute_id}/accept")
def accept_dispute(
    dispute_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    result = DisputeService(db).accept(principal, dispute_id)
    message = "Dispute already accepted" if result.replayed else "Dispute assignment accepted successfully"
    return envelope(message, dispute_to_dict(result.resource))


@router.put("/{dispute_id}/decline")
def decline_dispute(
    dispute_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    dispute = DisputeService(db).decline(principal, dispute_id)
    return envelope("Dispute assignment declined", dispute_to_dict(dispute))


@router.patch("/{dispute_id}/status")
def change_status(
    dispute_id: str,
    body: StatusChange,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    dispute = DisputeService(db).change_status(principal, dispute_id, body.status, body.note)
    return envelope("Dispute status updated successfully", dispute_to_dict(dispute))


@router.get("/{dispute_id}/messages")
def list_messages(
    dispute_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    messages = DisputeService(db).list_messages(principal, dispute_id)
    return list_envelope("Messages retrieved successfully", [message_to_dict(m) for m in messages])


@router.post("/{dispute_id}/messages", status_code=201)
def post_message(
    dispute_id: str,
    body: MessageCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    message = DisputeService(db).post_message(
        principal, dispute_id, body.content,
        message_type=body.message_type, is_private=body.is_private,
    )
    return envelope("Message added successfully", message_to_dict(message))


@router.patch("/{dispute_id}/messages/read")
def mark_messages_read(
    dispute_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    count = DisputeService(db).mark_messages_read(principal, dispute_id)
    return envelope("Messages marked as read", {"marked": count})


@router.put("/{dispute_id}/hearing")
def schedule_hearing(
    dispute_id: str,
    body: HearingSchedule,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    dispute = DisputeService(db).schedule_hearing(
        principal, dispute_id, body.next_hearing,
        hearing_location=body.hearing_location, hearing_type=body.hearing_type,
    )
    return envelope("Hearing scheduled successfully", dispute_to_dict(dispute))


@router.post("/{dispute_id}/settlements", status_code=201)
def propose_settlement(
    dispute_id: str,
    body: SettlementCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    offer = DisputeService(db).propose_settlement(
        principal, dispute_id, amount=body.amount, terms=body.terms, expires_at=body.expires_at,
    )
    return envelope("Settlement offer created", offer_to_dict(offer))


@router.put("/{dispute_id}/settlements/{offer_id}/respond")
def respond_settlement(
    dispute_id: str,
    offer_id: str,
    body: SettlementResponse,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    offer = DisputeService(db).respond_settlement(principal, dispute_id, offer_id, body.action)
    return envelope(f"Settlement offer {offer.status.value}", offer_to_dict(offer))


@router.put("/{dispute_id}/settlements/{offer_id}/withdraw")
def withdraw_settlement(
    dispute_id: str,
    offer_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    offer = DisputeService(db).withdraw_settlement(principal, dispute_id, offer_id)
    return envelope("Settlement offer withdrawn", offer_to_dict(offer))


@router.post("/{dispute_id}/deadlines", status_code=201)
def add_deadline(
    dispute_id: str,
    body: DeadlineCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    deadline = DisputeService(db).add_deadline(
        principal, dispute_id,
        title=body.title,
        due_date=body.due_date,
        description=body.description,
        assigned_to_id=body.assigned_to.id if body.assigned_to else None,
        assigned_to_kind=body.assigned_to.kind if body.assigned_to else None,
    )
    return envelope("Deadline added successfully", deadline_to_dict(deadline))


@router.patch("/{dispute_id}/deadlines/{deadline_id}/complete")
def complete_deadline(
    dispute_id: str,
    deadline_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    deadline = DisputeService(db).complete_deadline(principal, dispute_id, deadline_id)
    return envelope("Deadline completed", deadline_to_dict(deadline))


@router.post("/{dispute_id}/create-case", status_code=201)
def create_case_from_dispute(
    dispute_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    case, dispute = DisputeService(db).create_case(principal, dispute_id)
    return envelope(
        "Case created from dispute successfully",
        {"case": case_to_dict(case), "dispute": dispute_to_dict(dispute)},
    )
