"""
Response shaping.

Every response is an envelope `{success, message, data?}`; list responses
also carry `count`. Field names are camelCase for API clients.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .db.models import (
    Case, Dispute, DisputeDeadline, DisputeMessage, DisputeNotification, Document,
    Reminder, Report, SettlementOffer,
)


def _enum_value(v):
    return v.value if hasattr(v, "value") else v


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def envelope(message: str, data: Any = None, count: Optional[int] = None, **extra) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        payload["data"] = data
    if count is not None:
        payload["count"] = count
    payload.update(extra)
    return payload


def list_envelope(message: str, items: List[Any], **extra) -> Dict[str, Any]:
    return envelope(message, data=items, count=len(items), **extra)


def _ref(kind, ref_id) -> Optional[dict]:
    if not ref_id:
        return None
    return {"kind": _enum_value(kind), "id": ref_id}


def case_to_dict(case: Case) -> dict:
    return {
        "id": case.id,
        "title": case.title,
        "description": case.description,
        "caseType": _enum_value(case.case_type),
        "status": _enum_value(case.status),
        "citizen": case.citizen_id,
        "lawyer": case.lawyer_id,
        "originDispute": case.origin_dispute_id,
        "createdAt": _iso(case.created_at),
        "updatedAt": _iso(case.updated_at),
    }


def message_to_dict(message: DisputeMessage) -> dict:
    return {
        "id": message.id,
        "content": message.content,
        "sender": _ref(message.sender_kind, message.sender_id),
        "messageType": _enum_value(message.message_type),
        "isPrivate": message.is_private,
        "readBy": [
            {"reader": _ref(r.reader_kind, r.reader_id), "readAt": _iso(r.read_at)}
            for r in message.read_by
        ],
        "createdAt": _iso(message.created_at),
    }


def notification_to_dict(entry: DisputeNotification) -> dict:
    return {
        "id": entry.id,
        "dispute": entry.dispute_id,
        "recipient": _ref(entry.recipient_kind, entry.recipient_id),
        "type": _enum_value(entry.type),
        "message": entry.message,
        "isRead": entry.is_read,
        "createdAt": _iso(entry.created_at),
    }


def offer_to_dict(offer: SettlementOffer) -> dict:
    return {
        "id": offer.id,
        "offeredBy": _ref(offer.offered_by_kind, offer.offered_by_id),
        "amount": offer.amount,
        "terms": offer.terms,
        "status": _enum_value(offer.status),
        "expiresAt": _iso(offer.expires_at),
        "createdAt": _iso(offer.created_at),
        "respondedAt": _iso(offer.responded_at),
    }


def deadline_to_dict(deadline: DisputeDeadline) -> dict:
    return {
        "id": deadline.id,
        "title": deadline.title,
        "description": deadline.description,
        "dueDate": _iso(deadline.due_date),
        "assignedTo": _ref(deadline.assigned_to_kind, deadline.assigned_to_id),
        "status": _enum_value(deadline.status),
        "createdBy": _ref(deadline.created_by_kind, deadline.created_by_id),
        "completedAt": _iso(deadline.completed_at),
    }


def dispute_to_dict(
    dispute: Dispute,
    extras: Optional[dict] = None,
    messages: Optional[Iterable[DisputeMessage]] = None,
) -> dict:
    data = {
        "id": dispute.id,
        "title": dispute.title,
        "description": dispute.description,
        "parties": {
            "plaintiff": {
                "id": dispute.plaintiff_id,
                "type": _enum_value(dispute.plaintiff_kind),
                "name": dispute.plaintiff_name,
                "email": dispute.plaintiff_email,
            },
            "defendant": {
                "id": dispute.defendant_id,
                "type": _enum_value(dispute.defendant_kind),
                "name": dispute.defendant_name,
                "email": dispute.defendant_email,
            },
        },
        "status": _enum_value(dispute.status),
        "category": _enum_value(dispute.category),
        "priority": _enum_value(dispute.priority),
        "createdBy": _ref(dispute.created_by_kind, dispute.created_by_id),
        "assignedLawyer": dispute.assigned_lawyer_id,
        "assignmentStatus": _enum_value(dispute.assignment_status),
        "assignmentDate": _iso(dispute.assignment_date),
        "relatedCase": dispute.related_case_id,
        "canCreateCase": dispute.can_create_case,
        "nextHearing": _iso(dispute.next_hearing),
        "hearingLocation": dispute.hearing_location,
        "hearingType": _enum_value(dispute.hearing_type) if dispute.hearing_type else None,
        "settlementOffers": [offer_to_dict(o) for o in dispute.settlement_offers],
        "deadlines": [deadline_to_dict(d) for d in dispute.deadlines],
        "createdAt": _iso(dispute.created_at),
        "updatedAt": _iso(dispute.updated_at),
        "lastActivity": _iso(dispute.last_activity),
    }
    if messages is not None:
        data["messages"] = [message_to_dict(m) for m in messages]
    if extras:
        data.update(extras)
    return data


def _share_list(shares) -> List[dict]:
    return [
        {
            "principal": _ref(s.principal_kind, s.principal_id),
            "permission": _enum_value(s.permission),
            "sharedAt": _iso(s.shared_at),
        }
        for s in shares
    ]


def document_to_dict(doc: Document) -> dict:
    return {
        "id": doc.id,
        "title": doc.title,
        "description": doc.description,
        "category": _enum_value(doc.category),
        "fileName": doc.file_name,
        "fileType": doc.file_type,
        "fileSize": doc.file_size,
        "fileUrl": doc.file_url,
        "status": _enum_value(doc.status),
        "tags": list(doc.tags or []),
        "owner": _ref(doc.owner_kind, doc.owner_id),
        "caseId": doc.case_id,
        "isPublic": doc.is_public,
        "sharedWith": _share_list(doc.shares),
        "createdAt": _iso(doc.created_at),
        "updatedAt": _iso(doc.updated_at),
    }


def reminder_to_dict(reminder: Reminder) -> dict:
    return {
        "id": reminder.id,
        "title": reminder.title,
        "description": reminder.description,
        "dueDate": _iso(reminder.due_date),
        "priority": _enum_value(reminder.priority),
        "completed": reminder.completed,
        "completedAt": _iso(reminder.completed_at),
        "caseId": reminder.case_id,
        "caseName": reminder.case_name,
        "owner": _ref(reminder.owner_kind, reminder.owner_id),
        "createdAt": _iso(reminder.created_at),
        "updatedAt": _iso(reminder.updated_at),
    }


def report_to_dict(report: Report) -> dict:
    return {
        "id": report.id,
        "title": report.title,
        "content": report.content,
        "status": _enum_value(report.status),
        "reportType": _enum_value(report.report_type),
        "createdBy": _ref(report.created_by_kind, report.created_by_id),
        "caseId": report.case_id,
        "caseName": report.case_name,
        "tags": list(report.tags or []),
        "sharedWith": _share_list(report.shares),
        "createdAt": _iso(report.created_at),
        "updatedAt": _iso(report.updated_at),
        "lastModified": _iso(report.last_modified),
    }
