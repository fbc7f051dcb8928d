"""
Notification/Message Ledger
===========================

Append-only records attached to a dispute:
- messages with per-reader receipts (one receipt per reader per message;
  the sender has implicitly read their own message)
- notifications addressed to a single recipient

Delivery (email, push, sockets) is not handled here; these are records only.
Functions add to the session without committing.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, exists, func, or_
from sqlalchemy.orm import Session

from .db.models import (
    Dispute, DisputeMessage, DisputeNotification, MessageReceipt,
    MessageType, NotificationType, Role,
)
from .errors import NotFound

logger = logging.getLogger(__name__)

ActorRef = Tuple[Role, str]


def actor_ref(principal) -> ActorRef:
    return (Role(principal.role), principal.id)


def counterpart(dispute: Dispute, actor: ActorRef) -> Optional[ActorRef]:
    """The other participant: creator <-> assigned lawyer."""
    role, actor_id = actor
    creator = (Role(dispute.created_by_kind), dispute.created_by_id)
    lawyer = (Role.LAWYER, dispute.assigned_lawyer_id) if dispute.assigned_lawyer_id else None

    if (role, actor_id) == creator:
        return lawyer if lawyer and lawyer != creator else None
    if lawyer and (role, actor_id) == lawyer:
        return creator
    return None


def touch(dispute: Dispute) -> None:
    now = datetime.utcnow()
    dispute.updated_at = now
    dispute.last_activity = now


# =============================================================================
# NOTIFICATIONS
# =============================================================================

def notify(
    db: Session,
    dispute: Dispute,
    recipient: ActorRef,
    notification_type: NotificationType,
    message: str,
) -> DisputeNotification:
    role, recipient_id = recipient
    entry = DisputeNotification(
        dispute_id=dispute.id,
        recipient_kind=Role(role),
        recipient_id=recipient_id,
        type=NotificationType(notification_type),
        message=message,
        is_read=False,
        created_at=datetime.utcnow(),
    )
    db.add(entry)
    return entry


def notify_counterpart(
    db: Session,
    dispute: Dispute,
    actor: ActorRef,
    notification_type: NotificationType,
    message: str,
) -> Optional[DisputeNotification]:
    other = counterpart(dispute, actor)
    if other is None:
        return None
    return notify(db, dispute, other, notification_type, message)


def _recipient_filter(principal):
    return and_(
        DisputeNotification.recipient_kind == principal.role,
        DisputeNotification.recipient_id == principal.id,
    )


def list_notifications(db: Session, principal, unread: Optional[bool] = None) -> List[DisputeNotification]:
    query = db.query(DisputeNotification).filter(_recipient_filter(principal))
    if unread is True:
        query = query.filter(DisputeNotification.is_read == False)
    elif unread is False:
        query = query.filter(DisputeNotification.is_read == True)
    return query.order_by(DisputeNotification.created_at.desc()).all()


def mark_notification_read(db: Session, principal, notification_id: str) -> DisputeNotification:
    entry = db.query(DisputeNotification).filter(
        DisputeNotification.id == notification_id, _recipient_filter(principal)
    ).first()
    if entry is None:
        raise NotFound("Notification not found")
    entry.is_read = True
    return entry


def mark_all_notifications_read(db: Session, principal) -> int:
    return db.query(DisputeNotification).filter(
        _recipient_filter(principal), DisputeNotification.is_read == False
    ).update({DisputeNotification.is_read: True}, synchronize_session=False)


# =============================================================================
# MESSAGES
# =============================================================================

def post_message(
    db: Session,
    dispute: Dispute,
    sender: ActorRef,
    content: str,
    message_type: MessageType = MessageType.MESSAGE,
    is_private: bool = False,
    notification_type: Optional[NotificationType] = NotificationType.MESSAGE,
    notification_text: Optional[str] = None,
) -> DisputeMessage:
    """
    Append a message and fan out a notification to the counterpart.

    Private messages are never fanned out. Pass `notification_type=None`
    to post without notifying.
    """
    role, sender_id = sender
    now = datetime.utcnow()
    message = DisputeMessage(
        dispute_id=dispute.id,
        content=content,
        sender_kind=Role(role),
        sender_id=sender_id,
        message_type=MessageType(message_type),
        is_private=bool(is_private),
        created_at=now,
    )
    db.add(message)
    db.flush()
    db.add(MessageReceipt(message_id=message.id, reader_kind=Role(role), reader_id=sender_id, read_at=now))
    touch(dispute)

    if notification_type is not None and not is_private:
        notify_counterpart(
            db, dispute, sender, notification_type,
            notification_text or f"New message on dispute: {dispute.title}",
        )
    return message


def _visible_to(viewer: ActorRef):
    role, viewer_id = viewer
    return or_(
        DisputeMessage.is_private == False,
        and_(DisputeMessage.sender_kind == Role(role), DisputeMessage.sender_id == viewer_id),
    )


def visible_messages(db: Session, dispute_id: str, viewer: ActorRef) -> List[DisputeMessage]:
    """Messages on a dispute, hiding other participants' private messages."""
    return (
        db.query(DisputeMessage)
        .filter(DisputeMessage.dispute_id == dispute_id, _visible_to(viewer))
        .order_by(DisputeMessage.created_at.asc())
        .all()
    )


def _unread_query(db: Session, viewer: ActorRef):
    _, viewer_id = viewer
    receipt_exists = exists().where(
        MessageReceipt.message_id == DisputeMessage.id,
        MessageReceipt.reader_id == viewer_id,
    )
    return db.query(DisputeMessage).filter(_visible_to(viewer), ~receipt_exists)


def unread_counts(db: Session, dispute_ids: Iterable[str], viewer: ActorRef) -> Dict[str, int]:
    """Unread message count per dispute for one viewer."""
    ids = list(dispute_ids)
    if not ids:
        return {}
    rows = (
        _unread_query(db, viewer)
        .filter(DisputeMessage.dispute_id.in_(ids))
        .with_entities(DisputeMessage.dispute_id, func.count(DisputeMessage.id))
        .group_by(DisputeMessage.dispute_id)
        .all()
    )
    counts = {dispute_id: 0 for dispute_id in ids}
    counts.update({dispute_id: count for dispute_id, count in rows})
    return counts


def mark_messages_read(db: Session, dispute_id: str, viewer: ActorRef) -> int:
    """Add a receipt for every visible message the viewer has not read yet."""
    role, viewer_id = viewer
    unread = _unread_query(db, viewer).filter(DisputeMessage.dispute_id == dispute_id).all()
    now = datetime.utcnow()
    for message in unread:
        db.add(MessageReceipt(message_id=message.id, reader_kind=Role(role), reader_id=viewer_id, read_at=now))
    return len(unread)
