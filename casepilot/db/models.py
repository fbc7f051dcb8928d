"""
SQLAlchemy Models for Database
==============================

Schema for the legal services platform:
- Identity stores (Citizens, Lawyers) and revoked tokens
- Cases and Disputes with their assignment fields
- Dispute ledger (messages, read receipts, notifications),
  settlement offers and deadlines
- Documents, Reminders, Reports with share lists

Actor references that may point at either identity store are stored as a
(kind, id) pair rather than a foreign key.

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime, Enum, ForeignKey,
    BigInteger, UniqueConstraint, Index, JSON
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, enum.Enum):
    """Principal kinds. Also used as the tag of polymorphic actor references."""
    CITIZEN = "citizen"
    LAWYER = "lawyer"


class PartyKind(str, enum.Enum):
    """Dispute party kinds (defendants may be unregistered)"""
    CITIZEN = "citizen"
    LAWYER = "lawyer"
    EXTERNAL = "external"


class CaseType(str, enum.Enum):
    CIVIL = "civil"
    CRIMINAL = "criminal"
    FAMILY = "family"
    PROPERTY = "property"
    CONSUMER = "consumer"
    OTHERS = "others"


class CaseStatus(str, enum.Enum):
    """Case lifecycle status"""
    PENDING = "pending"
    IN_PROGRESS = "in progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REJECTED = "rejected"


class DisputeStatus(str, enum.Enum):
    """Dispute lifecycle status"""
    DRAFT = "draft"
    PENDING = "pending"
    ASSIGNED = "assigned"
    MEDIATION = "mediation"
    NEGOTIATION = "negotiation"
    COURT_PREP = "court-prep"
    COURT_HEARING = "court-hearing"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"
    WITHDRAWN = "withdrawn"


class DisputeCategory(str, enum.Enum):
    CIVIL = "civil"
    CRIMINAL = "criminal"
    CORPORATE = "corporate"
    FAMILY = "family"
    PROPERTY = "property"
    CONTRACT = "contract"
    EMPLOYMENT = "employment"
    INTELLECTUAL_PROPERTY = "intellectual-property"


class Specialization(str, enum.Enum):
    """Lawyer specialization: a dispute category or the catch-all"""
    CIVIL = "civil"
    CRIMINAL = "criminal"
    CORPORATE = "corporate"
    FAMILY = "family"
    PROPERTY = "property"
    CONTRACT = "contract"
    EMPLOYMENT = "employment"
    INTELLECTUAL_PROPERTY = "intellectual-property"
    OTHER = "other"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class AssignmentStatus(str, enum.Enum):
    UNASSIGNED = "unassigned"
    PENDING_ACCEPTANCE = "pending-acceptance"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class HearingType(str, enum.Enum):
    MEDIATION = "mediation"
    ARBITRATION = "arbitration"
    COURT_HEARING = "court-hearing"
    SETTLEMENT_MEETING = "settlement-meeting"


class MessageType(str, enum.Enum):
    MESSAGE = "message"
    STATUS_UPDATE = "status-update"
    DOCUMENT_SHARED = "document-shared"
    HEARING_SCHEDULED = "hearing-scheduled"
    SETTLEMENT_OFFER = "settlement-offer"


class NotificationType(str, enum.Enum):
    ASSIGNMENT = "assignment"
    MESSAGE = "message"
    DOCUMENT = "document"
    HEARING = "hearing"
    STATUS_CHANGE = "status-change"
    SETTLEMENT = "settlement"
    DEADLINE = "deadline"


class OfferStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class DeadlineStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class DocumentCategory(str, enum.Enum):
    CONTRACT = "contract"
    EVIDENCE = "evidence"
    COURT = "court"
    IDENTIFICATION = "identification"
    OTHER = "other"


class DocumentStatus(str, enum.Enum):
    """Document review status"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SharePermission(str, enum.Enum):
    READ = "read"
    EDIT = "edit"


class ReminderPriority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReportStatus(str, enum.Enum):
    DRAFT = "draft"
    FINAL = "final"


class ReportType(str, enum.Enum):
    CASE_SUMMARY = "case_summary"
    LEGAL_ANALYSIS = "legal_analysis"
    CLIENT_REPORT = "client_report"
    COURT_FILING = "court_filing"
    OTHER = "other"


# =============================================================================
# IDENTITY MODELS
# =============================================================================

class Citizen(Base):
    """Citizen seeking legal help"""
    __tablename__ = "citizens"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cases = relationship("Case", back_populates="citizen", order_by="Case.created_at.desc()")


class Lawyer(Base):
    """Registered lawyer"""
    __tablename__ = "lawyers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    specialization = Column(Enum(Specialization), nullable=False)
    license_number = Column(String(100), nullable=True, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Derived from Case.lawyer_id; there is no denormalized assigned-case list
    assigned_cases = relationship("Case", back_populates="lawyer", order_by="Case.created_at.desc()")

    __table_args__ = (
        Index("ix_lawyer_specialization", "specialization", "created_at"),
    )


class TokenBlacklist(Base):
    """Revoked access tokens (by JWT ID) until their natural expiry"""
    __tablename__ = "token_blacklist"

    jti = Column(String(64), primary_key=True)
    principal_id = Column(String(36), nullable=False)
    token_type = Column(String(20), default="access")
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# CASE MODELS
# =============================================================================

class Case(Base):
    """Legal case filed by a citizen"""
    __tablename__ = "cases"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    case_type = Column(Enum(CaseType), nullable=False)
    status = Column(Enum(CaseStatus), default=CaseStatus.PENDING, nullable=False)
    citizen_id = Column(String(36), ForeignKey("citizens.id"), nullable=False)
    lawyer_id = Column(String(36), ForeignKey("lawyers.id"), nullable=True)
    # Back-reference to the dispute this case was escalated from (not ownership)
    origin_dispute_id = Column(String(36), nullable=True, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_case_citizen", "citizen_id", "created_at"),
        Index("ix_case_lawyer_status", "lawyer_id", "status"),
    )

    citizen = relationship("Citizen", back_populates="cases")
    lawyer = relationship("Lawyer", back_populates="assigned_cases")


class Dispute(Base):
    """Dispute between a plaintiff and a (possibly external) defendant"""
    __tablename__ = "disputes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)

    # Parties
    plaintiff_id = Column(String(36), nullable=False)
    plaintiff_kind = Column(Enum(Role), nullable=False)
    plaintiff_name = Column(String(255), nullable=False)
    plaintiff_email = Column(String(255), nullable=False)
    defendant_id = Column(String(36), nullable=True)
    defendant_kind = Column(Enum(PartyKind), default=PartyKind.EXTERNAL, nullable=False)
    defendant_name = Column(String(255), nullable=False)
    defendant_email = Column(String(255), nullable=True)

    status = Column(Enum(DisputeStatus), default=DisputeStatus.DRAFT, nullable=False)
    category = Column(Enum(DisputeCategory), nullable=False)
    priority = Column(Enum(Priority), default=Priority.MEDIUM, nullable=False)

    created_by_id = Column(String(36), nullable=False)
    created_by_kind = Column(Enum(Role), nullable=False)

    # Assignment
    assigned_lawyer_id = Column(String(36), ForeignKey("lawyers.id"), nullable=True)
    assignment_date = Column(DateTime, nullable=True)
    assignment_status = Column(Enum(AssignmentStatus), default=AssignmentStatus.UNASSIGNED, nullable=False)

    # Escalation
    related_case_id = Column(String(36), ForeignKey("cases.id"), nullable=True)
    can_create_case = Column(Boolean, default=False, nullable=False)

    # Scheduling
    next_hearing = Column(DateTime, nullable=True)
    hearing_location = Column(String(255), nullable=True)
    hearing_type = Column(Enum(HearingType), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_activity = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_dispute_creator_status", "created_by_id", "status"),
        Index("ix_dispute_lawyer_status", "assigned_lawyer_id", "status"),
        Index("ix_dispute_category_status", "category", "status"),
        Index("ix_dispute_next_hearing", "next_hearing"),
        Index("ix_dispute_last_activity", "last_activity"),
    )

    assigned_lawyer = relationship("Lawyer", foreign_keys=[assigned_lawyer_id])
    related_case = relationship("Case", foreign_keys=[related_case_id])
    messages = relationship(
        "DisputeMessage", back_populates="dispute",
        cascade="all, delete-orphan", order_by="DisputeMessage.created_at",
    )
    notifications = relationship(
        "DisputeNotification", back_populates="dispute",
        cascade="all, delete-orphan", order_by="DisputeNotification.created_at",
    )
    settlement_offers = relationship(
        "SettlementOffer", back_populates="dispute",
        cascade="all, delete-orphan", order_by="SettlementOffer.created_at",
    )
    deadlines = relationship(
        "DisputeDeadline", back_populates="dispute",
        cascade="all, delete-orphan", order_by="DisputeDeadline.due_date",
    )


# =============================================================================
# DISPUTE LEDGER
# =============================================================================

class DisputeMessage(Base):
    """Append-only message on a dispute"""
    __tablename__ = "dispute_messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    dispute_id = Column(String(36), ForeignKey("disputes.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    sender_id = Column(String(36), nullable=False)
    sender_kind = Column(Enum(Role), nullable=False)
    message_type = Column(Enum(MessageType), default=MessageType.MESSAGE, nullable=False)
    is_private = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_message_dispute", "dispute_id", "created_at"),
    )

    dispute = relationship("Dispute", back_populates="messages")
    read_by = relationship("MessageReceipt", back_populates="message", cascade="all, delete-orphan")


class MessageReceipt(Base):
    """One read receipt per reader per message"""
    __tablename__ = "message_receipts"

    message_id = Column(String(36), ForeignKey("dispute_messages.id", ondelete="CASCADE"), primary_key=True)
    reader_id = Column(String(36), primary_key=True)
    reader_kind = Column(Enum(Role), nullable=False)
    read_at = Column(DateTime, default=datetime.utcnow)

    message = relationship("DisputeMessage", back_populates="read_by")


class DisputeNotification(Base):
    """Append-only notification record (delivery is out of scope)"""
    __tablename__ = "dispute_notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    dispute_id = Column(String(36), ForeignKey("disputes.id", ondelete="CASCADE"), nullable=False)
    recipient_id = Column(String(36), nullable=False)
    recipient_kind = Column(Enum(Role), nullable=False)
    type = Column(Enum(NotificationType), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_notification_recipient", "recipient_id", "is_read"),
    )

    dispute = relationship("Dispute", back_populates="notifications")


class SettlementOffer(Base):
    """Settlement offer made by a dispute participant"""
    __tablename__ = "settlement_offers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    dispute_id = Column(String(36), ForeignKey("disputes.id", ondelete="CASCADE"), nullable=False)
    offered_by_id = Column(String(36), nullable=False)
    offered_by_kind = Column(Enum(Role), nullable=False)
    amount = Column(Float, nullable=True)
    terms = Column(Text, nullable=True)
    status = Column(Enum(OfferStatus), default=OfferStatus.PENDING, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    responded_at = Column(DateTime, nullable=True)

    dispute = relationship("Dispute", back_populates="settlement_offers")


class DisputeDeadline(Base):
    """Deadline attached to a dispute"""
    __tablename__ = "dispute_deadlines"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    dispute_id = Column(String(36), ForeignKey("disputes.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime, nullable=False)
    assigned_to_id = Column(String(36), nullable=True)
    assigned_to_kind = Column(Enum(Role), nullable=True)
    status = Column(Enum(DeadlineStatus), default=DeadlineStatus.PENDING, nullable=False)
    created_by_id = Column(String(36), nullable=False)
    created_by_kind = Column(Enum(Role), nullable=False)
    completed_at = Column(DateTime, nullable=True)

    dispute = relationship("Dispute", back_populates="deadlines")


# =============================================================================
# DOCUMENT / REMINDER / REPORT
# =============================================================================

class Document(Base):
    """Uploaded document; bytes live in the blob store"""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(Enum(DocumentCategory), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(100), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    file_url = Column(String(500), nullable=False)
    blob_public_id = Column(String(255), nullable=True)
    status = Column(Enum(DocumentStatus), default=DocumentStatus.PENDING, nullable=False)
    tags = Column(JSON, default=list)
    owner_id = Column(String(36), nullable=False)
    owner_kind = Column(Enum(Role), nullable=False)
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=True)
    is_public = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_document_owner", "owner_id", "created_at"),
        Index("ix_document_case", "case_id"),
    )

    case = relationship("Case")
    shares = relationship("DocumentShare", back_populates="document", cascade="all, delete-orphan")


class DocumentShare(Base):
    __tablename__ = "document_shares"

    document_id = Column(String(36), ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True)
    principal_id = Column(String(36), primary_key=True)
    principal_kind = Column(Enum(Role), nullable=False)
    permission = Column(Enum(SharePermission), default=SharePermission.READ, nullable=False)
    shared_at = Column(DateTime, default=datetime.utcnow)

    document = relationship("Document", back_populates="shares")


class Reminder(Base):
    """Personal reminder"""
    __tablename__ = "reminders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime, nullable=False)
    priority = Column(Enum(ReminderPriority), default=ReminderPriority.MEDIUM, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    owner_id = Column(String(36), nullable=False)
    owner_kind = Column(Enum(Role), nullable=False)
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=True)
    case_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_reminder_owner_due", "owner_id", "due_date"),
    )

    case = relationship("Case")


class Report(Base):
    """Report written by a citizen or lawyer"""
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    status = Column(Enum(ReportStatus), default=ReportStatus.DRAFT, nullable=False)
    report_type = Column(Enum(ReportType), default=ReportType.OTHER, nullable=False)
    created_by_id = Column(String(36), nullable=False)
    created_by_kind = Column(Enum(Role), nullable=False)
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=True)
    case_name = Column(String(255), nullable=True)
    tags = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_modified = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_report_creator", "created_by_id", "updated_at"),
        Index("ix_report_case_status", "case_id", "status"),
    )

    case = relationship("Case")
    shares = relationship("ReportShare", back_populates="report", cascade="all, delete-orphan")


class ReportShare(Base):
    __tablename__ = "report_shares"

    report_id = Column(String(36), ForeignKey("reports.id", ondelete="CASCADE"), primary_key=True)
    principal_id = Column(String(36), primary_key=True)
    principal_kind = Column(Enum(Role), nullable=False)
    permission = Column(Enum(SharePermission), default=SharePermission.READ, nullable=False)
    shared_at = Column(DateTime, default=datetime.utcnow)

    report = relationship("Report", back_populates="shares")
