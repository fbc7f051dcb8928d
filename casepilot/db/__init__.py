"""
Database Package - SQLAlchemy
=============================

Persistence for identities, cases, disputes and their ledger, documents,
reminders and reports.
"""

from .models import (
    Base,
    Citizen, Lawyer, TokenBlacklist,
    Case, Dispute,
    DisputeMessage, MessageReceipt, DisputeNotification,
    SettlementOffer, DisputeDeadline,
    Document, DocumentShare, Reminder, Report, ReportShare,
    Role, PartyKind, CaseType, CaseStatus, DisputeStatus, DisputeCategory,
    Specialization, Priority, AssignmentStatus, HearingType, MessageType,
    NotificationType, OfferStatus, DeadlineStatus, DocumentCategory,
    DocumentStatus, SharePermission, ReminderPriority, ReportStatus, ReportType,
)
from .session import get_db, init_db, get_engine, reset_engine, session_scope

__all__ = [
    # Base
    "Base",
    # Identity
    "Citizen", "Lawyer", "TokenBlacklist",
    # Cases & Disputes
    "Case", "Dispute",
    "DisputeMessage", "MessageReceipt", "DisputeNotification",
    "SettlementOffer", "DisputeDeadline",
    # Documents, Reminders, Reports
    "Document", "DocumentShare", "Reminder", "Report", "ReportShare",
    # Enums
    "Role", "PartyKind", "CaseType", "CaseStatus", "DisputeStatus", "DisputeCategory",
    "Specialization", "Priority", "AssignmentStatus", "HearingType", "MessageType",
    "NotificationType", "OfferStatus", "DeadlineStatus", "DocumentCategory",
    "DocumentStatus", "SharePermission", "ReminderPriority", "ReportStatus", "ReportType",
    # Session
    "get_db", "init_db", "get_engine", "reset_engine", "session_scope",
]
