"""
Resource Lifecycle Engines
==========================

One service per resource kind. Services take the request's session and the
authenticated principal, consult the policy evaluator, and raise the
errors in `casepilot.errors`.
"""

from .cases import CaseService
from .disputes import DisputeService
from .documents import DocumentService
from .reminders import ReminderService
from .reports import ReportService

__all__ = [
    "CaseService",
    "DisputeService",
    "DocumentService",
    "ReminderService",
    "ReportService",
]
