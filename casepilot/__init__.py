"""
CasePilot - Legal Services Workflow Backend
===========================================

Access control and workflow core for a platform connecting citizens and
lawyers around cases, disputes, documents, reminders and reports.
"""

__version__ = "1.0.0"
