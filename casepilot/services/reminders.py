"""Reminder lifecycle: owner-only CRUD with a reversible completion flag."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ..auth import Principal
from ..db.models import Reminder, ReminderPriority
from ..errors import ValidationError
from ..policy import Action, ResourceKind, authorize, require_permission, scoped_query
from .base import naive_utc, parse_enum, require_text

logger = logging.getLogger(__name__)


def _set_completed(reminder: Reminder, completed: bool) -> None:
    reminder.completed = completed
    reminder.completed_at = datetime.utcnow() if completed else None


class ReminderService:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        principal: Principal,
        title: str,
        due_date: datetime,
        description: Optional[str] = None,
        priority=None,
        case_id: Optional[str] = None,
        case_name: Optional[str] = None,
    ) -> Reminder:
        require_permission(principal, Action.CREATE, ResourceKind.REMINDER)
        if due_date is None:
            raise ValidationError("dueDate is required")
        if case_id:
            case = authorize(self.db, principal, Action.READ, ResourceKind.CASE, case_id)
            case_name = case_name or case.title

        reminder = Reminder(
            title=require_text(title, "title"),
            description=description,
            due_date=naive_utc(due_date),
            priority=parse_enum(ReminderPriority, priority or ReminderPriority.MEDIUM, "priority"),
            completed=False,
            owner_id=principal.id,
            owner_kind=principal.role,
            case_id=case_id or None,
            case_name=case_name,
        )
        self.db.add(reminder)
        self.db.commit()
        self.db.refresh(reminder)
        return reminder

    def list(self, principal: Principal, completed: Optional[bool] = None) -> List[Reminder]:
        query = scoped_query(self.db, principal, ResourceKind.REMINDER)
        if completed is not None:
            query = query.filter(Reminder.completed == completed)
        return query.order_by(Reminder.due_date.asc()).all()

    def get(self, principal: Principal, reminder_id: str) -> Reminder:
        return authorize(self.db, principal, Action.READ, ResourceKind.REMINDER, reminder_id)

    def update(self, principal: Principal, reminder_id: str, **changes) -> Reminder:
        reminder = authorize(self.db, principal, Action.UPDATE, ResourceKind.REMINDER, reminder_id)

        if changes.get("title") is not None:
            reminder.title = require_text(changes["title"], "title")
        if "description" in changes and changes["description"] is not None:
            reminder.description = changes["description"]
        if changes.get("due_date") is not None:
            reminder.due_date = naive_utc(changes["due_date"])
        if changes.get("priority") is not None:
            reminder.priority = parse_enum(ReminderPriority, changes["priority"], "priority")
        if changes.get("case_id") is not None:
            case = authorize(self.db, principal, Action.READ, ResourceKind.CASE, changes["case_id"])
            reminder.case_id = case.id
            reminder.case_name = changes.get("case_name") or case.title
        elif changes.get("case_name") is not None:
            reminder.case_name = changes["case_name"]
        if changes.get("completed") is not None and bool(changes["completed"]) != reminder.completed:
            _set_completed(reminder, bool(changes["completed"]))

        reminder.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(reminder)
        return reminder

    def toggle(self, principal: Principal, reminder_id: str) -> Reminder:
        reminder = authorize(self.db, principal, Action.UPDATE, ResourceKind.REMINDER, reminder_id)
        _set_completed(reminder, not reminder.completed)
        reminder.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(reminder)
        return reminder

    def delete(self, principal: Principal, reminder_id: str) -> None:
        reminder = authorize(self.db, principal, Action.DELETE, ResourceKind.REMINDER, reminder_id)
        self.db.delete(reminder)
        self.db.commit()
