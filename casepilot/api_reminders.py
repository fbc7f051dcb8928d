"""
Reminder API Endpoints
======================

- POST   /api/v1/reminders              - Create
- GET    /api/v1/reminders              - List own (optional `completed`)
- GET    /api/v1/reminders/{id}         - Get
- PUT    /api/v1/reminders/{id}         - Update
- PATCH  /api/v1/reminders/{id}/toggle  - Flip completion
- DELETE /api/v1/reminders/{id}         - Delete
"""

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .auth import Principal
from .dependencies import get_current_principal, get_db_dependency
from .serializers import envelope, list_envelope, reminder_to_dict
from .services import ReminderService

router = APIRouter(prefix="/reminders", tags=["reminders"])


class ReminderCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: datetime = Field(..., alias="dueDate")
    priority: Optional[Literal["high", "medium", "low"]] = None
    case_id: Optional[str] = Field(None, alias="caseId")
    case_name: Optional[str] = Field(None, alias="caseName")


class ReminderUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = Field(None, alias="dueDate")
    priority: Optional[Literal["high", "medium", "low"]] = None
    completed: Optional[bool] = None
    case_id: Optional[str] = Field(None, alias="caseId")
    case_name: Optional[str] = Field(None, alias="caseName")


@router.post("", status_code=201)
def create_reminder(
    body: ReminderCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    reminder = ReminderService(db).create(
        principal,
        title=body.title,
        due_date=body.due_date,
        description=body.description,
        priority=body.priority,
        case_id=body.case_id,
        case_name=body.case_name,
    )
    return envelope("Reminder created successfully", reminder_to_dict(reminder))


@router.get("")
def list_reminders(
    completed: Optional[bool] = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    reminders = ReminderService(db).list(principal, completed=completed)
    return list_envelope("Reminders retrieved successfully", [reminder_to_dict(r) for r in reminders])


@router.get("/{reminder_id}")
def get_reminder(
    reminder_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    reminder = ReminderService(db).get(principal, reminder_id)
    return envelope("Reminder retrieved successfully", reminder_to_dict(reminder))


@router.put("/{reminder_id}")
def update_reminder(
    reminder_id: str,
    body: ReminderUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    reminder = ReminderService(db).update(principal, reminder_id, **body.model_dump(exclude_unset=True))
    return envelope("Reminder updated successfully", reminder_to_dict(reminder))


@router.patch("/{reminder_id}/toggle")
def toggle_reminder(
    reminder_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    reminder = ReminderService(db).toggle(principal, reminder_id)
    state = "completed" if reminder.completed else "reopened"
    return envelope(f"Reminder {state}", reminder_to_dict(reminder))


@router.delete("/{reminder_id}")
def delete_reminder(
    reminder_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    ReminderService(db).delete(principal, reminder_id)
    return envelope("Reminder deleted successfully")
