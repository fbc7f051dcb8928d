"""
Case API Endpoints
==================

- POST /api/v1/cases             - Create case (citizen)
- GET  /api/v1/cases             - List cases in scope
- GET  /api/v1/cases/{id}        - Get case
- PUT  /api/v1/cases/{id}        - Update case
- PUT  /api/v1/cases/{id}/assign - Accept or reject (lawyer)
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .auth import Principal
from .dependencies import get_current_principal, get_db_dependency
from .serializers import case_to_dict, envelope, list_envelope
from .services import CaseService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cases", tags=["cases"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class CaseCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    case_type: str = Field(..., alias="caseType")


class CaseUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    case_type: Optional[str] = Field(None, alias="caseType")
    status: Optional[str] = None


class CaseAssign(BaseModel):
    action: Literal["accept", "reject"]


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("", status_code=201)
def create_case(
    body: CaseCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    case = CaseService(db).create(principal, body.title, body.description, body.case_type)
    return envelope("Case created successfully", case_to_dict(case))


@router.get("")
def list_cases(
    status: Optional[str] = Query(None),
    case_type: Optional[str] = Query(None, alias="caseType"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    cases = CaseService(db).list(principal, status=status, case_type=case_type)
    return list_envelope("Cases retrieved successfully", [case_to_dict(c) for c in cases])


@router.get("/{case_id}")
def get_case(
    case_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    case = CaseService(db).get(principal, case_id)
    return envelope("Case retrieved successfully", case_to_dict(case))


@router.put("/{case_id}")
def update_case(
    case_id: str,
    body: CaseUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    case = CaseService(db).update(
        principal, case_id,
        title=body.title,
        description=body.description,
        case_type=body.case_type,
        status=body.status,
    )
    return envelope("Case updated successfully", case_to_dict(case))


@router.put("/{case_id}/assign")
def assign_case(
    case_id: str,
    body: CaseAssign,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    result = CaseService(db).assign(principal, case_id, body.action)
    verb = "accepted" if body.action == "accept" else "rejected"
    message = f"Case already {verb}" if result.replayed else f"Case {verb} successfully"
    return envelope(message, case_to_dict(result.resource))
