"""
Report API Endpoints
====================

- POST   /api/v1/reports                - Create (draft)
- GET    /api/v1/reports                - Own and shared reports
- GET    /api/v1/reports/shared/all     - Reports shared with a citizen
- GET    /api/v1/reports/{id}           - Get
- PUT    /api/v1/reports/{id}           - Update
- PATCH  /api/v1/reports/{id}/finalize  - draft -> final
- POST   /api/v1/reports/{id}/share     - Share with a principal
- DELETE /api/v1/reports/{id}           - Delete
"""

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .auth import Principal
from .dependencies import get_current_principal, get_db_dependency, require_citizen
from .serializers import envelope, list_envelope, report_to_dict
from .services import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


class ReportCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    report_type: Optional[str] = Field(None, alias="reportType")
    case_id: Optional[str] = Field(None, alias="caseId")
    case_name: Optional[str] = Field(None, alias="caseName")
    tags: Optional[List[str]] = None


class ReportUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = None
    status: Optional[str] = None
    report_type: Optional[str] = Field(None, alias="reportType")
    case_name: Optional[str] = Field(None, alias="caseName")
    tags: Optional[List[str]] = None


class ReportShareRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    principal_id: str = Field(..., alias="principalId")
    principal_kind: Literal["citizen", "lawyer"] = Field(..., alias="principalKind")
    permission: Literal["read", "edit"] = "read"


@router.post("", status_code=201)
def create_report(
    body: ReportCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    report = ReportService(db).create(
        principal,
        title=body.title,
        content=body.content,
        report_type=body.report_type,
        case_id=body.case_id,
        case_name=body.case_name,
        tags=body.tags,
    )
    return envelope("Report created successfully", report_to_dict(report))


@router.get("")
def list_reports(
    status: Optional[str] = Query(None),
    report_type: Optional[str] = Query(None, alias="reportType"),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    reports = ReportService(db).list(principal, status=status, report_type=report_type)
    return list_envelope("Reports retrieved successfully", [report_to_dict(r) for r in reports])


@router.get("/shared/all")
def list_shared_reports(
    principal: Principal = Depends(require_citizen),
    db: Session = Depends(get_db_dependency),
):
    reports = ReportService(db).shared_with_citizen(principal)
    return list_envelope("Shared reports retrieved successfully", [report_to_dict(r) for r in reports])


@router.get("/{report_id}")
def get_report(
    report_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    report = ReportService(db).get(principal, report_id)
    return envelope("Report retrieved successfully", report_to_dict(report))


@router.put("/{report_id}")
def update_report(
    report_id: str,
    body: ReportUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    report = ReportService(db).update(principal, report_id, **body.model_dump(exclude_unset=True))
    return envelope("Report updated successfully", report_to_dict(report))


@router.patch("/{report_id}/finalize")
def finalize_report(
    report_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    report = ReportService(db).finalize(principal, report_id)
    return envelope("Report finalized successfully", report_to_dict(report))


@router.post("/{report_id}/share")
def share_report(
    report_id: str,
    body: ReportShareRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    report = ReportService(db).share(
        principal, report_id, body.principal_id, body.principal_kind, body.permission,
    )
    return envelope("Report shared successfully", report_to_dict(report))


@router.delete("/{report_id}")
def delete_report(
    report_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    ReportService(db).delete(principal, report_id)
    return envelope("Report deleted successfully")
