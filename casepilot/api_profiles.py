"""
Profile API Endpoints
=====================

- GET/PUT /api/v1/citizens/me        - Citizen profile
- GET     /api/v1/citizens/me/cases  - Citizen's own cases
- GET/PUT /api/v1/lawyers/me         - Lawyer profile
- GET     /api/v1/lawyers/me/cases   - Cases assigned to the lawyer
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from .auth import AuthService, Principal, profile_dict
from .db.models import Specialization
from .dependencies import get_db_dependency, require_citizen, require_lawyer
from .serializers import case_to_dict, envelope, list_envelope
from .services import CaseService

citizens_router = APIRouter(prefix="/citizens", tags=["citizens"])
lawyers_router = APIRouter(prefix="/lawyers", tags=["lawyers"])


class CitizenProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)


class LawyerProfileUpdate(CitizenProfileUpdate):
    specialization: Optional[Specialization] = None


@citizens_router.get("/me")
def get_citizen_profile(principal: Principal = Depends(require_citizen)):
    return envelope("Profile retrieved successfully", profile_dict(principal.record))


@citizens_router.put("/me")
def update_citizen_profile(
    body: CitizenProfileUpdate,
    principal: Principal = Depends(require_citizen),
    db: Session = Depends(get_db_dependency),
):
    record = AuthService(db).update_profile(principal, **body.model_dump(exclude_unset=True))
    return envelope("Profile updated successfully", profile_dict(record))


@citizens_router.get("/me/cases")
def get_citizen_cases(
    principal: Principal = Depends(require_citizen),
    db: Session = Depends(get_db_dependency),
):
    cases = CaseService(db).citizen_cases(principal)
    return list_envelope("Cases retrieved successfully", [case_to_dict(c) for c in cases])


@lawyers_router.get("/me")
def get_lawyer_profile(principal: Principal = Depends(require_lawyer)):
    return envelope("Profile retrieved successfully", profile_dict(principal.record))


@lawyers_router.put("/me")
def update_lawyer_profile(
    body: LawyerProfileUpdate,
    principal: Principal = Depends(require_lawyer),
    db: Session = Depends(get_db_dependency),
):
    record = AuthService(db).update_profile(principal, **body.model_dump(exclude_unset=True))
    return envelope("Profile updated successfully", profile_dict(record))


@lawyers_router.get("/me/cases")
def get_assigned_cases(
    principal: Principal = Depends(require_lawyer),
    db: Session = Depends(get_db_dependency),
):
    cases = CaseService(db).lawyer_cases(principal)
    return list_envelope("Assigned cases retrieved successfully", [case_to_dict(c) for c in cases])
