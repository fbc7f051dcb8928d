"""
CasePilot API
=============

FastAPI application for citizens and lawyers managing cases and disputes.

Endpoints (all under /api/v1 unless noted):
- GET  /health                 - Health check (root)
- POST /auth/register          - Register a citizen or lawyer
- POST /auth/login             - Login, returns a bearer token
- POST /auth/logout            - Revoke the presented token
- GET  /auth/me                - Current principal profile
- /citizens, /lawyers          - Profiles and own/assigned cases
- /cases, /disputes, /documents, /reminders, /reports, /notifications

Run with:
    uvicorn casepilot.api:app --host 0.0.0.0 --port 8000
"""

import logging
from datetime import datetime
from typing import Literal, Optional, Union

from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException

from . import __version__
from .api_cases import router as cases_router
from .api_disputes import router as disputes_router
from .api_documents import router as documents_router
from .api_notifications import router as notifications_router
from .api_profiles import citizens_router, lawyers_router
from .api_reminders import router as reminders_router
from .api_reports import router as reports_router
from .auth import AuthService, Principal, profile_dict
from .config import get_settings
from .db.models import Role, Specialization
from .db.session import init_db, session_scope
from .dependencies import get_current_principal, get_db_dependency
from .errors import CasePilotError, UpstreamFailure
from .middleware.security import SecurityHeadersMiddleware
from .serializers import envelope
from .token_blacklist import remove_expired_blacklist_entries, sync_to_redis

settings = get_settings()

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="CasePilot",
    description="Case and dispute workflow for citizens and lawyers",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

logger.info(f"CORS allow origins: {settings.cors_origins()}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)

# Locally stored uploads are served from BLOB_BASE_URL when it is a path
if settings.blob_base_url.startswith("/"):
    app.mount(
        settings.blob_base_url,
        StaticFiles(directory=settings.blob_storage_dir, check_dir=False),
        name="files",
    )


# =============================================================================
# AUTH ENDPOINTS
# =============================================================================

auth_router = APIRouter(prefix="/auth", tags=["auth"])


class _RegistrationBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)
    phone: Optional[str] = Field(None, max_length=50)


class CitizenRegistration(_RegistrationBase):
    role: Literal["citizen"]


class LawyerRegistration(_RegistrationBase):
    role: Literal["lawyer"]
    specialization: Specialization
    license_number: Optional[str] = Field(None, alias="licenseNumber", max_length=100)


RegistrationRequest = Union[CitizenRegistration, LawyerRegistration]


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    role: Literal["citizen", "lawyer"]


@auth_router.post("/register", status_code=201)
def register(
    body: RegistrationRequest = Body(..., discriminator="role"),
    db: Session = Depends(get_db_dependency),
):
    token, record = AuthService(db).register(
        role=Role(body.role),
        name=body.name,
        email=body.email,
        password=body.password,
        phone=body.phone,
        specialization=getattr(body, "specialization", None),
        license_number=getattr(body, "license_number", None),
    )
    return envelope("Registration successful", {"token": token, "user": profile_dict(record)})


@auth_router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db_dependency)):
    token, record = AuthService(db).login(body.email, body.password, Role(body.role))
    return envelope("Login successful", {"token": token, "user": profile_dict(record)})


@auth_router.post("/logout")
def logout(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    AuthService(db).logout(principal)
    return envelope("Logged out successfully")


@auth_router.get("/me")
def me(principal: Principal = Depends(get_current_principal)):
    return envelope("Profile retrieved successfully", profile_dict(principal.record))


for _router in (
    auth_router,
    citizens_router,
    lawyers_router,
    cases_router,
    disputes_router,
    documents_router,
    reminders_router,
    reports_router,
    notifications_router,
):
    app.include_router(_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.service_version,
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    logger.info(f"Starting CasePilot v{settings.service_version}")
    for warning in settings.validate_security_config():
        logger.warning(f"Config: {warning}")
    init_db()

    with session_scope() as db:
        removed = remove_expired_blacklist_entries(db)
        if removed:
            logger.info(f"Removed {removed} expired blacklist entries")
        sync_to_redis(db)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(CasePilotError)
async def casepilot_error_handler(request: Request, exc: CasePilotError):
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(HTTPException)
async def api_http_exception_handler(request: Request, exc: HTTPException):
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else "Request failed"
    return _error_response(exc.status_code, message)


@app.exception_handler(RequestValidationError)
async def api_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return the first validation problem without echoing inputs."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _error_response(400, message)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s: %s", request.url.path, exc.__class__.__name__)
    return _error_response(500, UpstreamFailure.default_message)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler - always return valid JSON"""
    logger.exception("Unhandled exception on %s: %s", request.url.path, exc.__class__.__name__)
    return _error_response(500, UpstreamFailure.default_message)


# =============================================================================
# Main (for direct execution)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "casepilot.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
