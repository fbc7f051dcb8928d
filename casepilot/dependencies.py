"""
FastAPI dependencies shared by the routers.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .auth import AuthService, Principal
from .db.models import Role
from .db.session import get_db
from .errors import Forbidden
from .storage import BlobStorage, get_storage


def get_db_dependency():
    """Get database session for FastAPI dependency injection"""
    yield from get_db()


def get_storage_dependency() -> BlobStorage:
    """Blob store (overridden in tests)."""
    return get_storage()


def get_current_principal(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db_dependency),
) -> Principal:
    """Resolve the caller from `Authorization: Bearer <token>`."""
    return AuthService(db).authenticate(authorization)


def require_role(role: Role):
    """Dependency factory restricting an endpoint to one role."""

    def _dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role != role:
            raise Forbidden(f"This endpoint is only available to {role.value}s")
        return principal

    return _dependency


require_citizen = require_role(Role.CITIZEN)
require_lawyer = require_role(Role.LAWYER)
