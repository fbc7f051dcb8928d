"""
Identity & Session Guard
========================

Principals are citizens or lawyers, each kept in its own identity store.

Authentication Flow:
1. Registration/login issue a signed JWT carrying the principal id and role
2. Every protected request presents `Authorization: Bearer <token>`
3. The token is verified (signature, expiry, revocation)
4. The principal is re-resolved in the store of the claimed role

Passwords are hashed with bcrypt through passlib; tokens are PyJWT HS256.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import get_settings
from .db.models import Citizen, Lawyer, Role, Specialization
from .errors import (
    Conflict, InvalidToken, NotFound, TokenExpired, Unauthenticated,
    UserNotFound, ValidationError,
)
from .token_blacklist import add_to_blacklist, is_blacklisted

logger = logging.getLogger(__name__)

IdentityRecord = Union[Citizen, Lawyer]

# Tagged lookup: role -> identity store
IDENTITY_MODELS = {
    Role.CITIZEN: Citizen,
    Role.LAWYER: Lawyer,
}


# =============================================================================
# PASSWORD HASHING
# =============================================================================

# bcrypt truncates passwords at 72 bytes; enforce to avoid silent truncation.
MAX_PASSWORD_BYTES = 72
MIN_PASSWORD_LENGTH = 8

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def is_password_too_long(password: str) -> bool:
    """Return True if password exceeds bcrypt 72-byte limit."""
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    if is_password_too_long(plain_password):
        logger.warning("Auth failed: password exceeds bcrypt 72-byte limit")
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning(f"Auth failed: invalid password hash format ({e})")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password"""
    if is_password_too_long(password):
        raise ValidationError("Password must be at most 72 bytes")
    return pwd_context.hash(password)


# =============================================================================
# JWT TOKEN HANDLING
# =============================================================================

@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of an access token"""
    principal_id: str
    role: Role
    jti: str
    expires_at: datetime


def create_access_token(principal_id: str, role: Role, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed access token for a principal"""
    settings = get_settings()
    expire = datetime.utcnow() + (expires_delta or timedelta(days=settings.jwt_access_token_expire_days))
    payload = {
        "sub": principal_id,
        "role": Role(role).value,
        "jti": uuid.uuid4().hex,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenClaims:
    """
    Verify signature and expiry and return the token claims.

    Raises:
        TokenExpired: signature valid but past `exp`
        InvalidToken: any other failure (bad signature, malformed, missing claims)
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub", "jti"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.PyJWTError as e:
        logger.warning(f"Invalid JWT token: {e}")
        raise InvalidToken()

    if payload.get("type") != "access":
        raise InvalidToken()
    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise InvalidToken()

    return TokenClaims(
        principal_id=str(payload["sub"]),
        role=role,
        jti=str(payload["jti"]),
        expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc).replace(tzinfo=None),
    )


def parse_bearer(authorization: Optional[str]) -> str:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        raise Unauthenticated()
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated()
    return token.strip()


# =============================================================================
# PRINCIPAL
# =============================================================================

@dataclass(frozen=True)
class Principal:
    """Authenticated caller"""
    id: str
    role: Role
    name: str = ""
    email: str = ""
    record: Optional[IdentityRecord] = field(default=None, compare=False, repr=False)
    claims: Optional[TokenClaims] = field(default=None, compare=False, repr=False)

    @property
    def is_citizen(self) -> bool:
        return self.role == Role.CITIZEN

    @property
    def is_lawyer(self) -> bool:
        return self.role == Role.LAWYER

    @classmethod
    def from_record(cls, record: IdentityRecord, claims: Optional[TokenClaims] = None) -> "Principal":
        role = Role.LAWYER if isinstance(record, Lawyer) else Role.CITIZEN
        return cls(id=record.id, role=role, name=record.name, email=record.email, record=record, claims=claims)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_identity(db: Session, role: Role, principal_id: Optional[str]) -> Optional[IdentityRecord]:
    """Look up a principal in the store of the given role."""
    if not principal_id:
        return None
    model = IDENTITY_MODELS[Role(role)]
    return db.get(model, principal_id)


def find_identity_by_email(db: Session, role: Role, email: str) -> Optional[IdentityRecord]:
    model = IDENTITY_MODELS[Role(role)]
    return db.query(model).filter(model.email == normalize_email(email)).first()


def profile_dict(record: IdentityRecord) -> dict:
    """Public profile; never includes the password hash."""
    data = {
        "id": record.id,
        "name": record.name,
        "email": record.email,
        "phone": record.phone,
        "role": Role.LAWYER.value if isinstance(record, Lawyer) else Role.CITIZEN.value,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
    }
    if isinstance(record, Lawyer):
        data["specialization"] = record.specialization.value if record.specialization else None
        data["licenseNumber"] = record.license_number
    return data


# =============================================================================
# AUTH SERVICE
# =============================================================================

class AuthService:
    """Registration, login, logout and request authentication"""

    def __init__(self, db: Session):
        self.db = db

    def register(
        self,
        role: Role,
        name: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        specialization: Optional[Specialization] = None,
        license_number: Optional[str] = None,
    ) -> tuple:
        """
        Create a principal in the store of `role`.

        Returns:
            (token, record)
        """
        role = Role(role)
        email = normalize_email(email)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        password_hash = get_password_hash(password)

        if find_identity_by_email(self.db, role, email):
            raise Conflict(f"A {role.value} with this email already exists")

        if role == Role.LAWYER:
            if specialization is None:
                raise ValidationError("Specialization is required for lawyers")
            if license_number:
                taken = self.db.query(Lawyer).filter(Lawyer.license_number == license_number).first()
                if taken:
                    raise Conflict("License number already registered")
            record = Lawyer(
                name=name.strip(),
                email=email,
                password_hash=password_hash,
                phone=phone,
                specialization=Specialization(specialization),
                license_number=license_number or None,
            )
        else:
            record = Citizen(name=name.strip(), email=email, password_hash=password_hash, phone=phone)

        try:
            self.db.add(record)
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            self.db.rollback()
            logger.warning(f"Registration conflict for {role.value} {email}")
            raise Conflict(f"A {role.value} with this email or license number already exists")
        self.db.refresh(record)
        logger.info(f"Registered {role.value} {record.id}")
        return create_access_token(record.id, role), record

    def login(self, email: str, password: str, role: Role) -> tuple:
        """
        Returns:
            (token, record)
        """
        role = Role(role)
        record = find_identity_by_email(self.db, role, email)
        if not record:
            logger.warning(f"Login failed: unknown {role.value} email")
            raise NotFound("User not found")
        if not verify_password(password, record.password_hash):
            logger.warning(f"Login failed: bad password for {role.value} {record.id}")
            raise ValidationError("Invalid credentials")
        return create_access_token(record.id, role), record

    def logout(self, principal: Principal) -> None:
        """Revoke the token the principal authenticated with."""
        claims = principal.claims
        if claims is None:
            raise Unauthenticated()
        add_to_blacklist(self.db, claims.jti, claims.principal_id, claims.expires_at)
        logger.info(f"Revoked token for {claims.role.value} {claims.principal_id}")

    def authenticate(self, authorization: Optional[str]) -> Principal:
        """Resolve the caller from an Authorization header."""
        token = parse_bearer(authorization)
        try:
            claims = decode_token(token)
        except InvalidToken as e:
            logger.warning(f"Auth failed: {e.message}")
            raise
        if is_blacklisted(self.db, claims.jti):
            logger.warning(f"Auth failed: revoked token for {claims.principal_id}")
            raise InvalidToken()

        record = find_identity(self.db, claims.role, claims.principal_id)
        if not record:
            logger.warning(f"Auth failed: {claims.role.value} {claims.principal_id} not found")
            raise UserNotFound()
        return Principal.from_record(record, claims)

    def update_profile(self, principal: Principal, **changes) -> IdentityRecord:
        """Update name/email/phone (and specialization for lawyers)."""
        record = find_identity(self.db, principal.role, principal.id)
        if not record:
            raise UserNotFound()

        email = changes.get("email")
        if email is not None:
            email = normalize_email(email)
            if email != record.email:
                other = find_identity_by_email(self.db, principal.role, email)
                if other and other.id != record.id:
                    raise Conflict("Email already in use")
                record.email = email
        if changes.get("name") is not None:
            record.name = changes["name"].strip()
        if "phone" in changes and changes["phone"] is not None:
            record.phone = changes["phone"]
        if isinstance(record, Lawyer) and changes.get("specialization") is not None:
            record.specialization = Specialization(changes["specialization"])

        record.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(record)
        return record
