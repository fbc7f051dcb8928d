"""
Configuration for CasePilot
===========================

Environment variables:
- JWT_SECRET_KEY: Signing key for access tokens
- JWT_ACCESS_TOKEN_EXPIRE_DAYS: Token lifetime in days (default: 15)
- DATABASE_URL: SQLAlchemy URL (read lazily by db.session)
- BLOB_STORAGE_DIR: Directory for uploaded files (default: ./uploads)
- BLOB_BASE_URL: Public URL prefix for stored files
- MAX_UPLOAD_BYTES: Upload size limit (default: 10 MiB)
- CANDIDATE_LAWYER_LIMIT: Lawyers notified about an unassigned dispute (default: 3)
- REDIS_URL: Optional Redis for token revocation lookups
- CORS_ALLOW_ORIGINS: Comma separated origins
- LOG_LEVEL: Logging level (default: INFO)
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Tokens
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_days: int = 15

    # Blob storage
    blob_storage_dir: str = "./uploads"
    blob_base_url: str = "/files"
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_upload_extensions: str = "jpg,jpeg,png,gif,pdf,doc,docx,txt,xlsx,xls"

    # Matching
    candidate_lawyer_limit: int = 3

    # Token revocation cache
    redis_url: Optional[str] = None

    # HTTP
    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"
    enforce_https: bool = False
    hsts_max_age: int = 31536000

    log_level: str = "INFO"
    service_version: str = "1.0.0"

    def upload_extensions(self) -> List[str]:
        return [e.strip().lower().lstrip(".") for e in self.allowed_upload_extensions.split(",") if e.strip()]

    def cors_origins(self) -> List[str]:
        origins: List[str] = []
        for item in self.cors_allow_origins.split(","):
            origin = item.strip().strip('"').strip("'").rstrip("/")
            if origin:
                origins.append(origin)
        return origins

    def validate_security_config(self) -> List[str]:
        """Return a list of configuration warnings"""
        warnings = []
        if self.jwt_secret_key == "dev-secret-key-change-in-production":
            warnings.append("JWT_SECRET_KEY is the development default")
        if self.candidate_lawyer_limit < 1:
            warnings.append("CANDIDATE_LAWYER_LIMIT < 1 disables lawyer suggestions")
        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
