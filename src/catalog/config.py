from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Settings:
    """Centralized application settings.

    This keeps environment-variable handling in one place so other modules can
    depend on strongly-typed attributes instead of calling os.getenv
    directly.
    """

    app_name: str = os.getenv("APP_NAME", "Guideline Catalog API")

    # Optional database configuration for SQL-backed repositories.
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    use_sql_repos: bool = os.getenv("USE_SQL_REPOS", "false").lower() == "true"

    # Object store selection: "local" (default), "minio" or "memory".
    object_store_backend: str = os.getenv("OBJECT_STORE_BACKEND", "local")
    # Directory used by the local object store.
    object_store_dir: Path = Path(os.getenv("OBJECT_STORE_DIR", "uploads"))
    # Public base URL that stored keys are appended to. When unset, the local
    # store hands out file:// URIs and MinIO hands out endpoint/bucket URLs.
    object_store_public_url: Optional[str] = os.getenv("OBJECT_STORE_PUBLIC_URL")

    # S3-compatible storage (MinIO, AWS S3) used when OBJECT_STORE_BACKEND=minio.
    minio_endpoint: str = os.getenv("MINIO_ENDPOINT", "localhost:9000")
    minio_access_key: Optional[str] = os.getenv("MINIO_ACCESS_KEY")
    minio_secret_key: Optional[str] = os.getenv("MINIO_SECRET_KEY")
    minio_bucket: str = os.getenv("MINIO_BUCKET", "guidelinesync-guidelines")
    minio_secure: bool = os.getenv("MINIO_SECURE", "true").lower() == "true"

    # Upload limits for guideline documents.
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    accepted_upload_type: str = os.getenv("ACCEPTED_UPLOAD_TYPE", "application/pdf")

    # Bearer token verification. The default secret is only suitable for
    # local development.
    jwt_secret: str = os.getenv("JWT_SECRET", "change-me-in-production")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    token_ttl_seconds: int = int(os.getenv("TOKEN_TTL_SECONDS", str(24 * 60 * 60)))

    # Pagination defaults for list and search endpoints.
    default_page_size: int = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
    max_page_size: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

    # Insert the sample guidelines on startup when the store is empty.
    seed_sample_data: bool = os.getenv("SEED_SAMPLE_DATA", "false").lower() == "true"

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS configuration: comma-separated origins (e.g. "https://app.example.com,https://admin.example.com").
    # Default is "*" (allow all) which is acceptable for local development but
    # should be tightened in production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")


settings = Settings()
