import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.catalog.api.schemas import fail
from src.catalog.api.v1.routes_auth import router as auth_router_v1
from src.catalog.api.v1.routes_guidelines import router as guidelines_router_v1
from src.catalog.api.v1.routes_system import router as system_router_v1
from src.catalog.config import settings
from src.catalog.domain.errors import CatalogError
from src.catalog.infra.db.bootstrap import init_sql_repositories
from src.catalog.services.catalog.seed import seed_sample_guidelines
from src.catalog.services.catalog.service import catalog_service
from src.catalog.services.catalog.validation import describe_errors

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)


@app.on_event("startup")
async def on_startup() -> None:
    """Application startup hook.

    When USE_SQL_REPOS is enabled and a DATABASE_URL is configured, the
    catalog switches to the SQL-backed repository. With SEED_SAMPLE_DATA
    enabled, an empty store is filled with the demo guidelines.
    """

    init_sql_repositories()
    if settings.seed_sample_data:
        seed_sample_guidelines(catalog_service.repository)


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=fail(exc.message, retryable=exc.retryable))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=fail(describe_errors(exc)))


# CORS configuration: permissive by default for development. Tighten via
# CORS_ALLOW_ORIGINS in production deployments.
allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    """Basic liveness probe for the API root."""
    return {"status": "ok"}


# Versioned API routers
app.include_router(system_router_v1, prefix="/api/v1")
app.include_router(auth_router_v1, prefix="/api/v1")
app.include_router(guidelines_router_v1, prefix="/api/v1")
