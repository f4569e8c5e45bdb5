from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.api.v1.router import api_router
from app.core.exceptions import BillingError, translate_database_error
from app.database import init_db, async_session_factory


logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create any missing tables (deployments normally run `alembic upgrade head` first)
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Authentication", "description": "Username/password login issuing JWT bearer tokens"},
    {"name": "Masters", "description": "Companies (bill headers), services, GST rates and payment terms"},
    {"name": "Clients", "description": "Client directory, duplicate detection and bulk import"},
    {"name": "Bills", "description": "GST bills: create, edit while DRAFT, finalize, line items"},
    {"name": "Payments", "description": "Payment ledger against bills"},
    {"name": "Reports", "description": "Receivables dashboard, client ledgers and bill export"},
]

FULL_API_DESCRIPTION = """
## GST Billing API

Bills issued by a company to a client, taxed per line item at a GST rate,
with payments recorded against them.

### Authentication

All endpoints except `/api/auth/login`, `/api/auth/register` and `/health`
require a JWT in the Authorization header: `Bearer <token>`.
Payments (write) and reports require the **CA** role.

### Errors

Every error response has the shape `{"success": false, "message": "..."}`.

| Code | Description |
|------|-------------|
| 400 | Bad Request - Validation failed or business rule violated |
| 401 | Unauthorized - Missing, invalid or expired token |
| 403 | Forbidden - Wrong role, or the bill is no longer DRAFT |
| 404 | Not Found - Resource doesn't exist |
| 409 | Conflict - Duplicate resource |
| 500 | Internal Server Error |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=FULL_API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
    swagger_ui_parameters={
        "deepLinking": True,
        "persistAuthorization": True,
        "filter": True,
    },
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


# ==================== Error envelope ====================

def error_response(
    status_code: int,
    message: str,
    exc: Exception | None = None,
    details=None,
) -> JSONResponse:
    """Uniform error body. Tracebacks are only exposed in development."""
    content = {"success": False, "message": message}
    if details:
        content["details"] = jsonable_encoder(details)
    if exc is not None and settings.is_development:
        content["error"] = str(exc)
        content["traceback"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    return error_response(exc.status_code, exc.message, details=exc.details or None)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        message = "Route not found"
    else:
        message = str(exc.detail)
    return error_response(exc.status_code, message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else "Invalid request"
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        message,
        details={"errors": errors},
    )


@app.exception_handler(DBAPIError)
async def database_exception_handler(request: Request, exc: DBAPIError):
    status_code, message = translate_database_error(exc)
    if status_code >= 500:
        logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    else:
        logger.warning(f"Database rejected {request.method} {request.url.path}: {exc.orig}")
    return error_response(status_code, message, exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", exc)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
