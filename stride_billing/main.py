from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from stride_billing.config import settings
from stride_billing.api.v1.router import api_router
from stride_billing.core.errors import BillingError
from stride_billing.database import init_db, async_session_factory

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create billing tables if missing
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    yield

    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Service Catalog", "description": "Billable services, class-based rates and account pricing"},
    {"name": "Charges", "description": "Charge computation and task/shipment billing previews"},
    {"name": "Promo Codes", "description": "Promo code administration, discount previews and redemptions"},
    {"name": "Coverage", "description": "Valuation coverage settings and premium quotes"},
]

API_DESCRIPTION = """
## Stride Billing API

Billing core for warehouse and moving operations.

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Bad Request - missing or invalid X-Tenant-ID |
| 404 | Not Found - resource doesn't exist |
| 409 | Conflict - duplicate service scope or promo code |
| 422 | Unprocessable Entity - validation failed or charge cannot be computed |

Billing errors carry a stable `error_code` (e.g. `RATE_UNSET`, `PROMO_EXPIRED`).
"""

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(BillingError)
async def billing_exception_handler(request: Request, exc: BillingError):
    """Billing errors are expected outcomes: report them with their error code."""
    logger.info(f"{request.method} {request.url.path} -> {exc.error_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness plus a database round trip."""
    checks = {"database": "connected"}
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        checks["database"] = f"error: {e.__class__.__name__}"

    healthy = checks["database"] == "connected"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)


@app.get("/", tags=["Root"])
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "currency": settings.CURRENCY_CODE,
        "docs": "/docs",
    }
