import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from promptshop.api.deps import get_settings
from promptshop.app_shell.config import validate_ops_rules
from promptshop.domain.errors import (
    AccessDenied,
    EntitlementError,
    NotFoundError,
    UpstreamUnavailable,
    ValidationError,
)
from promptshop.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and validate on startup (fail-fast)
    try:
        rules = load_rules(settings.rules_path)
        validate_ops_rules(rules, settings.data_dir)
        logger.info("Rules loaded from %s", settings.rules_path)
    except Exception as e:
        logger.critical("Rules load failed: %s", e)
        sys.exit(1)

    yield


app = FastAPI(
    title="promptshop API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# --- Error mapping ---
def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(AccessDenied)
async def access_denied_handler(request: Request, exc: AccessDenied) -> JSONResponse:
    return _error(status.HTTP_403_FORBIDDEN, exc)


@app.exception_handler(UpstreamUnavailable)
async def upstream_handler(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
    logger.error("Store unavailable on %s: %s", request.url.path, exc.detail)
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


@app.exception_handler(EntitlementError)
async def entitlement_error_handler(request: Request, exc: EntitlementError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, exc)


# --- Routers ---
from promptshop.api.routes import (  # noqa: E402
    admin_catalog,
    admin_payments,
    admin_subscriptions,
    admin_withdrawals,
    auth,
    catalog,
    media,
    payments,
    referrals,
)

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(catalog.router, prefix="/api/catalog", tags=["Catalog"])
app.include_router(media.router, prefix="/api/media", tags=["Media"])
app.include_router(payments.router, prefix="/api/payments", tags=["Payments"])
app.include_router(referrals.router, prefix="/api/referrals", tags=["Referrals"])
app.include_router(admin_payments.router, prefix="/api/admin/payments", tags=["Admin Payments"])
app.include_router(
    admin_withdrawals.router, prefix="/api/admin/withdrawals", tags=["Admin Withdrawals"]
)
app.include_router(admin_catalog.router, prefix="/api/admin/catalog", tags=["Admin Catalog"])
app.include_router(
    admin_subscriptions.router, prefix="/api/admin/subscriptions", tags=["Admin Subscriptions"]
)


# CORS (Allow Frontend)
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("promptshop.api.main:app", host="127.0.0.1", port=8000)
