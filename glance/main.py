"""
Glance API: widget analytics for the Glance dashboard
Auth-provider JWTs · Workspace RBAC · Rate Limiting · Structured Logging
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from glance.core.config import settings
from glance.core.database import init_db
from glance.core.errors import GlanceError, Unauthorized
from glance.core.limiter import limiter
from glance.core.logging import get_logger, setup_logging
from glance.middleware.audit import AuditLogMiddleware
from glance.middleware.cors import ScopedCORSMiddleware
from glance.middleware.identity import IdentityMiddleware
from glance.routers import analytics, health, widget_events

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle management."""
    logger.info("api.startup", version=settings.API_VERSION, env=settings.ENVIRONMENT)
    await init_db()
    logger.info("api.database_ready")
    yield
    logger.info("api.shutdown")


app = FastAPI(
    title="Glance API",
    description="""
## Glance widget analytics

Backend for the Glance dashboard:

- **Analytics**: visitors, opens, conversions, daily series and per-widget breakdown
  for a workspace, compared with the previous period
- **Event ingestion**: public endpoint the embedded widget reports events to
- **Auth**: bearer tokens issued by the hosted auth provider, scoped by workspace membership

### Workspace roles

| Role | Permissions |
|------|-------------|
| `member` | View analytics |
| `admin` | View analytics |
| `owner` | View analytics |
    """,
    version=settings.API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Middleware (last added runs first) ─────────────────────────────────────────
app.add_middleware(ScopedCORSMiddleware, dashboard_origins=settings.CORS_ORIGINS)
app.add_middleware(AuditLogMiddleware)
app.add_middleware(IdentityMiddleware)

# ── Rate limit error handler ───────────────────────────────────────────────────
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# ── Error handlers ─────────────────────────────────────────────────────────────
@app.exception_handler(GlanceError)
async def glance_error_handler(request: Request, exc: GlanceError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info("api.invalid_request", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "api.unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


# ── Routers ────────────────────────────────────────────────────────────────────
app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(widget_events.router, prefix="/api/widget-events", tags=["Widget events"])
