"""
Rider Dispatch - FastAPI Application Entry Point.

Admins create orders and hand them to riders; riders move them through
delivery and collect payment; the summary routes reconcile the day's cash
and card totals. Orders also arrive from Shopify and Google Sheets.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from dispatch.config import get_settings
from dispatch.routers import auth, integrations, orders, riders, summary
from dispatch.routers.dependencies import get_order_store, get_settings_store
from dispatch.services.ingestion import IngestionService
from dispatch.tasks.sheets_sync import run_sheets_auto_sync


settings = get_settings()

logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    sync_task = None
    if settings.SHEETS_AUTO_SYNC_ENABLED:
        sync_task = asyncio.create_task(run_sheets_auto_sync(
            lambda: IngestionService(get_order_store(), get_settings_store()),
            settings.SHEETS_AUTO_SYNC_INTERVAL_SECONDS,
        ))

    yield

    if sync_task is not None:
        sync_task.cancel()
        try:
            await sync_task
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title=settings.APP_NAME,
    description="Delivery dispatch: orders, rider assignment, payment collection and daily totals",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        settings.FRONTEND_URL,
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


app.add_middleware(SecurityHeadersMiddleware)


# --- Error convention: every failure is {"error": "..."} ---

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Include Routers
app.include_router(auth.router, tags=["Authentication"])
app.include_router(orders.router, tags=["Orders"])
app.include_router(riders.router, tags=["Riders"])
app.include_router(summary.router, tags=["Summary"])
app.include_router(integrations.router, tags=["Integrations"])


@app.get("/health")
async def health_check():
    return {"status": "ok", "message": "Server is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("dispatch.main:app", host="0.0.0.0", port=8000)
