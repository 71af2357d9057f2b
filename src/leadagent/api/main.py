"""LeadAgent API — FastAPI application for the lead-generation chat assistant.

Run:
    uvicorn leadagent.api.main:app --reload
    # or
    leadagent-api
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from urllib.parse import urlparse

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from leadagent.api.auth import router as auth_router
from leadagent.api.chat import router as chat_router
from leadagent.api.leads import router as leads_router
from leadagent.api.users import router as users_router
from leadagent.config import settings
from leadagent.observability.logging import correlation_id, setup_logging
from leadagent.observability.tracing import init_tracing
from leadagent.storage.db import get_session, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize logging, tracing, and the user table on startup."""
    setup_logging(json_format=settings.log_json, level=settings.log_level)
    init_tracing(settings.mlflow_tracking_uri, settings.mlflow_experiment_name)

    # Log the database URL (redacted) for debugging deployment issues
    parsed = urlparse(settings.database_url)
    redacted_host = f"{parsed.hostname}:{parsed.port}" if parsed.port else parsed.hostname
    logger.info("Connecting to database at %s/%s", redacted_host, parsed.path.lstrip("/"))
    try:
        await asyncio.wait_for(init_db(), timeout=15)
        logger.info("Database initialized successfully")
    except asyncio.TimeoutError:
        logger.error("Database initialization timed out after 15s — API will start in degraded mode")
    except Exception as e:
        logger.error("Database initialization failed: %s — API will start in degraded mode", e)

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set — chat requests will fail")
    if not settings.batchdata_api_token:
        logger.warning("BATCHDATA_API_TOKEN not set — lead searches will fail")
    logger.info("LeadAgent API ready")
    yield
    logger.info("Shutting down")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """Set correlation ID from X-Request-ID header or generate a new one."""

    async def dispatch(self, request: Request, call_next):
        cid = request.headers.get("x-request-id", str(uuid.uuid4()))
        token = correlation_id.set(cid)
        try:
            logger.info("%s %s", request.method, request.url.path)
            response = await call_next(request)
            response.headers["x-request-id"] = cid
            return response
        finally:
            correlation_id.reset(token)


app = FastAPI(
    title="LeadAgent",
    description="Chat assistant that turns natural-language requests into property leads.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(chat_router)
app.include_router(leads_router)
app.include_router(users_router)
app.include_router(auth_router)


@app.get("/health")
async def health():
    """Health check — verifies DB connectivity."""
    checks = {}

    session = None
    try:
        from sqlalchemy import text

        session = await get_session()
        await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"
    finally:
        if session:
            await session.close()

    checks["extraction_model"] = "configured" if settings.openai_api_key else "missing_api_key"
    checks["lead_search"] = "configured" if settings.batchdata_api_token else "missing_api_token"

    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {"status": status, "checks": checks}


def run():
    """Entry point for leadagent-api console script."""
    uvicorn.run("leadagent.api.main:app", host="0.0.0.0", port=8000, reload=True)
