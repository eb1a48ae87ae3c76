"""
FastAPI application entrypoint.

Lifespan:
  • On startup: verify DB connectivity, optionally create tables.
  • On shutdown: dispose the engine cleanly.

Routers:
  • /api   — protected endpoints behind the admission gate
  • /admin — client/key provisioning and usage reporting
  • /health — shallow liveness probe
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from keygate.core.config import settings
from keygate.core.database import Base, engine
from keygate.core.errors import InvalidConfigError, StoreUnavailableError
from keygate.routers.admin import router as admin_router
from keygate.routers.api import router as api_router

# Register every model on Base.metadata before create_all
import keygate.models.api_key  # noqa: F401
import keygate.models.client  # noqa: F401
import keygate.models.quota_counter  # noqa: F401
import keygate.models.usage  # noqa: F401

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""

    # Startup — verify DB is reachable
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if settings.AUTO_CREATE_TABLES:
                await conn.run_sync(Base.metadata.create_all)
                logger.info("Schema ensured (AUTO_CREATE_TABLES) ✓")
        logger.info("Database connection verified ✓")
    except Exception:
        logger.warning(
            "Could not reach the database on startup. "
            "The app will start, but every admission will be denied "
            "until the DB is available."
        )

    yield  # ← application runs here

    # Shutdown — clean up connection pool
    await engine.dispose()
    logger.info("Database engine disposed ✓")


# ── App ─────────────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description=(
        "API key gatekeeper — credential verification, atomic daily "
        "quotas, and usage recording."
    ),
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api")
app.include_router(admin_router, prefix="/admin")


# ── Error mapping ───────────────────────────────────────────
@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(_request: Request, exc: StoreUnavailableError) -> JSONResponse:
    logger.error("Store unavailable: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": {"code": "StoreUnavailable", "message": "Storage is unavailable. Please try again."}},
    )


@app.exception_handler(InvalidConfigError)
async def invalid_config_handler(_request: Request, exc: InvalidConfigError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": {"code": "InvalidConfig", "message": str(exc)}},
    )


# ── Health check ────────────────────────────────────────────
@app.get(
    "/health",
    tags=["System"],
    summary="Liveness probe",
)
async def health_check() -> dict[str, str]:
    """Shallow health check — confirms the process is alive."""
    return {"status": "healthy"}


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    logger.info("Starting %s on %s:%d", settings.APP_NAME, settings.HOST, settings.PORT)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
