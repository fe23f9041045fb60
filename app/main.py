"""
FastAPI Main Application
Pooled returns service: ledger, platforms and monthly return snapshots
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.core.logging import setup_logging
from app.infrastructure.db.database import close_db, init_db
from app.scheduler.scheduler import ReturnsScheduler

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

scheduler: Optional[ReturnsScheduler] = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Handles startup and shutdown of the database and scheduler
    """
    global scheduler

    # ===================
    # STARTUP
    # ===================
    logger.info("Starting pooled returns service (env=%s)", settings.APP_ENV)

    await init_db()
    logger.info("Database initialized")

    if settings.SCHEDULER_ENABLED:
        scheduler = ReturnsScheduler()
        scheduler.start()
    else:
        logger.info("Scheduler disabled")

    logger.info(
        "Returns engine: value source=%s, compounding=%s",
        settings.PLATFORM_VALUE_SOURCE, settings.RETURN_COMPOUNDING,
    )

    yield

    # ===================
    # SHUTDOWN
    # ===================
    if scheduler:
        scheduler.stop()
        scheduler = None

    await close_db()
    logger.info("Pooled returns service shutdown complete")


app = FastAPI(
    title="Pooled Returns Service",
    description="Monthly return attribution across pooled client capital",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {
        "message": "Pooled Returns Service",
        "version": "1.0.0",
        "docs": "/docs",
    }


# Import and include routers
from app.api.routes import corpus, health, ledger, platforms, returns  # noqa: E402

app.include_router(health.router, tags=["Health"])
app.include_router(returns.router, prefix="/api/v1/returns", tags=["Monthly Returns"])
app.include_router(corpus.router, prefix="/api/v1/corpus", tags=["Corpus"])
app.include_router(ledger.router, prefix="/api/v1/ledger", tags=["Ledger"])
app.include_router(platforms.router, prefix="/api/v1/platforms", tags=["Platforms"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)
