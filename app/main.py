"""
Stanvault API.

Start with:
    uvicorn app.main:app --host 0.0.0.0 --port 8000
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from app.api import fans_router, scr_router, snapshots_router, verification_router
from app.config import settings
from app.log_config import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("api_starting", host=settings.api_host, port=settings.api_port)
    yield
    logger.info("api_stopped")


app = FastAPI(
    title="Stanvault",
    description="Fan scoring, Stan Conversion Rate and portable fan verification.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(fans_router)
app.include_router(scr_router)
app.include_router(snapshots_router)
app.include_router(verification_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
