"""Stanvault API routes."""

from app.api.fans import router as fans_router
from app.api.scr import router as scr_router
from app.api.snapshots import router as snapshots_router
from app.api.verification import router as verification_router

__all__ = [
    "fans_router",
    "scr_router",
    "snapshots_router",
    "verification_router",
]
