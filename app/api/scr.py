"""Stan Conversion Rate API endpoints."""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import Artist
from app.services.scr import CohortMetricsService

router = APIRouter(prefix="/api/v1/scr", tags=["scr"])


@router.get("/{artist_id}")
async def get_scr(
    artist_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Live SCR for an artist.

    Returns:
    - Composite SCR with label and interpretation
    - Component metrics and which ones fell back to defaults
    - Week-over-week trend
    - Last 30 days of daily history
    """
    try:
        artist_uuid = uuid.UUID(artist_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid artist_id format")

    artist = await db.get(Artist, artist_uuid)
    if not artist:
        raise HTTPException(status_code=404, detail="Artist not found")

    service = CohortMetricsService(db)
    return {"artist_id": artist_id, **await service.get_dashboard(artist_uuid)}
