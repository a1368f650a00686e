"""Daily snapshot cron hook."""

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.services.snapshot_scheduler import run_daily_snapshots

router = APIRouter(prefix="/api/v1/snapshots", tags=["snapshots"])


@router.post("/daily")
async def take_daily_snapshots(
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """
    Snapshot every artist for today. Safe to call more than once a day.

    Requires `Authorization: Bearer <CRON_SECRET>` when a cron secret is configured.
    """
    if settings.cron_secret and authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(status_code=401, detail="Unauthorized")

    results = await run_daily_snapshots(db)

    return {
        "processed": len(results),
        "succeeded": len([r for r in results if r.success]),
        "failed": len([r for r in results if not r.success]),
        "results": [r.to_dict() for r in results],
    }
