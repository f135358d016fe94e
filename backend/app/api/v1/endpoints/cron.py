from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from backend.app.core.config import Settings, get_settings
from backend.app.core.database import get_db
from backend.app.core.security import verify_cron_secret
from backend.app.schemas.shift import SweepOut
from backend.app.services.sweep import close_stale_shifts

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/close-shifts", response_model=SweepOut, response_model_exclude_none=True)
def close_shifts(
    target_date: date | None = Query(default=None, alias="date"),
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> SweepOut:
    """Close yesterday's open shifts. Called by the platform scheduler."""
    if not verify_cron_secret(authorization, settings.CRON_SECRET):
        logger.warning("Rejected close-shifts call with invalid credentials")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    report = close_stale_shifts(db, target_date=target_date)
    return SweepOut(
        date=report.target_date.isoformat(),
        closed=report.closed,
        total=report.total,
        errors=report.errors or None,
    )
