"""Daily close of shifts left open past their business day."""

from __future__ import annotations

import logging
from datetime import date

from backend.app.workers.celery_app import celery

logger = logging.getLogger(__name__)


@celery.task(name="backend.app.workers.tasks.shifts.close_stale_shifts")
def close_stale_shifts(target_date: str | None = None) -> dict:
    """Close yesterday's OPEN shifts (or those of *target_date*, ``YYYY-MM-DD``)."""
    from backend.app.core.database import SessionLocal
    from backend.app.services.sweep import close_stale_shifts as run_sweep

    db = SessionLocal()
    try:
        report = run_sweep(
            db,
            target_date=date.fromisoformat(target_date) if target_date else None,
        )
        if report.failed:
            logger.warning(
                "Shift sweep for %s finished with %d errors", report.target_date, len(report.failed)
            )
        return {
            "date": report.target_date.isoformat(),
            "closed": report.closed,
            "total": report.total,
            "errors": report.errors,
        }
    finally:
        db.close()
