"""Celery application instance.

Start the worker::

    celery -A backend.app.workers.celery_app worker --loglevel=info
    celery -A backend.app.workers.celery_app beat --loglevel=info
"""

from __future__ import annotations

from celery import Celery
from celery.schedules import crontab

from backend.app.core.config import settings

celery = Celery(
    "shift_settlement",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone=settings.BUSINESS_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

# Task modules under workers/tasks/
celery.conf.include = ["backend.app.workers.tasks.shifts"]

# Beat schedule, evaluated in the business time zone
celery.conf.beat_schedule = {
    "close-stale-shifts-daily": {
        "task": "backend.app.workers.tasks.shifts.close_stale_shifts",
        "schedule": crontab(
            hour=settings.SHIFT_SWEEP_HOUR, minute=settings.SHIFT_SWEEP_MINUTE
        ),
    },
}
