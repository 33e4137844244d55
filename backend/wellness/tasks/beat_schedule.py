# backend/wellness/tasks/beat_schedule.py
"""Celery Beat schedule: periodic jobs keyed by name."""

from typing import Any, Dict

from celery.schedules import crontab

from ..core.config import settings


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return {
        # Unpaid bookings whose date has passed are cancelled once a day.
        "cancel-expired-bookings": {
            "task": "bookings.cancel_expired_bookings",
            "schedule": crontab(hour=settings.expiry_sweep_hour, minute=0),
            "options": {"queue": "bookings", "priority": 5},
        },
    }
