# backend/wellness/tasks/booking_tasks.py
"""
Booking background tasks.

The expiry sweep relies on the same conditional status transitions as the
request handlers, so it can run at any time without coordinating with them.
"""

from datetime import date, datetime, timezone
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..services.booking_service import BookingService
from .celery_app import celery_app

logger = logging.getLogger(__name__)


def run_expiry_sweep(db: Session, today: Optional[date] = None) -> Dict[str, Any]:
    cancelled = BookingService(db).cancel_expired_bookings(today)
    return {
        "cancelled_count": len(cancelled),
        "cancelled_booking_ids": cancelled,
        "ran_at": datetime.now(timezone.utc).isoformat(),
    }


@celery_app.task(name="bookings.cancel_expired_bookings")  # type: ignore[misc]
def cancel_expired_bookings(today: Optional[str] = None) -> Dict[str, Any]:
    """
    Cancel unpaid bookings dated before ``today`` (ISO date, defaults to
    the current date).

    Returns:
        Summary with the number and ids of cancelled bookings
    """
    sweep_date = date.fromisoformat(today) if today else None
    db: Session = SessionLocal()
    try:
        result = run_expiry_sweep(db, sweep_date)
        logger.info(f"Expiry sweep finished: {result['cancelled_count']} cancelled")
        return result
    finally:
        db.close()
