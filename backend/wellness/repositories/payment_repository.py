# backend/wellness/repositories/payment_repository.py
"""Payment Repository: gateway and cash payment records attached to bookings."""

from datetime import datetime
from decimal import Decimal
import logging
from typing import List, Optional, cast

from sqlalchemy.orm import Session

from ..models.payment import Payment, PaymentRecordStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    def __init__(self, db: Session):
        super().__init__(db, Payment)
        self.logger = logging.getLogger(__name__)

    def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Optional[Payment]:
        return cast(Optional[Payment], self.find_one_by(gateway_payment_id=gateway_payment_id))

    def get_for_booking(self, booking_id: str) -> List[Payment]:
        return cast(
            List[Payment],
            self.db.query(Payment)
            .filter(Payment.booking_id == booking_id)
            .order_by(Payment.created_at)
            .all(),
        )

    def mark_collected(self, payment: Payment, paid_at: datetime) -> Payment:
        """Settle a pending record once the money is in hand."""
        payment.status = PaymentRecordStatus.COMPLETED.value
        payment.remaining_amount = Decimal("0.00")
        payment.paid_at = paid_at
        self.db.flush()
        return payment
