# backend/wellness/repositories/business_repository.py
"""Business and Service lookups used to scope bookings to their owner."""

import logging
from typing import Optional, cast

from sqlalchemy.orm import Session, joinedload

from ..models.business import Business, Service
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BusinessRepository(BaseRepository[Business]):
    def __init__(self, db: Session):
        super().__init__(db, Business)
        self.logger = logging.getLogger(__name__)

    def get_by_owner(self, owner_id: str) -> Optional[Business]:
        """The business owned by a user; one business per owner account."""
        return cast(
            Optional[Business],
            self.db.query(Business)
            .filter(Business.owner_id == owner_id)
            .order_by(Business.created_at)
            .first(),
        )


class ServiceRepository(BaseRepository[Service]):
    def __init__(self, db: Session):
        super().__init__(db, Service)
        self.logger = logging.getLogger(__name__)

    def get_with_business(self, service_id: str) -> Optional[Service]:
        return cast(
            Optional[Service],
            self.db.query(Service)
            .options(joinedload(Service.business))
            .filter(Service.id == service_id)
            .first(),
        )
