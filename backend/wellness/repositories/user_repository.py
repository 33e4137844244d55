# backend/wellness/repositories/user_repository.py
"""User Repository: plain lookups for customers, therapists and business owners."""

import logging
from typing import Optional, cast

from sqlalchemy.orm import Session

from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)
        self.logger = logging.getLogger(__name__)

    def get_active(self, user_id: str) -> Optional[User]:
        return cast(Optional[User], self.find_one_by(id=user_id, is_active=True))
