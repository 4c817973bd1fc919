"""User persistence service."""
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.models import User
from app.services.delivery.geo import Coordinate


class UserPersistenceService:
    """Service for reading user records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        return await self.db.get(User, user_id)

    async def get_locations(self, user_ids: List[str]) -> Dict[str, Coordinate]:
        """Get stored coordinates for users that have them."""
        if not user_ids:
            return {}
        result = await self.db.execute(
            select(User.id, User.latitude, User.longitude).where(User.id.in_(user_ids))
        )
        return {
            row.id: Coordinate(latitude=row.latitude, longitude=row.longitude)
            for row in result.all()
            if row.latitude is not None and row.longitude is not None
        }
