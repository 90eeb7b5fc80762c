"""
Menu Repository - Read-only access to the venue catalogue.
"""

from typing import Sequence

from sqlalchemy import Select, select

from pos_api.models import MenuItem, Venue
from .base import BaseRepository


class MenuItemRepository(BaseRepository[MenuItem]):
    """Repository for MenuItem entities."""

    @property
    def model(self) -> type[MenuItem]:
        return MenuItem

    def _base_query(self, venue_id: int) -> Select:
        return select(MenuItem).where(
            MenuItem.venue_id == venue_id,
            MenuItem.is_active.is_(True),
        )

    def find_catalogue(self, venue_id: int) -> Sequence[MenuItem]:
        """Every catalogue item, available or not, keyed lookups done by the caller."""
        return self._db.execute(
            self._base_query(venue_id).order_by(MenuItem.id)
        ).scalars().all()

    def find_venue(self, venue_id: int) -> Venue | None:
        return self._db.scalar(
            select(Venue).where(Venue.id == venue_id, Venue.is_active.is_(True))
        )
