"""
Table Repository - Data access for venue tables.
"""

from sqlalchemy import Select, select

from pos_api.models import Table
from .base import BaseRepository


class TableRepository(BaseRepository[Table]):
    """Repository for Table entities."""

    @property
    def model(self) -> type[Table]:
        return Table

    def _base_query(self, venue_id: int) -> Select:
        return select(Table).where(
            Table.venue_id == venue_id,
            Table.is_active.is_(True),
        )
