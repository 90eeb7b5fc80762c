"""
Base Repository implementation.

Every query goes through ``_base_query(venue_id)``, so a terminal can
never read or lock a row belonging to another venue.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import Session


ModelT = TypeVar("ModelT")


class BaseRepository(ABC, Generic[ModelT]):
    """Venue-scoped lookups shared by the concrete repositories. Never commits."""

    def __init__(self, db: Session):
        self._db = db

    @property
    @abstractmethod
    def model(self) -> type[ModelT]:
        ...

    @abstractmethod
    def _base_query(self, venue_id: int) -> Select:
        """Select of ``model`` restricted to one venue, with any eager loads."""
        ...

    def find_by_id(self, entity_id: int, venue_id: int, for_update: bool = False) -> ModelT | None:
        """
        Row ``entity_id`` if it belongs to ``venue_id``.

        ``for_update`` takes a row lock held until the caller's transaction
        ends (a no-op on SQLite, which serializes writers anyway).
        """
        query = self._base_query(venue_id).where(self.model.id == entity_id)
        if for_update:
            query = query.with_for_update()
        return self._db.scalar(query)

    def add(self, entity: ModelT) -> ModelT:
        """Stage ``entity`` and flush so its generated id is available."""
        self._db.add(entity)
        self._db.flush()
        return entity
