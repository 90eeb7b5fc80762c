"""
Event Schema.

The notification pushed to every terminal of a venue after an order or
table write commits.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any

from shared.utils.clock import utc_now


def _check_id(value: Any, name: str, optional: bool = False) -> None:
    if optional and value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"Event {name} must be a positive integer, got {value!r}")


@dataclass
class Event:
    """
    Order change notification.

    Only identifiers travel on the wire. A terminal receiving an event
    re-reads the table's orders from the database, which stays the single
    source of truth.
    """

    type: str
    venue_id: int
    table_id: int | None = None
    entity: dict[str, Any] = field(default_factory=dict)
    actor: dict[str, Any] = field(default_factory=dict)
    ts: str | None = None
    v: int = 1

    def __post_init__(self) -> None:
        if not isinstance(self.type, str) or not self.type:
            raise ValueError("Event type must be a non-empty string")
        _check_id(self.venue_id, "venue_id")
        _check_id(self.table_id, "table_id", optional=True)
        self.entity = self._mapping(self.entity, "entity")
        self.actor = self._mapping(self.actor, "actor")

    @staticmethod
    def _mapping(value: Any, name: str) -> dict[str, Any]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError(f"Event {name} must be an object")
        return value

    def concerns_table(self, table_id: int) -> bool:
        """Venue-wide events (no table_id) concern every table."""
        return self.table_id is None or self.table_id == table_id

    def to_json(self) -> str:
        data = asdict(self)
        data["ts"] = self.ts or utc_now().isoformat()
        return json.dumps(data, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, payload: str) -> Event:
        """Parse a wire payload. Raises ValueError (or TypeError on unknown keys)."""
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("Event payload must be a JSON object")
        return cls(**data)
