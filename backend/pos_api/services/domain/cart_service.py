"""
Cart Domain Service.

The terminal-local cart for one (venue, table) pair. Every mutation is
committed to the local durable store so a restart keeps the cart.
No price or quantity validation happens here; callers own correctness.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from pos_api.models import CartLine
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.money import to_money
from .snapshots import CartLineView

logger = get_logger(__name__)


class CartStore:
    """
    Cart lines keyed by (venue_id, table_id).

    ``item_id`` arguments match a line id first, then the first line of
    that menu item.
    """

    def __init__(self, db: Session, venue_id: int, table_id: int):
        self._db = db
        self.venue_id = venue_id
        self.table_id = table_id

    def _lines(self) -> Sequence[CartLine]:
        return self._db.execute(
            select(CartLine)
            .where(CartLine.venue_id == self.venue_id, CartLine.table_id == self.table_id)
            .order_by(CartLine.position, CartLine.id)
        ).scalars().all()

    def _find(self, item_id: int) -> CartLine | None:
        lines = self._lines()
        for line in lines:
            if line.id == item_id:
                return line
        for line in lines:
            if line.menu_item_id == item_id:
                return line
        return None

    def get(self) -> list[CartLineView]:
        return [CartLineView.from_model(line) for line in self._lines()]

    def totals(self) -> tuple[Decimal, int]:
        """(subtotal, item_count) of the current cart."""
        lines = self._lines()
        subtotal = to_money(sum((line.line_total for line in lines), Decimal(0)))
        return subtotal, sum(line.quantity for line in lines)

    def item_count(self) -> int:
        return self._db.scalar(
            select(func.coalesce(func.sum(CartLine.quantity), 0))
            .where(CartLine.venue_id == self.venue_id, CartLine.table_id == self.table_id)
        ) or 0

    def add(
        self,
        menu_item_id: int,
        name: str,
        unit_price: Any,
        quantity: int = 1,
        variants: list[dict[str, Any]] | None = None,
        notes: str | None = None,
    ) -> list[CartLineView]:
        """
        Add a menu item.

        A variant-less add merges into the existing variant-less line of the
        same menu item. Lines with variants are always appended, since their
        price and display name differ.
        """
        unit_price = to_money(unit_price)
        lines = self._lines()

        existing = None
        if not variants:
            existing = next(
                (line for line in lines if line.menu_item_id == menu_item_id and not line.variants),
                None,
            )

        if existing:
            existing.quantity += quantity
            existing.line_total = to_money(existing.unit_price * existing.quantity)
            if notes:
                existing.notes = notes
        else:
            position = max((line.position for line in lines), default=-1) + 1
            self._db.add(CartLine(
                venue_id=self.venue_id,
                table_id=self.table_id,
                position=position,
                menu_item_id=menu_item_id,
                name=name,
                unit_price=unit_price,
                quantity=quantity,
                line_total=to_money(unit_price * quantity),
                variants=list(variants) if variants else None,
                notes=notes,
            ))

        safe_commit(self._db)
        logger.debug(
            "Cart item added",
            venue_id=self.venue_id,
            table_id=self.table_id,
            menu_item_id=menu_item_id,
            quantity=quantity,
            merged=existing is not None,
        )
        return self.get()

    def update_quantity(self, item_id: int, quantity: int) -> list[CartLineView]:
        """Set a line's quantity; zero or less removes it."""
        if quantity <= 0:
            return self.remove(item_id)

        line = self._find(item_id)
        if line:
            line.quantity = quantity
            line.line_total = to_money(line.unit_price * quantity)
            safe_commit(self._db)
        return self.get()

    def remove(self, item_id: int) -> list[CartLineView]:
        line = self._find(item_id)
        if line:
            self._db.delete(line)
            safe_commit(self._db)
        return self.get()

    def clear(self) -> None:
        self._db.execute(
            delete(CartLine).where(
                CartLine.venue_id == self.venue_id,
                CartLine.table_id == self.table_id,
            )
        )
        safe_commit(self._db)

    def close(self) -> None:
        self._db.close()
