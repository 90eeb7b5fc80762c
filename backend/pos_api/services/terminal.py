"""
Terminal registry.

A running terminal keeps one TableOrderController per table it has
touched, each with its own local cart and document sink. Controllers are
loaded (hydrated, reconciled and subscribed) on first use and live until
shutdown.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from sqlalchemy.orm import sessionmaker

from pos_api.services.documents import CollectingDocumentSink, DocumentSink
from pos_api.services.domain.cart_service import CartStore
from pos_api.services.domain.order_store import OrderStore
from pos_api.services.domain.table_controller import TableOrderController
from shared.config.logging import pos_api_logger as logger
from shared.infrastructure.retry import RetryPolicy


class TerminalRegistry:
    """
    Usage:
        registry = TerminalRegistry(store, CartSessionLocal)
        controller = await registry.get(venue_id=1, table_id=3, staff_id=9)
    """

    def __init__(
        self,
        store: OrderStore,
        cart_session_factory: sessionmaker,
        sink_factory: Callable[[], DocumentSink] = CollectingDocumentSink,
        retry_policy: RetryPolicy | None = None,
        hydration_timeout: float | None = None,
    ):
        self.store = store
        self._cart_session_factory = cart_session_factory
        self._sink_factory = sink_factory
        self._retry_policy = retry_policy
        self._hydration_timeout = hydration_timeout
        self._controllers: dict[tuple[int, int], TableOrderController] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._controllers)

    async def get(self, venue_id: int, table_id: int, staff_id: int | None = None) -> TableOrderController:
        """Return the table's controller, loading it on first use."""
        key = (venue_id, table_id)
        async with self._lock:
            controller = self._controllers.get(key)
            if controller is None:
                controller = TableOrderController(
                    self.store,
                    CartStore(self._cart_session_factory(), venue_id, table_id),
                    self._sink_factory(),
                    venue_id=venue_id,
                    table_id=table_id,
                    staff_id=staff_id,
                    retry_policy=self._retry_policy,
                    hydration_timeout=self._hydration_timeout,
                )
                try:
                    await controller.load()
                except Exception:
                    await controller.close()
                    raise
                self._controllers[key] = controller

        if staff_id is not None:
            controller.staff_id = staff_id
        return controller

    async def close_all(self) -> None:
        async with self._lock:
            controllers = list(self._controllers.values())
            self._controllers.clear()
        for controller in controllers:
            await controller.close()
        logger.info("Terminal controllers closed", count=len(controllers))
