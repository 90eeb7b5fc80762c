"""
FastAPI dependencies shared by the routers.
"""

from fastapi import Depends, Header, Request

from pos_api.services.domain.table_controller import TableOrderController
from pos_api.services.terminal import TerminalRegistry


def get_registry(request: Request) -> TerminalRegistry:
    """The terminal registry created by the lifespan handler."""
    return request.app.state.registry


async def get_controller(
    venue_id: int,
    table_id: int,
    x_staff_id: int | None = Header(default=None),
    registry: TerminalRegistry = Depends(get_registry),
) -> TableOrderController:
    """
    The table's lifecycle controller, loaded on first use.
    X-Staff-Id identifies who places orders and takes payments.
    """
    return await registry.get(venue_id, table_id, staff_id=x_staff_id)
