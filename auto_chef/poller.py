"""Fixed-interval loop that pulls the next queued order when the engine is idle."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from .actuator import ServingGate
from .api_client import Backend
from .catalog import RecipeCatalog
from .errors import TransientBackendError
from .orchestrator import OrderLifecycleController, OrderReport
from .rc_logging import StatusBoard
from .utils import pause

LOGGER = logging.getLogger(__name__)


class TickResult(str, Enum):
    NOT_OPERATIONAL = "not_operational"
    BUSY = "busy"
    GATE_CLOSED = "gate_closed"
    NO_ORDER = "no_order"
    INVALID_ORDER = "invalid_order"
    CANCELLED = "cancelled"
    PROCESSED = "processed"
    ERROR = "error"


class Poller:

    def __init__(
        self,
        backend: Backend,
        catalog: RecipeCatalog,
        controller: OrderLifecycleController,
        board: StatusBoard,
        interval_s: float,
        gate: Optional[ServingGate] = None,
        shutdown: Optional[asyncio.Event] = None,
    ) -> None:
        self.backend = backend
        self.catalog = catalog
        self.controller = controller
        self.board = board
        self.interval_s = interval_s
        self.gate = gate
        self.shutdown = shutdown if shutdown is not None else asyncio.Event()
        self.last_report: Optional[OrderReport] = None

    async def tick(self) -> TickResult:
        if not self.catalog.is_operational:
            return TickResult.NOT_OPERATIONAL
        if self.controller.is_busy:
            return TickResult.BUSY
        if self.gate is not None and not self.gate.can_receive_orders():
            self.board.post("Cannot receive new orders right now, bowl is being served", level="debug")
            return TickResult.GATE_CLOSED

        try:
            order = await self.backend.fetch_next_order()
            if order is None:
                LOGGER.debug("No new orders in queue")
                return TickResult.NO_ORDER
            if order.order_id <= 0:
                LOGGER.warning("Ignoring order with invalid id %s", order.order_id)
                return TickResult.INVALID_ORDER

            self.board.post(f"Received new order: {order.order_id}")
            if await self.backend.is_order_cancelled(order.order_id):
                self.board.post(f"Order {order.order_id} is cancelled. Skipping processing.", level="warning")
                return TickResult.CANCELLED
        except TransientBackendError as exc:
            self.board.post(f"Error fetching orders: {exc}", level="error")
            return TickResult.ERROR

        self.last_report = await self.controller.process(order)
        return TickResult.PROCESSED

    async def run(self) -> None:
        self.board.post("Starting order polling...")
        while not self.shutdown.is_set():
            try:
                await self.tick()
            except Exception as exc:
                LOGGER.exception("Error during order polling")
                self.board.post(f"Error during order polling: {exc}", level="error")
            if await pause(self.interval_s, self.shutdown):
                break
        self.board.post("Order polling stopped")
