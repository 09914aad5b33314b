"""Wires the catalog, actuator, monitor, controller and poller into one engine."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import numpy as np

from .actuator import OpenServingGate, RecipeActuator, ServingGate
from .api_client import Backend, BackendClient
from .arm import Arm, SimulatedArm
from .catalog import RecipeCatalog
from .config import MainConfig
from .errors import CatalogUnavailable
from .executor import TaskExecutor
from .monitor import CompletionMonitor
from .orchestrator import OrderLifecycleController
from .poller import Poller
from .rc_logging import StatusBoard

LOGGER = logging.getLogger(__name__)


class AutoChefService:

    def __init__(
        self,
        cfg: MainConfig,
        backend: Backend,
        catalog: RecipeCatalog,
        actuator: RecipeActuator,
        controller: OrderLifecycleController,
        poller: Poller,
        board: StatusBoard,
        shutdown: asyncio.Event,
    ) -> None:
        self.cfg = cfg
        self.backend = backend
        self.catalog = catalog
        self.actuator = actuator
        self.controller = controller
        self.poller = poller
        self.board = board
        self.shutdown = shutdown

    @classmethod
    def from_config(
        cls,
        cfg: MainConfig,
        backend: Optional[Backend] = None,
        arm: Optional[Arm] = None,
        gate: Optional[ServingGate] = None,
    ) -> "AutoChefService":
        shutdown = asyncio.Event()
        rng = np.random.default_rng(cfg.seed)
        board = StatusBoard(max_lines=cfg.max_console_lines)
        backend = backend if backend is not None else BackendClient(cfg.api)

        catalog = RecipeCatalog(backend, cfg.api.settings, shutdown=shutdown)
        arm = arm if arm is not None else SimulatedArm(time_scale=cfg.execution.move_delay_factor, rng=rng)
        executor = TaskExecutor(catalog, arm, cfg.execution, rng=rng)
        actuator = RecipeActuator(executor)
        monitor = CompletionMonitor(cfg.monitor, shutdown=shutdown, board=board)
        controller = OrderLifecycleController(
            backend,
            catalog,
            actuator,
            monitor,
            board,
            robot_id=cfg.robot_id,
            use_random_recipe=cfg.use_random_recipe,
            rng=rng,
        )
        poller = Poller(
            backend,
            catalog,
            controller,
            board,
            interval_s=cfg.api.settings.poll_interval_seconds,
            gate=gate if gate is not None else OpenServingGate(),
            shutdown=shutdown,
        )
        return cls(cfg, backend, catalog, actuator, controller, poller, board, shutdown)

    async def run(self) -> bool:
        """Poll until shutdown. Returns False if the catalog never became operational."""
        self.board.post("Initializing recipe data from API...")
        poll_task = asyncio.create_task(self.poller.run(), name="order-poller")
        try:
            try:
                await self.catalog.load_catalog()
                self.board.post("Recipe data loaded successfully! Robot ready, waiting for orders...")
            except CatalogUnavailable as exc:
                self.board.post(f"{exc}. System cannot operate.", level="error")
            await poll_task
        finally:
            if not poll_task.done():
                poll_task.cancel()
                await asyncio.wait({poll_task})
            await self.actuator.abort()
            close = getattr(self.backend, "close", None)
            if callable(close):
                close()
            self.board.post("API client shutting down")
        return self.catalog.is_operational

    def stop(self) -> None:
        self.shutdown.set()
