"""Status-level actuator contract used by the orchestration core."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from .errors import ActuatorBusy
from .executor import OrderContext, TaskExecutor
from .rc_types import ActuatorStatus

LOGGER = logging.getLogger(__name__)


class ServingGate(ABC):
    """External output stage; closed while a finished bowl is being served."""

    @abstractmethod
    def can_receive_orders(self) -> bool:
        raise NotImplementedError


class OpenServingGate(ServingGate):

    def __init__(self, open_: bool = True) -> None:
        self._open = open_

    def can_receive_orders(self) -> bool:
        return self._open

    def close(self) -> None:
        self._open = False

    def open(self) -> None:
        self._open = True


class Actuator(ABC):

    @abstractmethod
    async def dispatch(self, context: OrderContext, ingredients: Sequence[str]) -> None:
        raise NotImplementedError

    @abstractmethod
    def is_busy(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def get_status(self) -> ActuatorStatus:
        raise NotImplementedError

    @abstractmethod
    def get_log(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def clear_log(self) -> None:
        """Drop the previous order's log before a new order starts."""
        raise NotImplementedError

    @abstractmethod
    async def abort(self) -> None:
        """Stop an in-flight dispatch so the next order can run."""
        raise NotImplementedError


class RecipeActuator(Actuator):
    """Runs a :class:`TaskExecutor` as one background task per dispatch."""

    def __init__(self, executor: TaskExecutor) -> None:
        self.executor = executor
        self._status = ActuatorStatus.WAITING
        self._task: Optional[asyncio.Task] = None

    async def dispatch(self, context: OrderContext, ingredients: Sequence[str]) -> None:
        if self.is_busy():
            raise ActuatorBusy("Robot is busy, please wait")
        self.executor.log.begin(context)
        self._status = ActuatorStatus.PROCESSING
        self._task = asyncio.create_task(self._run(context, tuple(ingredients)), name=f"recipe-{context.order_id}")
        LOGGER.info("Dispatched %s (%s) with %d ingredients", context.label, context.recipe_name, len(ingredients))

    async def _run(self, context: OrderContext, ingredients: Sequence[str]) -> None:
        try:
            await self.executor.execute(context, ingredients)
        except asyncio.CancelledError:
            self._status = ActuatorStatus.FAILED
            raise
        except Exception:
            LOGGER.exception("Recipe execution crashed for %s", context.label)
            self._status = ActuatorStatus.FAILED
        else:
            self._status = ActuatorStatus.COMPLETED

    def is_busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_status(self) -> ActuatorStatus:
        return self._status

    def get_log(self) -> str:
        return self.executor.log.text()

    def clear_log(self) -> None:
        if self.is_busy():
            raise ActuatorBusy("Cannot clear the log while a recipe is running")
        self.executor.log.reset()

    async def abort(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.wait({task})
        self._status = ActuatorStatus.FAILED
        LOGGER.warning("Aborted in-flight recipe execution")
