"""Per-order lifecycle: claim, Processing, then Completed / Failed / Cancelled.

At most one order is in flight. The claim is an explicit token handed out by
:class:`SingleFlight`; it is released by a context manager on every exit path
(success, per-order failure, cancellation, shutdown), exactly once.

Per-order errors never leave :meth:`OrderLifecycleController.process`. They
are turned into a backend status push and an :class:`OrderReport`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

import numpy as np

from .actuator import Actuator
from .api_client import Backend
from .catalog import Recipe, RecipeCatalog
from .errors import (
    ActuatorFailed,
    ActuatorTimeout,
    InvalidRecipeIndex,
    NoRecipesAvailable,
    OrderAlreadyInFlight,
    OrderCancelled,
    OrderProcessingError,
    StatusPushFailed,
    TransientBackendError,
)
from .executor import OrderContext
from .models import OperationLogRequest, OrderApiModel
from .monitor import CompletionMonitor, MonitorOutcome
from .rc_logging import StatusBoard
from .rc_types import OrderOutcome, OrderStatus

LOGGER = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Single-flight claim


class OrderClaim:
    """Token proving ownership of the single in-flight slot."""

    def __init__(self, owner: "SingleFlight", order: OrderApiModel) -> None:
        self._owner = owner
        self.order = order
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """Release the slot; returns False if this token had already let go."""
        if self._released:
            return False
        self._released = True
        return self._owner._release(self)

    def __enter__(self) -> "OrderClaim":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class SingleFlight:

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._holder: Optional[OrderClaim] = None
        self.release_count = 0

    @property
    def active(self) -> Optional[OrderClaim]:
        return self._holder

    def try_claim(self, order: OrderApiModel) -> Optional[OrderClaim]:
        with self._lock:
            if self._holder is not None:
                return None
            self._holder = OrderClaim(self, order)
            return self._holder

    def claim(self, order: OrderApiModel) -> OrderClaim:
        claim = self.try_claim(order)
        if claim is None:
            active = self._holder
            raise OrderAlreadyInFlight(
                f"Order {active.order.order_id if active else '?'} is still processing"
            )
        return claim

    def _release(self, claim: OrderClaim) -> bool:
        with self._lock:
            if self._holder is not claim:
                return False
            self._holder = None
            self.release_count += 1
            return True


# --------------------------------------------------------------------------- #
# Reports


@dataclass(frozen=True)
class OrderReport:
    order_id: int
    outcome: OrderOutcome
    error_kind: Optional[str] = None
    recipe_id: Optional[int] = None
    operation_log: str = ""
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def pushed_status(self) -> Optional[OrderStatus]:
        if self.outcome == OrderOutcome.COMPLETED:
            return OrderStatus.COMPLETED
        if self.outcome in (OrderOutcome.FAILED, OrderOutcome.TIMED_OUT):
            return OrderStatus.FAILED
        return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --------------------------------------------------------------------------- #
# Controller


class OrderLifecycleController:

    def __init__(
        self,
        backend: Backend,
        catalog: RecipeCatalog,
        actuator: Actuator,
        monitor: CompletionMonitor,
        board: StatusBoard,
        robot_id: int = 1,
        use_random_recipe: bool = False,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.backend = backend
        self.catalog = catalog
        self.actuator = actuator
        self.monitor = monitor
        self.board = board
        self.robot_id = robot_id
        self.use_random_recipe = use_random_recipe
        self.rng = rng if rng is not None else np.random.default_rng()
        self.flight = SingleFlight()

    # ------------------------------------------------------------------ #
    # Accessors

    @property
    def is_busy(self) -> bool:
        return self.flight.active is not None

    @property
    def current_order(self) -> Optional[OrderApiModel]:
        claim = self.flight.active
        return claim.order if claim is not None else None

    # ------------------------------------------------------------------ #
    # Recipe selection

    def select_recipe(self, order: OrderApiModel) -> Tuple[Recipe, str]:
        recipes = self.catalog.get_recipes()
        target = next((i for i, r in enumerate(recipes) if r.recipe_id == order.recipe_id), -1)

        if not self.use_random_recipe and target != -1:
            return recipes[target], f"Using specified recipe: ID={order.recipe_id}, Index={target}"

        if not recipes:
            raise NoRecipesAvailable(f"No recipes available to process order {order.order_id}.")

        index = int(self.rng.integers(0, len(recipes)))
        if self.use_random_recipe:
            reason = "Random recipe enabled"
        else:
            reason = f"Specified RecipeId {order.recipe_id} not found among {len(recipes)} loaded recipes"
        if not 0 <= index < len(recipes):
            raise InvalidRecipeIndex(f"Invalid recipe index determined for Order {order.order_id}.")
        return recipes[index], f"Using random recipe index: {index} ({reason})"

    # ------------------------------------------------------------------ #
    # Lifecycle

    async def process(self, order: OrderApiModel) -> OrderReport:
        try:
            claim = self.flight.claim(order)
        except OrderAlreadyInFlight as exc:
            self.board.post(f"Refusing order {order.order_id}: {exc}", level="warning")
            return OrderReport(order.order_id, OrderOutcome.REFUSED, error_kind=type(exc).__name__)

        with claim:
            return await self._process_claimed(order)

    async def _process_claimed(self, order: OrderApiModel) -> OrderReport:
        started_at = _now()
        recipe: Optional[Recipe] = None
        log_text = ""
        dispatched = False

        try:
            self.actuator.clear_log()
            self.board.post(f"Setting order {order.order_id} status to Processing")
            await self._push(order.order_id, OrderStatus.PROCESSING)
            self.board.post(f"Processing order: {order.order_id}")

            recipe, reason = self.select_recipe(order)
            self.board.post(reason)

            context = OrderContext(
                order_id=order.order_id,
                robot_id=order.robot_id or self.robot_id,
                recipe_id=recipe.recipe_id,
                recipe_name=recipe.name,
            )
            await self.actuator.dispatch(context, recipe.ingredients)
            dispatched = True
            self.board.post(f"Waiting for robot to cook Order {order.order_id}...")

            result = await self.monitor.wait(self.actuator, context.label)
            if result.outcome in (MonitorOutcome.TIMED_OUT, MonitorOutcome.CANCELLED):
                await self.actuator.abort()
            log_text = self._read_log(dispatched)

            if result.outcome == MonitorOutcome.CANCELLED:
                raise OrderCancelled(f"Recipe processing cancelled for Order {order.order_id}.")
            if result.outcome == MonitorOutcome.TIMED_OUT:
                raise ActuatorTimeout(
                    f"Recipe processing timed out after {result.elapsed_ms // 1000}s for Order {order.order_id}. "
                    f"Last known status: {result.last_status.value}"
                )
            if result.outcome == MonitorOutcome.FAILED:
                raise ActuatorFailed(f"Recipe processing failed for Order {order.order_id}.")

            await self._push(order.order_id, OrderStatus.COMPLETED)
            ended_at = _now()
            self.board.post(f"Order {order.order_id} completed successfully")
            await self._submit_log(order, started_at, ended_at, log_text)
            return OrderReport(
                order.order_id, OrderOutcome.COMPLETED, None,
                recipe.recipe_id, log_text, started_at, ended_at,
            )

        except OrderCancelled as exc:
            self.board.post(str(exc), level="warning")
            return OrderReport(
                order.order_id, OrderOutcome.CANCELLED, "Cancelled",
                recipe.recipe_id if recipe else None, log_text or self._read_log(dispatched), started_at, _now(),
            )

        except OrderProcessingError as exc:
            self.board.post(f"Error processing order {order.order_id}: {exc}", level="error")
            await self._push_failed_best_effort(order.order_id)
            outcome = OrderOutcome.TIMED_OUT if isinstance(exc, ActuatorTimeout) else OrderOutcome.FAILED
            return OrderReport(
                order.order_id, outcome, exc.kind,
                recipe.recipe_id if recipe else None, log_text or self._read_log(dispatched), started_at, _now(),
            )

        except Exception as exc:
            LOGGER.exception("Unexpected error processing order %s", order.order_id)
            self.board.post(f"Error processing order {order.order_id}: {exc}", level="error")
            await self.actuator.abort()
            await self._push_failed_best_effort(order.order_id)
            return OrderReport(
                order.order_id, OrderOutcome.FAILED, type(exc).__name__,
                recipe.recipe_id if recipe else None, log_text or self._read_log(dispatched), started_at, _now(),
            )

    # ------------------------------------------------------------------ #
    # Backend helpers

    async def _push(self, order_id: int, status: OrderStatus) -> None:
        try:
            await self.backend.push_order_status(order_id, status.value)
        except TransientBackendError as exc:
            raise StatusPushFailed(f"Could not set order {order_id} to {status.value}: {exc}") from exc
        self.board.post(f"Successfully updated order {order_id} status to {status.value}")

    async def _push_failed_best_effort(self, order_id: int) -> None:
        try:
            await self.backend.push_order_status(order_id, OrderStatus.FAILED.value)
        except TransientBackendError as exc:
            self.board.post(f"Error updating order {order_id} status to Failed: {exc}", level="error")

    async def _submit_log(self, order: OrderApiModel, started_at: datetime, ended_at: datetime, log_text: str) -> None:
        request = OperationLogRequest(
            order_id=order.order_id,
            robot_id=order.robot_id or self.robot_id,
            start_time=started_at,
            end_time=ended_at,
            completion_status=OrderStatus.COMPLETED.value,
            operation_log=log_text,
        )
        try:
            await self.backend.submit_operation_log(request)
            self.board.post(f"Successfully posted operation log for order {order.order_id}")
        except TransientBackendError as exc:
            self.board.post(f"Error posting operation log: {exc}", level="error")

    def _read_log(self, dispatched: bool = True) -> str:
        if not dispatched:
            return ""
        try:
            return self.actuator.get_log()
        except Exception as exc:
            self.board.post(f"Error getting operation log: {exc}", level="warning")
            return "Log unavailable"
