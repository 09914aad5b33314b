"""Sequential executor for one recipe's ingredients, plus its per-order log."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .actions import build_action
from .arm import Arm
from .catalog import OperationStep
from .config import ExecutionConfig
from .rc_types import TTaskResult as TaskResult
from .utils import format_time, pause

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationLogEntry:
    sequence: int
    description: str
    success: bool
    duration_s: float

    def render(self) -> str:
        prefix = f"- Task {self.sequence}: " if self.sequence > 0 else "- "
        status = "Success" if self.success else "Failed"
        return f"{prefix}{self.description} [{status}] - {int(self.duration_s)}s"


@dataclass(frozen=True)
class OrderContext:
    order_id: int
    robot_id: int
    recipe_id: int
    recipe_name: str

    @property
    def label(self) -> str:
        return f"Order #{self.order_id}" if self.order_id > 0 else "Test Order"


class OperationLogger:
    """Append-only log for the order being processed. Never truncated."""

    def __init__(self) -> None:
        self._header = ""
        self._entries: List[OperationLogEntry] = []
        self._summary: Optional[str] = None
        self._label = "Test Order"

    def reset(self) -> None:
        self._header = ""
        self._entries.clear()
        self._summary = None
        self._label = "Test Order"

    def begin(self, context: OrderContext) -> None:
        self.reset()
        self._label = context.label
        self._header = f"Robot #{context.robot_id} processing {context.label} ({context.recipe_name}):"

    @property
    def next_sequence(self) -> int:
        return len(self._entries) + 1

    def record(self, description: str, result: TaskResult) -> OperationLogEntry:
        entry = OperationLogEntry(self.next_sequence, description, bool(result.success), float(result.duration))
        self._entries.append(entry)
        return entry

    def finish(self, outcome: str, elapsed_s: float) -> None:
        if self._summary is None:
            self._summary = f"{self._label} completed in {format_time(elapsed_s)} [{outcome}]"

    def entries(self) -> Tuple[OperationLogEntry, ...]:
        return tuple(self._entries)

    def text(self) -> str:
        lines = [self._header] if self._header else []
        lines.extend(entry.render() for entry in self._entries)
        if self._summary is not None:
            lines.append(self._summary)
        return "\n".join(lines) + ("\n" if lines else "")


class TaskExecutor:
    """Runs ingredients, then steps, then repeats, strictly one at a time."""

    def __init__(
        self,
        catalog,
        arm: Arm,
        cfg: ExecutionConfig,
        log: Optional[OperationLogger] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.catalog = catalog
        self.arm = arm
        self.cfg = cfg
        self.log = log if log is not None else OperationLogger()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.clock = clock

    async def execute(self, context: OrderContext, ingredients: Sequence[str]) -> OperationLogger:
        started = self.clock()
        for index, ingredient in enumerate(ingredients):
            steps = self.catalog.get_operations_for(ingredient)
            if steps:
                await self._run_ingredient(ingredient, steps)
            else:
                await self._run_default(ingredient)
            if index < len(ingredients) - 1:
                await pause(self.cfg.ingredient_pause_s)

        self.log.finish("Success", self.clock() - started)
        LOGGER.info("%s finished %d tasks", context.label, len(self.log.entries()))
        return self.log

    async def _run_ingredient(self, ingredient: str, steps: Sequence[OperationStep]) -> None:
        for step in steps:
            count = step.repeat_count
            for repeat in range(count):
                suffix = f" ({repeat + 1}/{count})" if count > 1 else ""
                description = f"{step.description}{suffix}"
                result = await self.run_step(ingredient, step.description, repeat)
                self.log.record(description, result)
                if repeat < count - 1:
                    await pause(self.cfg.repeat_pause_s)

    async def run_step(self, ingredient: str, description: str, repeat_index: int) -> TaskResult:
        """Dispatch one step and time it; a failing step is reported, not raised."""
        action = build_action(description, self.rng, self.cfg.move_delay_factor)
        started = self.clock()
        success = True
        error: Optional[Exception] = None
        try:
            result = await action.run(self.arm, ingredient, repeat_index)
            success = result.success
            LOGGER.debug("%s: %s", result.name, result.details)
        except Exception as exc:
            success = False
            error = exc
        finally:
            duration = self.clock() - started
        if error is not None:
            LOGGER.error("Task '%s' for %s failed after %.2fs: %s", description, ingredient, duration, error)
        return TaskResult(success, duration)

    async def _run_default(self, ingredient: str) -> None:
        success = True
        try:
            await self.arm.transfer_ingredient(ingredient)
        except Exception as exc:
            success = False
            LOGGER.error("Error moving ingredient %s: %s", ingredient, exc)
        self.log.record(
            f"Processing {ingredient} (default operations)",
            TaskResult(success, self.cfg.default_step_duration_s),
        )
