"""Physical arm black box used by the action primitives."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import numpy as np

LOGGER = logging.getLogger(__name__)


class Arm(ABC):
    """Coarse arm commands; kinematics and joint control live behind this."""

    @abstractmethod
    async def move_to(self, target: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def close_gripper(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def open_gripper(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def transfer_ingredient(self, ingredient: str) -> None:
        """Carry ``ingredient`` from its station into the serving bowl."""
        raise NotImplementedError

    @abstractmethod
    async def wait(self, seconds: float) -> None:
        raise NotImplementedError


class SimulatedArm(Arm):
    """Arm stand-in that only spends (scaled) time and records each command."""

    TRANSFER_BAND: Tuple[float, float] = (1.0, 2.0)

    def __init__(self, time_scale: float = 1.0, rng: Optional[np.random.Generator] = None) -> None:
        self.time_scale = float(time_scale)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.history: List[Tuple[str, str]] = []
        self.gripper_closed = False

    async def _spend(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds * self.time_scale))

    async def move_to(self, target: str) -> None:
        self.history.append(("move_to", target))

    async def close_gripper(self) -> None:
        self.history.append(("close_gripper", ""))
        self.gripper_closed = True

    async def open_gripper(self) -> None:
        self.history.append(("open_gripper", ""))
        self.gripper_closed = False

    async def transfer_ingredient(self, ingredient: str) -> None:
        self.history.append(("transfer_ingredient", ingredient))
        await self._spend(float(self.rng.uniform(*self.TRANSFER_BAND)))
        LOGGER.debug("Transferred %s to serving bowl", ingredient)

    async def wait(self, seconds: float) -> None:
        await self._spend(seconds)
