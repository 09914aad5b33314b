# auto_chef/actions.py
"""Action primitives: classify a free-text task and drive the arm for it.

Classification is a display/timing aid only; it never changes whether an
order succeeds.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

import numpy as np

from .arm import Arm
from .matching import fold


class ActionKind(str, Enum):
    MOVEMENT = "movement"
    PICK_UP = "pick_up"
    PLACE = "place"
    GENERIC = "generic"


# Checked in this order; first hit wins.
ACTION_PHRASES: Tuple[Tuple[ActionKind, Tuple[str, ...]], ...] = (
    (ActionKind.MOVEMENT, ("move arm to", "di chuyển")),
    (ActionKind.PICK_UP, ("pick up", "gắp", "múc")),
    (ActionKind.PLACE, ("place", "pour", "đặt", "đổ")),
)

# Nominal simulated seconds per kind, before move_delay_factor.
TIMING_BANDS: Dict[ActionKind, Tuple[float, float]] = {
    ActionKind.MOVEMENT: (0.3, 0.8),
    ActionKind.PICK_UP: (0.5, 1.0),
    ActionKind.PLACE: (0.8, 1.2),
    ActionKind.GENERIC: (0.5, 1.5),
}


def classify_step(description: str) -> ActionKind:
    text = fold(description)
    for kind, phrases in ACTION_PHRASES:
        if any(fold(phrase) in text for phrase in phrases):
            return kind
    return ActionKind.GENERIC


@dataclass
class ActionResult:
    name: str
    success: bool
    details: str = ""


class ActionPrimitive:
    kind: ActionKind

    def __init__(self, rng: np.random.Generator, delay_factor: float = 1.0) -> None:
        self.rng = rng
        self.delay_factor = float(delay_factor)

    @property
    def name(self) -> str:
        return self.kind.value

    def nominal_delay(self) -> float:
        low, high = TIMING_BANDS[self.kind]
        return float(self.rng.uniform(low, high)) * self.delay_factor

    async def run(self, arm: Arm, ingredient: str, repeat_index: int) -> ActionResult:
        raise NotImplementedError


# ------------------------ Actions ------------------------

class MoveArm(ActionPrimitive):
    kind = ActionKind.MOVEMENT

    async def run(self, arm: Arm, ingredient: str, repeat_index: int) -> ActionResult:
        await arm.move_to(ingredient)
        await arm.wait(self.nominal_delay())
        return ActionResult(self.name, True, f"Moved arm to {ingredient}")


class PickUp(ActionPrimitive):
    kind = ActionKind.PICK_UP

    async def run(self, arm: Arm, ingredient: str, repeat_index: int) -> ActionResult:
        await arm.close_gripper()
        await arm.wait(self.nominal_delay())
        return ActionResult(self.name, True, f"Picked up {ingredient}")


class PlaceOrPour(ActionPrimitive):
    """Only the first repeat moves the ingredient; later repeats just spend time."""

    kind = ActionKind.PLACE

    async def run(self, arm: Arm, ingredient: str, repeat_index: int) -> ActionResult:
        if repeat_index == 0:
            await arm.transfer_ingredient(ingredient)
        else:
            await arm.wait(self.nominal_delay())
        await arm.open_gripper()
        return ActionResult(self.name, True, f"Placed {ingredient}")


class GenericAction(ActionPrimitive):
    kind = ActionKind.GENERIC

    async def run(self, arm: Arm, ingredient: str, repeat_index: int) -> ActionResult:
        await arm.wait(self.nominal_delay())
        return ActionResult(self.name, True, f"Worked on {ingredient}")


ACTION_TYPES = {
    ActionKind.MOVEMENT: MoveArm,
    ActionKind.PICK_UP: PickUp,
    ActionKind.PLACE: PlaceOrPour,
    ActionKind.GENERIC: GenericAction,
}


def build_action(description: str, rng: np.random.Generator, delay_factor: float = 1.0) -> ActionPrimitive:
    return ACTION_TYPES[classify_step(description)](rng, delay_factor)
