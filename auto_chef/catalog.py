"""Recipe catalog: recipes plus the ingredient -> operation-step map used at execution time.

The catalog is built once at startup from three independently fetched
collections (active recipes, per-recipe steps, flat actuator tasks) joined by
recipe and step identifiers. An :class:`IngredientMatcher` decides which
ingredient each textual step belongs to; every actuator task keyed to that
step is then appended, in task order, to the ingredient's operation list.

Snapshots are immutable and swapped wholesale, so an order being processed
never sees a half-built map.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .api_client import Backend
from .config import ApiSettings
from .errors import CatalogUnavailable, TransientBackendError
from .matching import RULE_DEFAULT, IngredientMatcher, KeywordIngredientMatcher, fold
from .models import RecipeApiModel, RecipeStepApiModel, RobotStepApiModel
from .utils import pause

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipe:
    recipe_id: int
    name: str
    ingredients: Tuple[str, ...]


@dataclass(frozen=True)
class OperationStep:
    description: str
    estimated_time_s: float = 1.0
    repeat_count: int = 1

    def __post_init__(self) -> None:
        if self.repeat_count < 1:
            object.__setattr__(self, "repeat_count", 1)


@dataclass(frozen=True)
class CatalogSnapshot:
    recipes: Tuple[Recipe, ...] = ()
    operations: Mapping[str, Tuple[OperationStep, ...]] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def build(cls, recipes: Iterable[Recipe], operations: Mapping[str, Sequence[OperationStep]]) -> "CatalogSnapshot":
        frozen = {fold(name): tuple(steps) for name, steps in operations.items() if steps}
        return cls(recipes=tuple(recipes), operations=MappingProxyType(frozen))


def resolve_operations(
    recipes: Sequence[RecipeApiModel],
    steps_by_recipe: Mapping[int, Sequence[RecipeStepApiModel]],
    robot_tasks: Sequence[RobotStepApiModel],
    matcher: IngredientMatcher,
) -> Dict[str, List[OperationStep]]:
    """Join recipes, steps and actuator tasks into ingredient -> ordered steps."""
    tasks_by_step: Dict[int, List[RobotStepApiModel]] = defaultdict(list)
    for task in robot_tasks:
        tasks_by_step[task.step_id].append(task)
    for tasks in tasks_by_step.values():
        tasks.sort(key=lambda t: t.task_order)

    # Keyed by folded name; the first spelling seen is kept for display.
    operations: Dict[str, List[OperationStep]] = {}
    display: Dict[str, str] = {}

    for recipe in recipes:
        ingredients = recipe.ingredient_list()
        steps = sorted(steps_by_recipe.get(recipe.recipe_id, ()), key=lambda s: s.step_number)
        for step in steps:
            matched = matcher.match(step.step_description, ingredients)
            if matched is None:
                continue
            if matched.rule == RULE_DEFAULT:
                LOGGER.debug(
                    "Step %s of recipe %s matched no ingredient, defaulting to '%s'",
                    step.step_id, recipe.recipe_id, matched.ingredient,
                )
            key = fold(matched.ingredient)
            display.setdefault(key, matched.ingredient)
            bucket = operations.setdefault(key, [])
            for task in tasks_by_step.get(step.step_id, ()):
                bucket.append(
                    OperationStep(
                        description=task.task_description,
                        estimated_time_s=task.estimated_seconds(),
                        repeat_count=task.repeat_count,
                    )
                )

    return {display[key]: steps for key, steps in operations.items() if steps}


class RecipeCatalog:
    """Owns recipe and ingredient-operation data for the engine."""

    def __init__(
        self,
        backend: Backend,
        settings: ApiSettings,
        matcher: Optional[IngredientMatcher] = None,
        shutdown: Optional[asyncio.Event] = None,
        sleep: Optional[Callable[[float], Awaitable[bool]]] = None,
    ) -> None:
        self.backend = backend
        self.settings = settings
        self.matcher = matcher or KeywordIngredientMatcher()
        self.shutdown = shutdown
        self._sleep = sleep or (lambda seconds: pause(seconds, self.shutdown))
        self._snapshot = CatalogSnapshot()
        self._operational = False
        self._load_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Accessors

    @property
    def is_operational(self) -> bool:
        return self._operational

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot

    def get_recipes(self) -> Tuple[Recipe, ...]:
        return self._snapshot.recipes

    def get_recipe(self, recipe_id: int) -> Optional[Recipe]:
        for recipe in self._snapshot.recipes:
            if recipe.recipe_id == recipe_id:
                return recipe
        return None

    def get_operations_for(self, ingredient: str) -> Optional[Tuple[OperationStep, ...]]:
        """Ordered steps for ``ingredient`` (case-insensitive), or None if unknown."""
        if not isinstance(ingredient, str):
            return None
        return self._snapshot.operations.get(fold(ingredient))

    # ------------------------------------------------------------------ #
    # Loading

    def replace(self, recipes: Iterable[Recipe], operations: Mapping[str, Sequence[OperationStep]]) -> None:
        snapshot = CatalogSnapshot.build(recipes, operations)
        self._snapshot = snapshot
        self._operational = bool(snapshot.recipes)
        LOGGER.info(
            "Recipe data set: %d recipes, %d ingredient operations",
            len(snapshot.recipes), len(snapshot.operations),
        )

    async def load_catalog(self) -> CatalogSnapshot:
        """Load once; later calls return the current snapshot."""
        async with self._load_lock:
            if self._operational:
                return self._snapshot
            return await self._load_with_retries()

    async def refresh(self) -> CatalogSnapshot:
        async with self._load_lock:
            return await self._load_with_retries()

    async def _load_with_retries(self) -> CatalogSnapshot:
        max_retries = self.settings.max_retries
        delay_s = self.settings.initial_retry_delay_ms / 1000.0
        for attempt in range(1, max_retries + 1):
            if self.shutdown is not None and self.shutdown.is_set():
                break
            try:
                recipes, operations = await self._fetch_once()
                self.replace(recipes, operations)
                return self._snapshot
            except TransientBackendError as exc:
                LOGGER.warning("Catalog load attempt %d/%d failed: %s", attempt, max_retries, exc)

            if await self._sleep(delay_s):
                LOGGER.info("Shutdown requested during catalog load; giving up")
                break
            delay_s *= 2

        if not self._snapshot.recipes:
            self._operational = False
        raise CatalogUnavailable(f"Failed to load recipe data after {max_retries} attempts")

    async def _fetch_once(self) -> Tuple[List[Recipe], Dict[str, List[OperationStep]]]:
        api_recipes = [r for r in await self.backend.fetch_all_recipes() if r.is_active]
        if not api_recipes:
            raise TransientBackendError("No active recipes found")
        LOGGER.info("Found %d active recipes", len(api_recipes))

        robot_tasks = await self.backend.fetch_all_robot_step_tasks()
        LOGGER.info("Fetched %d robot step tasks", len(robot_tasks))

        steps_by_recipe: Dict[int, List[RecipeStepApiModel]] = {}
        for api_recipe in api_recipes:
            steps = await self.backend.fetch_recipe_steps(api_recipe.recipe_id)
            if steps:
                steps_by_recipe[api_recipe.recipe_id] = list(steps)
                LOGGER.info("Fetched %d steps for recipe %s", len(steps), api_recipe.recipe_name)

        recipes = [
            Recipe(recipe_id=r.recipe_id, name=r.recipe_name, ingredients=r.ingredient_list())
            for r in api_recipes
        ]
        operations = resolve_operations(api_recipes, steps_by_recipe, robot_tasks, self.matcher)
        return recipes, operations
