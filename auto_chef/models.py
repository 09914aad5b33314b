"""Wire models for the AutoChef backend API."""

import re
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# .NET TimeSpan text form: [d.]hh:mm[:ss[.fffffff]]
_TIMESPAN_RE = re.compile(r"^\s*(?:(\d+)\.)?(\d{1,2}):(\d{1,2})(?::(\d{1,2})(?:\.(\d{1,7}))?)?\s*$")

DEFAULT_ESTIMATED_SECONDS = 1.0


def parse_timespan(text: Optional[str]) -> Optional[float]:
    if not text:
        return None
    match = _TIMESPAN_RE.match(text)
    if match is None:
        return None
    days, hours, minutes, seconds, fraction = match.groups()
    if int(minutes) > 59 or (seconds is not None and int(seconds) > 59) or int(hours) > 23:
        return None
    total = int(days or 0) * 86400 + int(hours) * 3600 + int(minutes) * 60 + int(seconds or 0)
    if fraction:
        total += float(f"0.{fraction}")
    return float(total)


def split_ingredients(raw: Optional[str]) -> Tuple[str, ...]:
    """Split a ``,``/``;`` separated ingredient list, keeping first occurrences."""
    if not raw:
        return ()
    seen = set()
    ingredients = []
    for part in re.split(r"[,;]", raw):
        name = part.strip()
        if not name or name.casefold() in seen:
            continue
        seen.add(name.casefold())
        ingredients.append(name)
    return tuple(ingredients)


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# --- Catalog collections ---

class RecipeApiModel(ApiModel):
    recipe_id: int = Field(alias="recipeId")
    recipe_name: str = Field(default="", alias="recipeName")
    ingredients: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    description: Optional[str] = None
    is_active: bool = Field(default=False, alias="isActive")

    def ingredient_list(self) -> Tuple[str, ...]:
        return split_ingredients(self.ingredients)


class RecipeListResponse(ApiModel):
    recipes: List[RecipeApiModel] = Field(default_factory=list)
    total_count: int = Field(default=0, alias="totalCount")
    page: int = 1
    page_size: int = Field(default=0, alias="pageSize")


class RecipeStepApiModel(ApiModel):
    step_id: int = Field(alias="stepId")
    recipe_id: int = Field(default=0, alias="recipeId")
    step_description: str = Field(default="", alias="stepDescription")
    step_number: int = Field(default=0, alias="stepNumber")


class RobotStepApiModel(ApiModel):
    step_task_id: int = Field(alias="stepTaskId")
    step_id: int = Field(alias="stepId")
    task_description: str = Field(default="", alias="taskDescription")
    task_order: int = Field(default=0, alias="taskOrder")
    estimated_time: Optional[str] = Field(default=None, alias="estimatedTime")
    repeat_count: int = Field(default=1, alias="repeatCount")

    @field_validator("repeat_count", mode="before")
    @classmethod
    def _at_least_once(cls, value):
        if value is None:
            return 1
        return max(1, int(value))

    def estimated_seconds(self) -> float:
        seconds = parse_timespan(self.estimated_time)
        return DEFAULT_ESTIMATED_SECONDS if seconds is None else seconds


class RobotStepTaskData(ApiModel):
    tasks: List[RobotStepApiModel] = Field(default_factory=list)
    page: int = 1
    page_size: int = Field(default=0, alias="pageSize")


class RobotStepTaskListResponse(ApiModel):
    message: Optional[str] = None
    data: Optional[RobotStepTaskData] = None


# --- Orders ---

class OrderApiModel(ApiModel):
    order_id: int = Field(alias="orderId")
    recipe_id: int = Field(default=0, alias="recipeId")
    robot_id: int = Field(default=0, alias="robotId")
    location_id: int = Field(default=0, alias="locationId")
    status: Optional[str] = None
    ordered_time: Optional[datetime] = Field(default=None, alias="orderedTime")


class GenericApiResponse(ApiModel):
    message: Optional[str] = None


class OrderCancellationResponse(ApiModel):
    is_cancelled: bool = Field(default=False, alias="isCancelled")


class OrderStatusUpdate(ApiModel):
    order_id: int = Field(alias="orderId")
    status: str


class OperationLogRequest(ApiModel):
    order_id: int = Field(alias="orderId")
    robot_id: int = Field(alias="robotId")
    start_time: datetime = Field(alias="startTime")
    end_time: datetime = Field(alias="endTime")
    completion_status: str = Field(alias="completionStatus")
    operation_log: str = Field(alias="operationLog")
