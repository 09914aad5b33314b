"""HTTP client for the AutoChef backend.

All public methods are coroutines. The blocking ``requests`` call runs in a
worker thread (``asyncio.to_thread``) so the poller never stalls the loop.

Error handling:
- Transport errors, non-2xx responses, undecodable JSON and payloads that fail
  validation surface as :class:`TransientBackendError`.
- Two calls are deliberately lenient: an empty dequeue is ``None``, and a
  cancellation check that cannot be interpreted is "not cancelled".
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List, Optional, Protocol

import requests
from pydantic import ValidationError

from .config import ApiConfig
from .errors import TransientBackendError
from .models import (
    GenericApiResponse,
    OperationLogRequest,
    OrderApiModel,
    OrderCancellationResponse,
    OrderStatusUpdate,
    RecipeApiModel,
    RecipeListResponse,
    RecipeStepApiModel,
    RobotStepApiModel,
    RobotStepTaskListResponse,
)

LOGGER = logging.getLogger(__name__)


class Backend(Protocol):
    async def fetch_all_recipes(self) -> List[RecipeApiModel]: ...

    async def fetch_recipe_steps(self, recipe_id: int) -> List[RecipeStepApiModel]: ...

    async def fetch_all_robot_step_tasks(self) -> List[RobotStepApiModel]: ...

    async def fetch_next_order(self) -> Optional[OrderApiModel]: ...

    async def is_order_cancelled(self, order_id: int) -> bool: ...

    async def push_order_status(self, order_id: int, status: str) -> None: ...

    async def submit_operation_log(self, request: OperationLogRequest) -> None: ...


def _sanitized_error(err: requests.exceptions.RequestException) -> str:
    response = getattr(err, "response", None)
    if response is not None:
        return f"HTTP {response.status_code} from {response.url}"
    return f"{type(err).__name__}: {err}"


class BackendClient:

    def __init__(self, cfg: ApiConfig, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.session = session if session is not None else requests.Session()
        self.timeout = cfg.settings.request_timeout_s

    def close(self) -> None:
        self.session.close()

    # ------------------------------------------------------------------ #
    # Transport

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        LOGGER.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as err:
            raise TransientBackendError(_sanitized_error(err)) from err
        return response

    def _checked(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        response = self._request(method, url, **kwargs)
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as err:
            raise TransientBackendError(_sanitized_error(err), status_code=response.status_code) from err
        return response

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as err:
            raise TransientBackendError(f"Invalid JSON from {response.url}") from err

    async def _call(self, fn, *args: Any, **kwargs: Any):
        return await asyncio.to_thread(fn, *args, **kwargs)

    # ------------------------------------------------------------------ #
    # Catalog

    def _get_recipes(self, page: int, page_size: int) -> RecipeListResponse:
        url = self.cfg.url(self.cfg.endpoints.recipes)
        response = self._checked("GET", url, params={"page": page, "pageSize": page_size})
        try:
            return RecipeListResponse.model_validate(self._json(response) or {})
        except ValidationError as err:
            raise TransientBackendError(f"Malformed recipe list: {err}") from err

    async def fetch_recipes(self, page: int = 1, page_size: Optional[int] = None) -> RecipeListResponse:
        return await self._call(self._get_recipes, page, page_size or self.cfg.settings.recipe_page_size)

    async def fetch_all_recipes(self) -> List[RecipeApiModel]:
        page_size = self.cfg.settings.recipe_page_size
        recipes: List[RecipeApiModel] = []
        for page in range(1, self.cfg.settings.max_pages + 1):
            batch = await self.fetch_recipes(page, page_size)
            recipes.extend(batch.recipes)
            if len(batch.recipes) < page_size:
                break
            if batch.total_count and len(recipes) >= batch.total_count:
                break
        return recipes

    def _get_recipe_steps(self, recipe_id: int) -> List[RecipeStepApiModel]:
        url = self.cfg.url(self.cfg.endpoints.recipe_steps, recipe_id=recipe_id)
        payload = self._json(self._checked("GET", url)) or []
        try:
            return [RecipeStepApiModel.model_validate(item) for item in payload]
        except (ValidationError, TypeError) as err:
            raise TransientBackendError(f"Malformed steps for recipe {recipe_id}: {err}") from err

    async def fetch_recipe_steps(self, recipe_id: int) -> List[RecipeStepApiModel]:
        return await self._call(self._get_recipe_steps, recipe_id)

    def _get_robot_step_tasks(self, page: int, page_size: int) -> List[RobotStepApiModel]:
        url = self.cfg.url(self.cfg.endpoints.robot_step_tasks)
        response = self._checked("GET", url, params={"pageNumber": page, "pageSize": page_size})
        try:
            parsed = RobotStepTaskListResponse.model_validate(self._json(response) or {})
        except ValidationError as err:
            raise TransientBackendError(f"Malformed robot step tasks: {err}") from err
        return list(parsed.data.tasks) if parsed.data is not None else []

    async def fetch_robot_step_tasks(self, page: int = 1, page_size: Optional[int] = None) -> List[RobotStepApiModel]:
        return await self._call(
            self._get_robot_step_tasks, page, page_size or self.cfg.settings.robot_step_tasks_page_size
        )

    async def fetch_all_robot_step_tasks(self) -> List[RobotStepApiModel]:
        page_size = self.cfg.settings.robot_step_tasks_page_size
        tasks: List[RobotStepApiModel] = []
        for page in range(1, self.cfg.settings.max_pages + 1):
            batch = await self.fetch_robot_step_tasks(page, page_size)
            tasks.extend(batch)
            if len(batch) < page_size:
                break
        return tasks

    # ------------------------------------------------------------------ #
    # Orders

    def _get_next_order(self) -> Optional[OrderApiModel]:
        url = self.cfg.url(self.cfg.endpoints.order_queue)
        response = self._request("GET", url)
        if response.status_code == 204:
            return None
        if not response.ok:
            raise TransientBackendError(f"Failed to fetch orders: HTTP {response.status_code}", response.status_code)

        body = (response.text or "").strip()
        if not body or body == "null":
            return None
        try:
            envelope = GenericApiResponse.model_validate_json(body)
        except ValidationError as err:
            raise TransientBackendError(f"Malformed order envelope: {err}") from err
        if not envelope.message:
            return None
        try:
            return OrderApiModel.model_validate_json(envelope.message)
        except ValidationError as err:
            raise TransientBackendError(f"Malformed order payload: {err}") from err

    async def fetch_next_order(self) -> Optional[OrderApiModel]:
        return await self._call(self._get_next_order)

    def _get_cancelled(self, order_id: int) -> bool:
        url = self.cfg.url(self.cfg.endpoints.order_cancellation_check, order_id=order_id)
        try:
            response = self._request("GET", url)
        except TransientBackendError as err:
            LOGGER.error("Error checking cancellation for order %s: %s", order_id, err)
            return False
        if not response.ok:
            LOGGER.warning("Failed to check cancellation for order %s: HTTP %s", order_id, response.status_code)
            return False

        body = (response.text or "").strip()
        if body.lower() in ("true", "false"):
            return body.lower() == "true"
        try:
            payload = json.loads(body)
            if isinstance(payload, bool):
                return payload
            return OrderCancellationResponse.model_validate(payload).is_cancelled
        except (ValueError, ValidationError):
            LOGGER.warning("Could not parse cancellation response for order %s. Assuming not cancelled.", order_id)
            return False

    async def is_order_cancelled(self, order_id: int) -> bool:
        return await self._call(self._get_cancelled, order_id)

    def _put_status(self, order_id: int, status: str) -> None:
        url = self.cfg.url(self.cfg.endpoints.order_status_update)
        body = OrderStatusUpdate(order_id=order_id, status=status).model_dump(by_alias=True)
        self._checked("PUT", url, json=body)

    async def push_order_status(self, order_id: int, status: str) -> None:
        await self._call(self._put_status, order_id, status)

    def _post_log(self, request: OperationLogRequest) -> None:
        url = self.cfg.url(self.cfg.endpoints.robot_operation_logs)
        self._checked("POST", url, json=request.model_dump(by_alias=True, mode="json"))

    async def submit_operation_log(self, request: OperationLogRequest) -> None:
        await self._call(self._post_log, request)
