import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from .model import RelayConfig, SubmitResult, TaskResult

logger = logging.getLogger(__name__)

TASK_TYPE = "image_generation"


class ModelScopeError(RuntimeError):
    """Base class for failures talking to the ModelScope inference API."""


class SubmitError(ModelScopeError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"submit failed with status {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class PollError(ModelScopeError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"poll failed with status {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class MalformedResponseError(ModelScopeError):
    pass


class ModelScopeClient:
    """
    Async client for the two ModelScope calls the relay needs:
    submitting an image generation task and fetching its status.

    Use as an async context manager so the underlying httpx client is closed.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.model = model
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_config(cls, config: RelayConfig) -> "ModelScopeClient":
        return cls(
            api_key=config.api_key or "",
            base_url=config.base_url,
            model=config.model,
            timeout=config.request_timeout,
        )

    async def __aenter__(self) -> "ModelScopeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def submit_task(self, prompt: str) -> str:
        """
        POST v1/images/generations in async mode.
        Returns the task_id used to query v1/tasks/{task_id}.
        """
        payload = {"model": self.model, "prompt": prompt}
        r = await self._client.post(
            "v1/images/generations",
            json=payload,
            headers={"X-ModelScope-Async-Mode": "true"},
        )

        if not r.is_success:
            logger.warning("ModelScope submit returned %s: %s", r.status_code, r.text[:500])
            raise SubmitError(r.status_code, r.text)

        data = _json_body(r, "submit")
        try:
            task_id = SubmitResult.model_validate(data).task_id
        except ValidationError as e:
            raise MalformedResponseError(f"submit response carried no task_id: {data!r}") from e

        logger.info("ModelScope accepted task %s", task_id)
        return task_id

    async def fetch_task(self, task_id: str) -> TaskResult:
        """
        GET v1/tasks/{task_id} and validate the body into a TaskResult.
        """
        r = await self._client.get(
            f"v1/tasks/{task_id}",
            headers={"X-ModelScope-Task-Type": TASK_TYPE},
        )

        if not r.is_success:
            logger.warning("ModelScope poll for %s returned %s: %s", task_id, r.status_code, r.text[:500])
            raise PollError(r.status_code, r.text)

        data = _json_body(r, "poll")
        try:
            result = TaskResult.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(f"unexpected task status response: {e}") from e

        logger.debug("Task %s status=%s", task_id, result.task_status)
        return result


def _json_body(r: httpx.Response, call: str) -> Dict[str, Any]:
    try:
        data = r.json()
    except ValueError as e:
        raise MalformedResponseError(f"{call} response is not JSON: {r.text[:200]}") from e
    if not isinstance(data, dict):
        raise MalformedResponseError(f"{call} response is not a JSON object: {data!r}")
    return data
