# backend/relay.py

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol

from .model import ProgressEvent, TaskResult
from .modelscope_client import MalformedResponseError, PollError, SubmitError

logger = logging.getLogger(__name__)

MSG_SUBMITTING = "Submitting generation task..."
MSG_SUBMITTED = "Task submitted, generating..."
MSG_GENERATING = "Generating... ({n})"
MSG_COMPLETE = "Generation complete!"
MSG_FAILED = "Generation failed: {reason}"
MSG_UNKNOWN_REASON = "unknown reason"
MSG_TIMEOUT = "Generation timed out, please retry"
MSG_SUBMIT_ERROR = "API request failed: {status} {body}"
MSG_POLL_ERROR = "Polling failed: {status}"
MSG_BAD_RESPONSE = "Unexpected response from image service: {detail}"
MSG_SERVER_ERROR = "Server error: {detail}"


class TaskClient(Protocol):
    async def submit_task(self, prompt: str) -> str: ...

    async def fetch_task(self, task_id: str) -> TaskResult: ...


DisconnectCheck = Callable[[], Awaitable[bool]]


async def run_generation(
    prompt: str,
    client: TaskClient,
    *,
    poll_interval: float = 3.0,
    max_polls: int = 40,
    is_disconnected: Optional[DisconnectCheck] = None,
) -> AsyncIterator[ProgressEvent]:
    """
    Drive one remote generation task and yield its progress events.

    The last event yielded is always `complete` or `error`, unless the caller
    disconnected, in which case polling stops and nothing more is yielded.
    """
    try:
        async for event in _drive(prompt, client, poll_interval, max_polls, is_disconnected):
            yield event
    except SubmitError as e:
        yield ProgressEvent.error(MSG_SUBMIT_ERROR.format(status=e.status_code, body=e.body))
    except PollError as e:
        yield ProgressEvent.error(MSG_POLL_ERROR.format(status=e.status_code))
    except MalformedResponseError as e:
        logger.warning("Malformed ModelScope response: %s", e)
        yield ProgressEvent.error(MSG_BAD_RESPONSE.format(detail=e))
    except Exception as e:
        logger.exception("Generation failed unexpectedly")
        yield ProgressEvent.error(MSG_SERVER_ERROR.format(detail=e))


async def _drive(
    prompt: str,
    client: TaskClient,
    poll_interval: float,
    max_polls: int,
    is_disconnected: Optional[DisconnectCheck],
) -> AsyncIterator[ProgressEvent]:
    yield ProgressEvent.status(MSG_SUBMITTING)

    task_id = await client.submit_task(prompt.strip())
    yield ProgressEvent.status(MSG_SUBMITTED)

    for i in range(max_polls):
        # Wait before polling so the first poll never races the submit
        await asyncio.sleep(poll_interval)

        if is_disconnected is not None and await is_disconnected():
            logger.info("Client disconnected, stop polling task %s after %d polls", task_id, i)
            return

        result = await client.fetch_task(task_id)

        if result.succeeded:
            if not result.image_url:
                raise MalformedResponseError(f"task {task_id} succeeded without an output image URL")
            logger.info("Task %s completed: %s", task_id, result.image_url)
            yield ProgressEvent.complete(MSG_COMPLETE, result.image_url)
            return

        if result.failed:
            reason = result.error_message or MSG_UNKNOWN_REASON
            logger.info("Task %s failed: %s", task_id, reason)
            yield ProgressEvent.error(MSG_FAILED.format(reason=reason))
            return

        yield ProgressEvent.status(MSG_GENERATING.format(n=i + 1))

    logger.info("Task %s still pending after %d polls, giving up", task_id, max_polls)
    yield ProgressEvent.error(MSG_TIMEOUT)
