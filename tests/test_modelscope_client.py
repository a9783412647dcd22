from __future__ import annotations

import json

import httpx
import pytest

from backend.modelscope_client import MalformedResponseError, ModelScopeClient, PollError, SubmitError


def make_client(handler) -> ModelScopeClient:
    return ModelScopeClient(
        api_key="secret-token",
        base_url="https://modelscope.test",
        model="Tongyi-MAI/Z-Image-Turbo",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.anyio
async def test_submit_sends_async_request_with_bearer_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"task_id": "abc-1", "request_id": "r-1"})

    async with make_client(handler) as client:
        task_id = await client.submit_task("a lighthouse")

    assert task_id == "abc-1"
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://modelscope.test/v1/images/generations"
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert request.headers["X-ModelScope-Async-Mode"] == "true"
    assert json.loads(request.content) == {"model": "Tongyi-MAI/Z-Image-Turbo", "prompt": "a lighthouse"}


@pytest.mark.anyio
async def test_submit_non_success_raises_with_raw_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="rate limited")

    async with make_client(handler) as client:
        with pytest.raises(SubmitError) as exc_info:
            await client.submit_task("a lighthouse")

    assert exc_info.value.status_code == 429
    assert exc_info.value.body == "rate limited"


@pytest.mark.anyio
async def test_submit_without_task_id_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"request_id": "r-1"})

    async with make_client(handler) as client:
        with pytest.raises(MalformedResponseError):
            await client.submit_task("a lighthouse")


@pytest.mark.anyio
async def test_fetch_task_sends_task_type_header_and_parses_result() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"task_id": "abc-1", "task_status": "SUCCEED", "output_images": ["https://img.example/1.png"]})

    async with make_client(handler) as client:
        result = await client.fetch_task("abc-1")

    assert result.succeeded
    assert result.image_url == "https://img.example/1.png"
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/v1/tasks/abc-1"
    assert request.headers["X-ModelScope-Task-Type"] == "image_generation"
    assert request.headers["Authorization"] == "Bearer secret-token"


@pytest.mark.anyio
async def test_fetch_task_http_error_raises_poll_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="internal")

    async with make_client(handler) as client:
        with pytest.raises(PollError) as exc_info:
            await client.fetch_task("abc-1")

    assert exc_info.value.status_code == 500


@pytest.mark.anyio
async def test_fetch_task_non_json_body_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    async with make_client(handler) as client:
        with pytest.raises(MalformedResponseError):
            await client.fetch_task("abc-1")


@pytest.mark.anyio
async def test_fetch_task_missing_status_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"task_id": "abc-1"})

    async with make_client(handler) as client:
        with pytest.raises(MalformedResponseError):
            await client.fetch_task("abc-1")
