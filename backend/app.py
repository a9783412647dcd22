# backend/app.py

import logging
from typing import Callable

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from config.settings import settings, setup_logging
from .model import GenerateRequest, RelayConfig
from .modelscope_client import ModelScopeClient
from .relay import run_generation
from .utils import format_sse, gen_request_id

setup_logging()
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

ClientFactory = Callable[[RelayConfig], ModelScopeClient]

app = FastAPI(title="ModelScope Image Relay")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["content-type"],
)


def get_relay_config() -> RelayConfig:
    """
    Snapshot of everything one generation request needs.
    The API key is read from the environment on every call.
    """
    return RelayConfig(
        api_key=settings.MODELSCOPE_API_KEY,
        base_url=settings.MODELSCOPE_BASE_URL,
        model=settings.MODELSCOPE_MODEL,
        poll_interval=settings.POLL_INTERVAL,
        max_polls=settings.MAX_POLLS,
        request_timeout=settings.REQUEST_TIMEOUT,
    )


def get_client_factory() -> ClientFactory:
    return ModelScopeClient.from_config


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/generate")
async def generate(
    request: Request,
    config: RelayConfig = Depends(get_relay_config),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """
    Validate the prompt, then stream the generation progress as SSE.
    Validation failures are answered with a plain JSON 400, no stream.
    """
    try:
        body = await request.json()
    except ValueError:
        return _bad_request("Request body must be JSON")
    if not isinstance(body, dict):
        return _bad_request("Request body must be a JSON object")

    try:
        req = GenerateRequest.model_validate(body)
    except ValidationError:
        return _bad_request("prompt must be a string")

    if not req.prompt or not req.prompt.strip():
        return _bad_request("Please enter a prompt")

    if not config.api_key:
        logger.error("MODELSCOPE_API_KEY is not set, refusing generation request")
        return JSONResponse(status_code=500, content={"error": "MODELSCOPE_API_KEY is not configured"})

    request_id = gen_request_id()
    prompt = req.prompt.strip()
    logger.info("[%s] Generation requested, prompt=%s", request_id, prompt[:50])

    # Build the client before the 200 goes out so a failure here is still a JSON error
    try:
        client = client_factory(config)
    except Exception as e:
        logger.exception("[%s] Could not create ModelScope client", request_id)
        return JSONResponse(status_code=500, content={"error": f"Could not create image service client: {e}"})

    async def event_stream():
        try:
            async for event in run_generation(
                prompt,
                client,
                poll_interval=config.poll_interval,
                max_polls=config.max_polls,
                is_disconnected=request.is_disconnected,
            ):
                logger.debug("[%s] %s: %s", request_id, event.type, event.message)
                yield format_sse(event)
        finally:
            await _close_client(client, request_id)
        logger.info("[%s] Stream closed", request_id)

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


async def _close_client(client: ModelScopeClient, request_id: str) -> None:
    # The terminal event has already been sent, so a close failure is only logged
    try:
        await client.aclose()
    except Exception:
        logger.exception("[%s] Failed to close ModelScope client", request_id)
