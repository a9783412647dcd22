"""Shared fixtures for relay and API tests."""

from __future__ import annotations

import pytest

from backend.model import RelayConfig
from backend.modelscope_client import SubmitError


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(
        api_key="test-token",
        base_url="https://modelscope.test/",
        model="Tongyi-MAI/Z-Image-Turbo",
        poll_interval=0,
        max_polls=5,
    )


@pytest.fixture
def submit_rejected() -> SubmitError:
    return SubmitError(401, '{"errors": {"message": "invalid token"}}')



@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
