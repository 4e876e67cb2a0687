"""Shared fixtures for kestrel_swarm tests."""

import pytest

from kestrel_swarm.core.settings import Settings
from fakes import ScriptedTransport


@pytest.fixture
def settings() -> Settings:
    """Settings with fast retries and no timeouts."""
    return Settings(
        retry_max_attempts=3,
        retry_base_delay_ms=1,
        retry_max_delay_ms=5,
        retry_jitter=False,
        run_timeout_seconds=None,
        turn_timeout_seconds=None,
    )


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()
