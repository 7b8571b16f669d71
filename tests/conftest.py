"""Shared pytest fixtures for dialtune tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path

import pytest
import pytest_asyncio

from dialtune.config import Settings
from tests.fakes import ALLOWED_CALLER, FlowKit, build_kit


def build_settings(**overrides) -> Settings:
    """Create a Settings object with safe test defaults."""
    base = {
        "public_base_url": "https://ivr.example.test",
        "allowed_callers": f"+{ALLOWED_CALLER}, 1 (555) 000-2222",
        "groq_api_keys": "test-key-one,test-key-two",
        "media_dir": "/tmp/dialtune-test",
        "wait_budget_seconds": 60.0,
        "poll_interval_seconds": 3,
        "media_retention_seconds": 600.0,
        "verify_plivo_signature": False,
        "diagnostics_password_hash": "",
    }
    base.update(overrides)
    return Settings(**base)


@pytest.fixture
def settings_factory(tmp_path: Path) -> Callable[..., Settings]:
    """Return a factory to build Settings with overrides.

    Media files go to a per-test directory.
    """

    def factory(**overrides) -> Settings:
        overrides.setdefault("media_dir", str(tmp_path / "media"))
        return build_settings(**overrides)

    return factory


@pytest.fixture
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    """Default Settings fixture."""
    return settings_factory()


# =============================================================================
# Call Flow Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def kit(settings: Settings) -> AsyncGenerator[FlowKit, None]:
    """Call flow with fake chat/fetcher/trimmer and a manual clock."""
    flow_kit = build_kit(settings)
    yield flow_kit
    await flow_kit.flow.close()


@pytest_asyncio.fixture
async def gated_kit(settings: Settings) -> AsyncGenerator[tuple[FlowKit, asyncio.Event], None]:
    """Like ``kit``, but media fetches block until the event is set."""
    gate = asyncio.Event()
    flow_kit = build_kit(settings, gate=gate)
    yield flow_kit, gate
    gate.set()
    await flow_kit.flow.close()


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest.fixture
def client_factory(settings_factory) -> Generator[Callable, None, None]:
    """Build TestClients around a call flow on fakes; closed at teardown."""
    from fastapi.testclient import TestClient

    from dialtune.main import create_app

    clients: list[TestClient] = []

    def factory(**overrides) -> TestClient:
        test_settings = settings_factory(**overrides)
        flow_kit = build_kit(test_settings)
        app = create_app(settings=test_settings, call_flow=flow_kit.flow)
        client = TestClient(app)
        client.__enter__()
        client.kit = flow_kit  # type: ignore[attr-defined]
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def test_client(client_factory) -> Generator:
    """FastAPI TestClient with test settings and a call flow on fakes."""
    yield client_factory()
