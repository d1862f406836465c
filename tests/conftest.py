"""Pytest configuration and shared fixtures."""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("STORAGE_BACKEND", "memory")

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from app.domain.game_night import GameNight, Player
from app.infrastructure.storage import InMemoryStorageGateway, InMemoryStore


@pytest.fixture
def store():
    """Fresh in-memory record store."""
    return InMemoryStore()


@pytest.fixture
def gateway(store):
    """In-memory storage gateway over the per-test store."""
    return InMemoryStorageGateway(store)


@pytest.fixture
def game_night_payload():
    """Valid game night payload as a client would send it."""
    return GameNight(minimum_number_of_players=4)


@pytest.fixture
def player_payload():
    """Player payload carrying a bogus parent id that must be overridden."""
    return Player(name="Ann", game_night_id=999)


@pytest.fixture
def test_client(store):
    """FastAPI test client wired to the per-test in-memory store."""
    from main import app
    from app.api.routes import get_gateway

    app.dependency_overrides[get_gateway] = lambda: InMemoryStorageGateway(store)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def mock_redis():
    """Mock Redis client whose pipeline() works as a context manager."""
    client = MagicMock()
    pipe = MagicMock()
    client.pipeline.return_value = pipe
    pipe.__enter__.return_value = pipe
    pipe.__exit__.return_value = False
    return client
