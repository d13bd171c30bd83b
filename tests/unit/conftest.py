"""Pytest configuration and fixtures for unit tests."""

import pytest

from housemate.core.config import Settings
from housemate.core.memory_store import MemoryStore
from housemate.domain.user import UserCreate
from housemate.services import Services, build_services
from tests.unit.mocks import FakeTokenVerifier, RecordingPushSender


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: in-memory store and a fixed session secret."""
    return Settings(
        store_backend="memory",
        secret_key="test-secret-key",
        firebase_url="https://housemate-test.firebaseio.com",
        facebook_graph_url="https://graph.test",
        push_gateway_url="https://push.test",
        logfire_token=None,
    )


@pytest.fixture
def store() -> MemoryStore:
    """Provides a fresh MemoryStore for each test."""
    return MemoryStore()


@pytest.fixture
def token_verifier() -> FakeTokenVerifier:
    return FakeTokenVerifier({"u1": "token-u1", "u2": "token-u2", "u3": "token-u3"})


@pytest.fixture
def push_sender() -> RecordingPushSender:
    return RecordingPushSender()


@pytest.fixture
def services(store, settings, token_verifier, push_sender) -> Services:
    """All repositories wired over the test store."""
    return build_services(store, settings, token_verifier=token_verifier, push_sender=push_sender)


def make_user_fields(user_id: str, *, first_name: str = "Test", device_id: str | None = None) -> UserCreate:
    return UserCreate(
        user_id=user_id,
        access_token=f"token-{user_id}",
        device_id=device_id,
        first_name=first_name,
        last_name="User",
        photo=f"https://photos.test/{user_id}.jpg",
    )


@pytest.fixture
def create_user(services):
    """Factory fixture that registers a user record directly through the repository."""

    async def _create(user_id: str, **kwargs):
        return await services.users.create(make_user_fields(user_id, **kwargs))

    return _create
