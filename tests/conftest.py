"""Pytest configuration and shared fixtures."""

import pytest


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Keep developer environment variables from leaking into Settings."""
    for name in (
        "STORE_BACKEND",
        "FIREBASE_URL",
        "FIREBASE_AUTH_TOKEN",
        "FACEBOOK_GRAPH_URL",
        "PUSH_GATEWAY_URL",
        "PUSH_GATEWAY_API_KEY",
        "SECRET_KEY",
        "IS_PRODUCTION",
        "LOGFIRE_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
