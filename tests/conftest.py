"""Shared fixtures: in-memory store, fake notifier, API client."""

import os
from datetime import datetime, timezone

import pytest

# Keep tests off the on-disk database and away from the real scheduler.
os.environ["STORAGE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
for name in ("PASS", "TG_TOKEN", "TG_ID"):
    os.environ.pop(name, None)

from expiry_panel.dependencies import get_notifier, get_resolver, get_store  # noqa: E402
from expiry_panel.exceptions import NotificationError  # noqa: E402
from expiry_panel.services.config_resolver import ConfigResolver  # noqa: E402
from expiry_panel.services.store import MemoryKVStore  # noqa: E402
from expiry_panel.utils.security import reset_rate_limit  # noqa: E402


class FakeNotifier:
    """Records sent messages; optionally fails for chosen calls."""

    def __init__(self, fail_on=None, description="Bad Request: chat not found"):
        self.sent = []
        self.fail_on = set(fail_on or [])
        self.description = description
        self.calls = 0

    async def send_message(self, bot_token, chat_id, text):  # noqa: ANN001
        self.calls += 1
        if self.calls in self.fail_on:
            raise NotificationError(self.description)
        self.sent.append({"bot_token": bot_token, "chat_id": chat_id, "text": text})


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def memory_store() -> MemoryKVStore:
    return MemoryKVStore()


@pytest.fixture
def fake_notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def make_notifier():
    return FakeNotifier


@pytest.fixture
def resolver() -> ConfigResolver:
    return ConfigResolver(env={}, code_constants={})


@pytest.fixture
def app_client(memory_store, fake_notifier, resolver):
    from fastapi.testclient import TestClient

    from expiry_panel.main import app

    reset_rate_limit()
    app.dependency_overrides[get_store] = lambda: memory_store
    app.dependency_overrides[get_notifier] = lambda: fake_notifier
    app.dependency_overrides[get_resolver] = lambda: resolver

    client = TestClient(app)
    client.store = memory_store
    client.notifier = fake_notifier
    yield client

    app.dependency_overrides.clear()
