"""Shared fixtures for the content service tests."""

import pytest
from fastapi.testclient import TestClient

from marlowequill.app.core.config import Settings
from marlowequill.app.main import create_app
from marlowequill.app.providers.mock import MockProvider
from marlowequill.app.services.content_store import ContentStore


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app_settings(tmp_path, monkeypatch):
    """Settings isolated from the repo config file and the process env."""
    monkeypatch.setenv("MARLOWEQUILL_CONFIG_FILE", str(tmp_path / "absent.yaml"))
    for name in ("GEMINI_API_KEY", "PORT", "MARLOWEQUILL_MOCK_PROVIDER"):
        monkeypatch.delenv(name, raising=False)
    return Settings(_env_file=None, output_dir=str(tmp_path / "generated_content"))


@pytest.fixture
def provider():
    return MockProvider(response="Bees are remarkable pollinators.")


@pytest.fixture
def store(app_settings):
    return ContentStore(output_dir=app_settings.output_dir)


@pytest.fixture
def client(app_settings, provider, store):
    app = create_app(app_settings, provider=provider, store=store)
    with TestClient(app) as test_client:
        yield test_client
