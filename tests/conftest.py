"""
Pytest configuration and fixtures.
"""

import asyncio
import json
import os
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "testing"
os.environ["DEBUG"] = "true"
os.environ["REDIS_ENABLED"] = "false"
os.environ["WATCH_ENABLED"] = "false"


# ============ Settings ============


@pytest.fixture
def prompts_dir(tmp_path: Path) -> Path:
    """Empty directory for the catalog documents."""
    path = tmp_path / "prompts"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(prompts_dir: Path, tmp_path: Path):
    """Settings pointing every file at the temp directory."""
    from core.config import Settings, get_settings

    get_settings.cache_clear()

    yield Settings(
        environment="testing",
        debug=True,
        prompts_dir=str(prompts_dir),
        overrides_file=str(tmp_path / "overrides" / "builtin_overrides.json"),
        redis_enabled=False,
        watch_enabled=False,
    )

    get_settings.cache_clear()


# ============ Catalog Fixtures ============


SAMPLE_DEFAULT_CATALOG: dict[str, dict[str, Any]] = {
    "custom_prompt": {
        "en_name": "Custom Prompt",
        "zh_name": "自定义提示词",
        "en_prompt": "CUSTOM",
        "zh_prompt": "CUSTOM",
    },
    "watercolor": {
        "en_name": "Watercolor",
        "zh_name": "水彩画",
        "en_prompt": "Turn the image into a watercolor painting.",
        "zh_prompt": "将图片转换为水彩画。",
        "icon": "palette",
        "type": "style",
    },
    "golden_hour": {
        "en_name": "Golden Hour",
        "zh_name": "黄金时刻",
        "en_prompt": "Change the time of day to a golden hour sunset.",
        "zh_prompt": "将时间改为黄金时刻日落。",
        "icon": "wb_twilight",
        "type": "lighting",
    },
}


def _write_catalog(path: Path, data: Any) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


@pytest.fixture
def sample_default_catalog() -> dict[str, dict[str, Any]]:
    return json.loads(json.dumps(SAMPLE_DEFAULT_CATALOG))


@pytest.fixture
def write_catalog():
    """Write a JSON document to a catalog path."""
    return _write_catalog


@pytest.fixture
def default_catalog_path(test_settings) -> Path:
    """Default catalog seeded with SAMPLE_DEFAULT_CATALOG."""
    path = test_settings.default_catalog_path
    _write_catalog(path, SAMPLE_DEFAULT_CATALOG)
    return path


@pytest.fixture
def custom_catalog_path(test_settings) -> Path:
    return test_settings.custom_catalog_path


@pytest.fixture
def bus():
    from services.change_bus import ChangeBus

    return ChangeBus()


@pytest.fixture
def prompt_store(test_settings, bus):
    from services.prompt_store import PromptCatalogStore

    return PromptCatalogStore.from_settings(test_settings, bus=bus)


# ============ App Fixtures ============


@pytest.fixture
def app(test_settings, default_catalog_path):
    """Application wired to the temp prompt directory."""
    from api.main import create_app

    return create_app(test_settings)


@pytest.fixture
def client(app) -> TestClient:
    """Synchronous test client (runs the app lifespan)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Asynchronous test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def prompt_api(app):
    """PromptApiClient talking to the app in-process."""
    from services.prompt_client import PromptApiClient

    api = PromptApiClient(AsyncClient(transport=ASGITransport(app=app), base_url="http://test"))
    yield api
    await api.aclose()


@pytest.fixture
async def override_store(test_settings, bus):
    from services.override_store import OverrideStore

    async with OverrideStore(test_settings.overrides_path, bus=bus) as store:
        yield store


@pytest.fixture
async def transformation_service(prompt_api, override_store, bus):
    """TransformationService over the in-process API and a temp override file."""
    from services.transformations import TransformationService

    service = TransformationService(prompt_api, override_store, bus=bus)
    yield service
    await service.close()


# ============ Mock Redis ============


class MockPubSub:
    """Mock Redis pub/sub connection."""

    def __init__(self, redis: "MockRedis"):
        self._redis = redis
        self.channels: set[str] = set()
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue()

    async def subscribe(self, *channels: str) -> None:
        self.channels.update(channels)
        self._redis._pubsubs.append(self)

    async def unsubscribe(self, *channels: str) -> None:
        self.channels.difference_update(channels)

    def deliver(self, channel: str, data: str) -> None:
        self._queue.put_nowait({"type": "message", "channel": channel, "data": data})

    async def listen(self):
        while True:
            yield await self._queue.get()

    async def aclose(self) -> None:
        self.closed = True


class MockRedis:
    """Mock Redis client supporting publish and pubsub."""

    def __init__(self):
        self.published: list[tuple[str, str]] = []
        self._pubsubs: list[MockPubSub] = []

    def pubsub(self) -> MockPubSub:
        return MockPubSub(self)

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        receivers = [p for p in self._pubsubs if channel in p.channels]
        for pubsub in receivers:
            pubsub.deliver(channel, message)
        return len(receivers)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass


@pytest.fixture
def mock_redis():
    """Create a mock Redis instance."""
    return MockRedis()
