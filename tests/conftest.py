from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Callable, Generator

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ato.core.config import Settings, get_settings  # noqa: E402
from ato.core.http import build_http_client  # noqa: E402
from ato.logging import configure_logging  # noqa: E402
from ato.services.client import OrchestratorClient  # noqa: E402

API_URL = "http://orchestrator.test/api/v1"

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Keep ATO_* variables and any local .env file out of the tests."""

    for key in list(os.environ):
        if key.startswith("ATO_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    configure_logging("WARNING")
    yield
    get_settings.cache_clear()


def envelope(data: Any = None, *, message: str = "OK", success: bool = True) -> dict[str, Any]:
    return {"metadata": {"success": success, "message": message}, "data": data}


def plan_payload(status: str, *, plan_id: str = "plan-1", **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": plan_id,
        "name": "nightly",
        "status": status,
        "failureReason": None,
        "createdAt": "2024-05-01T10:00:00Z",
        "updatedAt": "2024-05-01T10:05:00Z",
        "planComponents": [],
    }
    payload.update(extra)
    return payload


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture()
def settings() -> Settings:
    return Settings(api_url=API_URL, discovery_poll_interval_seconds=0.01, execution_poll_interval_seconds=0.01)


@pytest.fixture()
def make_client(settings: Settings) -> Callable[[Handler], tuple[OrchestratorClient, RecordingTransport]]:
    def _factory(handler: Handler) -> tuple[OrchestratorClient, RecordingTransport]:
        transport = RecordingTransport(handler)
        return OrchestratorClient(build_http_client(settings, transport=transport)), transport

    return _factory
