from __future__ import annotations

import json

import httpx
import pytest
from structlog.contextvars import get_contextvars

from ato.core.config import Settings
from ato.core.errors import OperationFailed, PollTimeout, UnexpectedState
from ato.schemas.test_plan import InitiateDiscoveryRequest, InitiateExecutionRequest
from ato.services import plans as plans_module
from ato.services.polling import Phase

from .conftest import envelope, plan_payload


class FakeServer:
    """Serves a scripted status sequence for GET /test-plans/{id}."""

    def __init__(self, statuses: list[str], *, failure_reason: str | None = None) -> None:
        self.statuses = list(statuses)
        self.failure_reason = failure_reason
        self.gets = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path.endswith("/execute"):
            return httpx.Response(202, json=envelope(None, message="Execution started"))
        if request.method == "POST":
            return httpx.Response(202, json=envelope({"id": "plan-1", "status": "DISCOVERING"}))
        status = self.statuses[min(self.gets, len(self.statuses) - 1)]
        self.gets += 1
        return httpx.Response(200, json=envelope(plan_payload(status, failureReason=self.failure_reason)))


def _service(client, settings: Settings, sleeps: list[float], **overrides) -> plans_module.TestPlanService:
    if overrides:
        settings = settings.model_copy(update=overrides)
    return plans_module.TestPlanService.from_settings(client, settings, sleep=sleeps.append)


def test_discover_waits_for_discovery_to_finish(make_client, settings: Settings) -> None:
    server = FakeServer(["DISCOVERING", "DISCOVERING", "AWAITING_SELECTION"])
    client, transport = make_client(server)
    sleeps: list[float] = []
    created: list[str] = []
    progress: list[int] = []

    plan = _service(client, settings, sleeps).discover(
        InitiateDiscoveryRequest(name="nightly", component_ids=["c-1"], credential_profile="dev"),
        on_created=created.append,
        on_progress=lambda snapshot, attempt: progress.append(attempt),
    )

    assert plan.status == "AWAITING_SELECTION"
    assert created == ["plan-1"]
    assert progress == [1, 2]
    assert server.gets == 3
    assert sleeps == [settings.discovery_poll_interval_seconds] * 2
    assert [request.method for request in transport.requests] == ["POST", "GET", "GET", "GET"]


def test_discovery_failure_surfaces_reason(make_client, settings: Settings) -> None:
    client, _ = make_client(FakeServer(["DISCOVERING", "DISCOVERY_FAILED"], failure_reason="Component not found"))

    with pytest.raises(OperationFailed) as excinfo:
        _service(client, settings, []).discover(
            InitiateDiscoveryRequest(name="nightly", component_ids=["c-1"], credential_profile="dev")
        )

    assert excinfo.value.reason == "Component not found"
    assert excinfo.value.snapshot.id == "plan-1"


def test_execute_uses_execution_interval(make_client, settings: Settings) -> None:
    server = FakeServer(["EXECUTING", "COMPLETED"])
    client, transport = make_client(server)
    sleeps: list[float] = []

    plan = _service(client, settings, sleeps, execution_poll_interval_seconds=7.5).execute(
        "plan-1", InitiateExecutionRequest(credential_profile="dev", tests_to_run=["t-1"])
    )

    assert plan.status == "COMPLETED"
    assert sleeps == [7.5]
    assert json.loads(transport.requests[0].content) == {"credentialProfile": "dev", "testsToRun": ["t-1"]}


def test_execute_rejects_discovery_status(make_client, settings: Settings) -> None:
    client, _ = make_client(FakeServer(["DISCOVERING"]))

    with pytest.raises(UnexpectedState):
        _service(client, settings, []).execute("plan-1", InitiateExecutionRequest(credential_profile="dev"))


def test_attempt_limit_comes_from_settings(make_client, settings: Settings) -> None:
    server = FakeServer(["EXECUTING"])
    client, _ = make_client(server)
    sleeps: list[float] = []

    with pytest.raises(PollTimeout):
        _service(client, settings, sleeps, poll_max_attempts=4).execute(
            "plan-1", InitiateExecutionRequest(credential_profile="dev")
        )

    assert server.gets == 4
    assert len(sleeps) == 3


def test_wait_unbinds_log_context(make_client, settings: Settings) -> None:
    client, _ = make_client(FakeServer(["EXECUTION_FAILED"]))

    with pytest.raises(OperationFailed):
        _service(client, settings, []).wait(Phase.EXECUTION, "plan-1")

    assert "plan_id" not in get_contextvars()
    assert "phase" not in get_contextvars()
