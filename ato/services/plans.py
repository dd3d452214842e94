from __future__ import annotations

import time
from typing import Callable

from ato.core.config import Settings
from ato.logging import bind_log_context, get_logger, unbind_log_context
from ato.schemas.test_plan import InitiateDiscoveryRequest, InitiateExecutionRequest, TestPlan
from ato.services.client import OrchestratorClient
from ato.services.polling import Phase, Poller

ProgressCallback = Callable[[TestPlan, int], None]


class TestPlanService:
    """Initiate a discovery or execution and block until it is terminal.

    Returns the terminal ``TestPlan`` or raises a ``PollError``. The
    initiating request is the only write; everything after it is a status
    read.
    """

    __test__ = False

    def __init__(
        self,
        client: OrchestratorClient,
        *,
        discovery_interval_seconds: float = 2.0,
        execution_interval_seconds: float = 3.0,
        max_attempts: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._discovery_interval = discovery_interval_seconds
        self._execution_interval = execution_interval_seconds
        self._max_attempts = max_attempts
        self._sleep = sleep
        self._logger = get_logger(__name__, component="test_plan_service")

    @classmethod
    def from_settings(
        cls,
        client: OrchestratorClient,
        settings: Settings,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "TestPlanService":
        return cls(
            client,
            discovery_interval_seconds=settings.discovery_poll_interval_seconds,
            execution_interval_seconds=settings.execution_poll_interval_seconds,
            max_attempts=settings.poll_max_attempts,
            sleep=sleep,
        )

    def _poller(self, interval: float, on_progress: ProgressCallback | None) -> Poller[TestPlan]:
        return Poller(
            self._client.get_test_plan,
            interval_seconds=interval,
            max_attempts=self._max_attempts,
            sleep=self._sleep,
            on_progress=on_progress,
        )

    def discover(
        self,
        request: InitiateDiscoveryRequest,
        *,
        on_created: Callable[[str], None] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TestPlan:
        plan_id = self._client.initiate_discovery(request)
        if on_created is not None:
            on_created(plan_id)
        return self.wait(Phase.DISCOVERY, plan_id, on_progress=on_progress)

    def execute(
        self,
        plan_id: str,
        request: InitiateExecutionRequest,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> TestPlan:
        target_id = self._client.initiate_execution(plan_id, request)
        return self.wait(Phase.EXECUTION, target_id, on_progress=on_progress)

    def wait(self, phase: Phase, plan_id: str, *, on_progress: ProgressCallback | None = None) -> TestPlan:
        interval = self._discovery_interval if phase is Phase.DISCOVERY else self._execution_interval
        bind_log_context(plan_id=plan_id, phase=phase.value)
        try:
            self._logger.debug("plan_wait_started", interval_seconds=interval, max_attempts=self._max_attempts)
            return self._poller(interval, on_progress).poll(phase, plan_id)
        finally:
            unbind_log_context("plan_id", "phase")


__all__ = ["TestPlanService"]
