from __future__ import annotations

import time
from typing import Any, Callable, Generic, Protocol, TypeVar

from ato.core.errors import OperationFailed, PollTimeout, UnexpectedState
from ato.logging import get_logger
from ato.services.polling.policy import Classification, Phase, classify


class StatusSnapshot(Protocol):
    status: Any
    failure_reason: str | None


SnapshotT = TypeVar("SnapshotT", bound=StatusSnapshot)

FetchFn = Callable[[str], SnapshotT]
ProgressFn = Callable[[SnapshotT, int], None]


class Poller(Generic[SnapshotT]):
    """Drive a server-side operation to a terminal status by repeated fetches.

    ``fetch`` is expected to raise a ``PollError`` on transport or API
    failures; those propagate from the first failing call without retry.
    Each iteration performs one fetch and, while the status is transient,
    one ``sleep(interval_seconds)``. ``max_attempts=None`` polls until the
    server reports a terminal status.
    """

    def __init__(
        self,
        fetch: FetchFn,
        *,
        interval_seconds: float,
        max_attempts: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: ProgressFn | None = None,
    ) -> None:
        if interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")
        if max_attempts is not None and max_attempts <= 0:
            raise ValueError("max_attempts must be a positive integer or None")
        self._fetch = fetch
        self._interval_seconds = float(interval_seconds)
        self._max_attempts = max_attempts
        self._sleep = sleep
        self._on_progress = on_progress
        self._logger = get_logger(__name__, component="poller")

    def poll(self, phase: Phase, operation_id: str) -> SnapshotT:
        phase = Phase(phase)
        attempt = 0
        while True:
            attempt += 1
            snapshot = self._fetch(operation_id)
            classification = classify(phase, snapshot.status)
            self._logger.debug(
                "poll_attempt",
                phase=phase.value,
                operation_id=operation_id,
                attempt=attempt,
                status=str(snapshot.status),
                classification=classification.value,
            )

            if classification is Classification.CONTINUE:
                if self._on_progress is not None:
                    self._on_progress(snapshot, attempt)
                if self._max_attempts is not None and attempt >= self._max_attempts:
                    self._logger.info("poll_terminal", phase=phase.value, operation_id=operation_id, outcome="timeout")
                    raise PollTimeout(phase.value, attempt, snapshot)
                self._sleep(self._interval_seconds)
                continue

            self._logger.info(
                "poll_terminal",
                phase=phase.value,
                operation_id=operation_id,
                attempts=attempt,
                outcome=classification.value,
            )
            if classification is Classification.SUCCESS:
                return snapshot
            if classification is Classification.FAILURE:
                raise OperationFailed(phase.value, snapshot.failure_reason, snapshot)
            raise UnexpectedState(phase.value, str(snapshot.status), snapshot)


def poll(
    phase: Phase,
    operation_id: str,
    fetch: FetchFn,
    interval_seconds: float,
    *,
    max_attempts: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
    on_progress: ProgressFn | None = None,
) -> Any:
    poller: Poller[Any] = Poller(
        fetch,
        interval_seconds=interval_seconds,
        max_attempts=max_attempts,
        sleep=sleep,
        on_progress=on_progress,
    )
    return poller.poll(phase, operation_id)


__all__ = ["Poller", "StatusSnapshot", "poll"]
