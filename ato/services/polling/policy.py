from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ato.schemas.test_plan import PlanStatus


class Phase(str, Enum):
    DISCOVERY = "discovery"
    EXECUTION = "execution"


class Classification(str, Enum):
    CONTINUE = "continue"
    SUCCESS = "success"
    FAILURE = "failure"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class PhasePolicy:
    """Status-tag table for one phase; tags outside every set get ``default``."""

    transient: frozenset[str]
    failure: frozenset[str]
    success: frozenset[str]
    default: Classification

    def classify(self, tag: Any) -> Classification:
        value = tag if isinstance(tag, str) else str(tag)
        if value in self.transient:
            return Classification.CONTINUE
        if value in self.failure:
            return Classification.FAILURE
        if value in self.success:
            return Classification.SUCCESS
        return self.default


# Discovery treats every non-failure terminal tag as done, including
# AWAITING_SELECTION and COMPLETED. Execution rejects tags it does not know.
POLICIES: dict[Phase, PhasePolicy] = {
    Phase.DISCOVERY: PhasePolicy(
        transient=frozenset({PlanStatus.DISCOVERING.value}),
        failure=frozenset({PlanStatus.DISCOVERY_FAILED.value}),
        success=frozenset(),
        default=Classification.SUCCESS,
    ),
    Phase.EXECUTION: PhasePolicy(
        transient=frozenset({PlanStatus.EXECUTING.value, PlanStatus.AWAITING_SELECTION.value}),
        failure=frozenset({PlanStatus.EXECUTION_FAILED.value}),
        success=frozenset({PlanStatus.COMPLETED.value}),
        default=Classification.UNEXPECTED,
    ),
}


def classify(phase: Phase, tag: Any) -> Classification:
    return POLICIES[Phase(phase)].classify(tag)


__all__ = ["Classification", "POLICIES", "Phase", "PhasePolicy", "classify"]
