"""Plain-text and JSON summaries of plans and execution results."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Sequence

from pydantic import BaseModel

from ato.schemas.test_plan import EnrichedTestExecutionResult, TestExecutionResult, TestPlan

CASE_PASSED = "PASSED"
CASE_FAILED = "FAILED"
RESULT_FAILURE = "FAILURE"


@dataclass
class ExecutionSummary:
    tests_total: int = 0
    tests_passed: int = 0
    tests_failed: int = 0
    cases_total: int = 0
    cases_passed: int = 0
    cases_failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def summarize_results(results: Iterable[TestExecutionResult | EnrichedTestExecutionResult]) -> ExecutionSummary:
    """Count tests and their cases.

    A test fails when any of its cases fails; a test without granular cases
    counts as one case carrying the test's own status.
    """

    summary = ExecutionSummary()
    for result in results:
        summary.tests_total += 1
        failed = False
        if result.test_cases:
            for case in result.test_cases:
                summary.cases_total += 1
                if case.status == CASE_FAILED:
                    summary.cases_failed += 1
                    failed = True
                else:
                    summary.cases_passed += 1
        else:
            summary.cases_total += 1
            if result.status == RESULT_FAILURE:
                summary.cases_failed += 1
                failed = True
            else:
                summary.cases_passed += 1
        if failed:
            summary.tests_failed += 1
        else:
            summary.tests_passed += 1
    return summary


def summarize_execution(plan: TestPlan) -> ExecutionSummary:
    return summarize_results(plan.execution_results)


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (list, tuple)):
        return [_dump(item) for item in value]
    return value


def _summary_line(summary: ExecutionSummary) -> list[str]:
    return [
        f"Tests       : {summary.tests_failed} failed, {summary.tests_passed} passed, {summary.tests_total} total",
        f"Test Cases  : {summary.cases_failed} failed, {summary.cases_passed} passed, {summary.cases_total} total",
    ]


def render_plan(plan: TestPlan, fmt: str = "text") -> str:
    summary = summarize_execution(plan)
    if fmt.lower() == "json":
        payload = {"plan": _dump(plan), "summary": summary.as_dict()}
        return json.dumps(payload, indent=2, sort_keys=True)

    lines = [
        "Test Plan",
        "=========",
        f"ID          : {plan.id}",
        f"Name        : {plan.name or 'n/a'}",
        f"Status      : {plan.status}",
    ]
    if plan.failure_reason and str(plan.status).endswith("_FAILED"):
        lines.append(f"Failure     : {plan.failure_reason}")
    if plan.created_at is not None:
        lines.append(f"Created At  : {plan.created_at.isoformat()}")

    if plan.plan_components:
        lines.extend(["", "Components"])
        for component in plan.plan_components:
            name = component.component_name or "N/A"
            coverage = len(component.available_tests)
            lines.append(f"- {component.component_id} ({name}): {coverage} available test(s)")
            for test in component.available_tests:
                lines.append(f"    {test.id} {test.name or 'N/A'}")
    else:
        lines.extend(["", "No components are associated with this plan."])

    if plan.execution_results:
        lines.extend(["", "Execution Results", *_summary_line(summary)])
        lines.extend(_failure_details(plan.execution_results))
    return "\n".join(lines)


def _failure_details(results: Sequence[TestExecutionResult | EnrichedTestExecutionResult]) -> list[str]:
    lines: list[str] = []
    for result in results:
        name = result.test_component_name or result.test_component_id
        failed_cases = [case for case in result.test_cases if case.status == CASE_FAILED]
        if failed_cases:
            for case in failed_cases:
                label = ": ".join(part for part in (case.test_case_id, case.test_description) if part)
                lines.append(f"FAIL {name} > {label}")
                if case.details:
                    lines.append(f"      {case.details.strip()}")
        elif not result.test_cases and result.status == RESULT_FAILURE:
            lines.append(f"FAIL {name}")
            if result.message:
                lines.append(f"      {result.message.strip()}")
    return lines


def render_results(results: Sequence[EnrichedTestExecutionResult], fmt: str = "text") -> str:
    summary = summarize_results(results)
    if fmt.lower() == "json":
        return json.dumps({"results": _dump(list(results)), "summary": summary.as_dict()}, indent=2, sort_keys=True)

    lines: list[str] = []
    for result in results:
        plan = result.test_plan_name or result.test_plan_id
        component = result.component_name or result.plan_component_id
        test = result.test_component_name or result.test_component_id
        executed = result.executed_at.isoformat() if result.executed_at else "n/a"
        lines.append(f"{result.status:<8} {plan} / {component} / {test} ({executed})")
    lines.extend(_failure_details(results))
    lines.extend(["", *_summary_line(summary)])
    return "\n".join(lines)


def render_records(records: Sequence[BaseModel], fmt: str = "text") -> str:
    """Render a list of API records; text output is one ``key=value`` line per record."""

    if fmt.lower() == "json":
        return json.dumps(_dump(list(records)), indent=2, sort_keys=True)
    lines = []
    for record in records:
        flat = record.model_dump(mode="json", exclude_none=True)
        parts = []
        for key, value in flat.items():
            if isinstance(value, dict):
                parts.extend(f"{key}.{sub}={item}" for sub, item in value.items())
            else:
                parts.append(f"{key}={value}")
        lines.append(" ".join(parts))
    return "\n".join(lines)


__all__ = [
    "ExecutionSummary",
    "render_plan",
    "render_records",
    "render_results",
    "summarize_execution",
    "summarize_results",
]
