from __future__ import annotations

import json

from ato.schemas import test_plan as plan_schemas
from ato.schemas.mapping import Mapping
from ato.services.reports import render_plan, render_records, render_results, summarize_execution

from .conftest import plan_payload


def _plan_with_results() -> plan_schemas.TestPlan:
    payload = plan_payload(
        "COMPLETED",
        planComponents=[
            {
                "id": "pc-1",
                "componentId": "comp-1",
                "componentName": "Order Sync",
                "availableTests": [{"id": "t-1", "name": "Order Sync Test"}, {"id": "t-2"}],
                "executionResults": [
                    {
                        "id": "r-1",
                        "testComponentId": "t-1",
                        "testComponentName": "Order Sync Test",
                        "status": "FAILURE",
                        "testCases": [
                            {"testCaseId": "tc-1", "testDescription": "creates order", "status": "PASSED"},
                            {
                                "testCaseId": "tc-2",
                                "testDescription": "rejects duplicates",
                                "status": "FAILED",
                                "details": "expected 409 got 200",
                            },
                        ],
                    },
                    {"id": "r-2", "testComponentId": "t-2", "status": "SUCCESS"},
                    {"id": "r-3", "testComponentId": "t-3", "status": "FAILURE", "message": "Process timed out"},
                ],
            }
        ],
    )
    return plan_schemas.TestPlan.model_validate(payload)


def test_summary_counts_tests_and_cases() -> None:
    summary = summarize_execution(_plan_with_results())

    assert summary.as_dict() == {
        "tests_total": 3,
        "tests_passed": 1,
        "tests_failed": 2,
        "cases_total": 4,
        "cases_passed": 2,
        "cases_failed": 2,
    }


def test_render_plan_text_lists_failures() -> None:
    text = render_plan(_plan_with_results())

    assert "ID          : plan-1" in text
    assert "- comp-1 (Order Sync): 2 available test(s)" in text
    assert "Tests       : 2 failed, 1 passed, 3 total" in text
    assert "FAIL Order Sync Test > tc-2: rejects duplicates" in text
    assert "      expected 409 got 200" in text
    assert "FAIL t-3" in text
    assert "Process timed out" in text


def test_render_plan_text_shows_failure_reason_for_failed_status() -> None:
    plan = plan_schemas.TestPlan.model_validate(plan_payload("DISCOVERY_FAILED", failureReason="bad credentials"))

    text = render_plan(plan)

    assert "Failure     : bad credentials" in text
    assert "No components are associated with this plan." in text


def test_render_plan_json_uses_wire_names() -> None:
    payload = json.loads(render_plan(_plan_with_results(), "json"))

    assert payload["plan"]["planComponents"][0]["componentId"] == "comp-1"
    assert payload["summary"]["tests_failed"] == 2


def test_render_results_text() -> None:
    result = plan_schemas.EnrichedTestExecutionResult.model_validate(
        {
            "id": "r-1",
            "testPlanId": "plan-1",
            "testPlanName": "nightly",
            "planComponentId": "pc-1",
            "componentName": "Order Sync",
            "testComponentId": "t-1",
            "status": "SUCCESS",
            "executedAt": "2024-05-01T10:05:00Z",
        }
    )

    text = render_results([result])

    assert text.splitlines()[0].startswith("SUCCESS  nightly / Order Sync / t-1")
    assert "Tests       : 0 failed, 1 passed, 1 total" in text


def test_render_records_text_is_key_value() -> None:
    mapping = Mapping(id="m-1", main_component_id="comp-1", test_component_id="t-1")

    assert render_records([mapping]) == "id=m-1 main_component_id=comp-1 test_component_id=t-1"
    assert json.loads(render_records([mapping], "json"))[0]["mainComponentId"] == "comp-1"
