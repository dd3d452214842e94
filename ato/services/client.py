from __future__ import annotations

from typing import Any, Iterable, TypeVar
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from ato.core.errors import APIError
from ato.core.http import api_error_from, network_error_from
from ato.logging import get_logger
from ato.schemas.credentials import AddCredentialRequest, CredentialProfile
from ato.schemas.mapping import CreateMappingRequest, Mapping
from ato.schemas.test_plan import (
    EnrichedTestExecutionResult,
    InitiateDiscoveryRequest,
    InitiateExecutionRequest,
    ResultsFilter,
    TestPlan,
    TestPlanSummary,
)

ModelT = TypeVar("ModelT")


def _segment(value: str) -> str:
    return quote(str(value), safe="")


class OrchestratorClient:
    """Typed wrapper over the orchestrator REST API.

    Every call goes through :meth:`_request`, so transport failures surface as
    ``NetworkError`` and unexpected status codes as ``APIError`` for the
    initiating requests and for status polling alike.
    """

    def __init__(self, http_client: httpx.Client) -> None:
        self._client = http_client
        self._logger = get_logger(__name__, component="orchestrator_client")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "OrchestratorClient":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        expected: Iterable[int],
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        expected_statuses = set(expected)
        self._logger.debug("http_request", method=method, path=path, params=params or None)
        try:
            response = self._client.request(method, path, json=json, params=params)
        except httpx.RequestError as exc:
            error = network_error_from(exc)
            self._logger.debug("http_transport_error", method=method, path=path, error=str(exc), code=error.code.value)
            raise error from exc

        self._logger.debug("http_response", method=method, path=path, status_code=response.status_code)
        if response.status_code not in expected_statuses:
            raise api_error_from(response)
        return response

    @staticmethod
    def _decode_data(response: httpx.Response, adapter: TypeAdapter[ModelT]) -> ModelT:
        try:
            payload = response.json()
        except ValueError as exc:
            raise APIError(response.status_code, f"Failed to decode successful API response: {exc}") from exc
        data = payload.get("data") if isinstance(payload, dict) else None
        try:
            return adapter.validate_python(data)
        except ValidationError as exc:
            raise APIError(response.status_code, f"Failed to decode successful API response: {exc}") from exc

    # Test plans

    def list_test_plans(self) -> list[TestPlanSummary]:
        response = self._request("GET", "/test-plans", expected={200})
        return self._decode_data(response, TypeAdapter(list[TestPlanSummary]))

    def get_test_plan(self, plan_id: str) -> TestPlan:
        response = self._request("GET", f"/test-plans/{_segment(plan_id)}", expected={200})
        return self._decode_data(response, TypeAdapter(TestPlan))

    def delete_test_plan(self, plan_id: str) -> None:
        self._request("DELETE", f"/test-plans/{_segment(plan_id)}", expected={204})

    def initiate_discovery(self, request: InitiateDiscoveryRequest) -> str:
        response = self._request("POST", "/test-plans", expected={201, 202}, json=request.to_payload())
        data = self._decode_data(response, TypeAdapter(dict[str, Any]))
        plan_id = data.get("id")
        if not isinstance(plan_id, str) or not plan_id:
            raise APIError(response.status_code, "Failed to decode successful API response: missing plan id")
        self._logger.info("discovery_initiated", plan_id=plan_id, name=request.name)
        return plan_id

    def initiate_execution(self, plan_id: str, request: InitiateExecutionRequest) -> str:
        response = self._request(
            "POST",
            f"/test-plans/{_segment(plan_id)}/execute",
            expected={200, 202},
            json=request.to_payload(),
        )
        target_id = plan_id
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            data = payload.get("data") if isinstance(payload, dict) else None
            if isinstance(data, dict) and isinstance(data.get("id"), str) and data["id"]:
                target_id = data["id"]
        self._logger.info("execution_initiated", plan_id=target_id)
        return target_id

    # Results

    def get_execution_results(self, filters: ResultsFilter | None = None) -> list[EnrichedTestExecutionResult]:
        params = (filters or ResultsFilter()).to_params()
        response = self._request("GET", "/test-execution-results", expected={200}, params=params or None)
        return self._decode_data(response, TypeAdapter(list[EnrichedTestExecutionResult]))

    # Credential profiles

    def list_credential_profiles(self) -> list[CredentialProfile]:
        response = self._request("GET", "/credentials", expected={200})
        return self._decode_data(response, TypeAdapter(list[CredentialProfile]))

    def add_credential_profile(self, request: AddCredentialRequest) -> None:
        self._request("POST", "/credentials", expected={201}, json=request.to_payload())

    def delete_credential_profile(self, profile_name: str) -> None:
        self._request("DELETE", f"/credentials/{_segment(profile_name)}", expected={204})

    # Mappings

    def list_mappings(self) -> list[Mapping]:
        response = self._request("GET", "/mappings", expected={200})
        return self._decode_data(response, TypeAdapter(list[Mapping]))

    def create_mapping(self, request: CreateMappingRequest) -> Mapping:
        response = self._request("POST", "/mappings", expected={201}, json=request.to_payload())
        return self._decode_data(response, TypeAdapter(Mapping))

    def delete_mapping(self, mapping_id: str) -> None:
        self._request("DELETE", f"/mappings/{_segment(mapping_id)}", expected={204})


__all__ = ["OrchestratorClient"]