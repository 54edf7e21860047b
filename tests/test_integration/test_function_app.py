"""
HTTP surface tests.

Tests verify request validation, status codes and camelCase bodies for the
chat, policy detail and health handlers. The service is mocked.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import azure.functions as func
import pytest

from function_app import handle_chat, handle_health, handle_policy_detail
from policy_core.exceptions import InvalidBillIdError, UpstreamError
from policy_core.models import (
    GroundedAnswer,
    GuardrailFinding,
    InfluenceResult,
    OrchestratorResult,
    PolicyDetailResponse,
    PolicyDNAResult,
)


def chat_request(body) -> func.HttpRequest:
    raw = body if isinstance(body, bytes) else json.dumps(body).encode()
    return func.HttpRequest(method="POST", url="/api/chat", body=raw)


def detail_request(bill_id: str) -> func.HttpRequest:
    return func.HttpRequest(
        method="GET",
        url=f"/api/policy/{bill_id}",
        body=b"",
        route_params={"billId": bill_id},
    )


def body_of(response: func.HttpResponse) -> dict:
    return json.loads(response.get_body())


@pytest.fixture
def service():
    mock_service = MagicMock()
    mock_service.chat = AsyncMock(return_value=OrchestratorResult(
        query="What is HR 1234?",
        answer=GroundedAnswer(answer="HR 1234 extends clean energy tax credits.", citations=[]),
        guardrail=GuardrailFinding(ok=True),
        logs=["Normalized query to: what is hr 1234"],
    ))
    mock_service.policy_detail = AsyncMock(return_value=PolicyDetailResponse(
        bill_id="118-hr-1234",
        dna=PolicyDNAResult(bill_id="118-hr-1234"),
        influence=InfluenceResult(),
    ))
    return mock_service


class TestChatHandler:
    """Tests for POST /api/chat."""

    @pytest.mark.asyncio
    async def test_success(self, service):
        response = await handle_chat(chat_request({"message": "What is HR 1234?"}), service)

        assert response.status_code == 200
        assert response.mimetype == "application/json"
        payload = body_of(response)
        assert payload["answer"]["answer"] == "HR 1234 extends clean energy tax credits."
        assert payload["guardrail"] == {"ok": True, "warnings": []}
        assert "filters" not in payload
        service.chat.assert_awaited_once_with("What is HR 1234?", None)

    @pytest.mark.asyncio
    async def test_filters_parsed(self, service):
        request = chat_request({
            "message": "clean energy",
            "filters": {"congress": 118, "billId": "118-hr-1234", "dateRange": {"from": "2024-01-01"}},
        })

        response = await handle_chat(request, service)

        assert response.status_code == 200
        filters = service.chat.call_args.args[1]
        assert filters.congress == 118
        assert filters.bill_id == "118-hr-1234"
        assert filters.date_range.date_from == "2024-01-01"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {},
        {"message": ""},
        {"message": "   "},
        {"message": 42},
        ["What is HR 1234?"],
    ])
    async def test_missing_message(self, service, body):
        response = await handle_chat(chat_request(body), service)

        assert response.status_code == 400
        assert body_of(response) == {"error": "Missing message"}
        service.chat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_json(self, service):
        response = await handle_chat(chat_request(b"{not json"), service)
        assert response.status_code == 400
        assert body_of(response) == {"error": "Missing message"}

    @pytest.mark.asyncio
    async def test_invalid_bill_id_filter(self, service):
        request = chat_request({"message": "clean energy", "filters": {"billId": "118-hr"}})

        response = await handle_chat(request, service)

        assert response.status_code == 400
        assert "Invalid bill id" in body_of(response)["error"]
        service.chat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_filters(self, service):
        request = chat_request({"message": "clean energy", "filters": {"congress": "one hundred"}})
        response = await handle_chat(request, service)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_service_failure(self, service):
        service.chat.side_effect = RuntimeError("orchestrator exploded")

        response = await handle_chat(chat_request({"message": "What is HR 1234?"}), service)

        assert response.status_code == 500
        assert body_of(response) == {"error": "orchestrator exploded"}


class TestPolicyDetailHandler:
    """Tests for GET /api/policy/{billId}."""

    @pytest.mark.asyncio
    async def test_success(self, service):
        response = await handle_policy_detail(detail_request("118-hr-1234"), service)

        assert response.status_code == 200
        payload = body_of(response)
        assert payload["billId"] == "118-hr-1234"
        assert payload["dna"]["billId"] == "118-hr-1234"
        assert payload["influence"]["lobbying"] == []
        service.policy_detail.assert_awaited_once_with("118-hr-1234")

    @pytest.mark.asyncio
    async def test_missing_bill_id(self, service):
        response = await handle_policy_detail(detail_request("  "), service)

        assert response.status_code == 400
        assert body_of(response) == {"error": "Missing billId"}
        service.policy_detail.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_bill_id(self, service):
        service.policy_detail.side_effect = InvalidBillIdError("Invalid bill id: 'hr-1234'")

        response = await handle_policy_detail(detail_request("hr-1234"), service)

        assert response.status_code == 400
        assert body_of(response) == {"error": "Invalid bill id: 'hr-1234'"}

    @pytest.mark.asyncio
    async def test_upstream_failure(self, service):
        service.policy_detail.side_effect = UpstreamError(
            "congress.gov returned 404 for /v3/bill/118/hr/99999", source="congress.gov", status_code=404
        )

        response = await handle_policy_detail(detail_request("118-hr-99999"), service)

        assert response.status_code == 500
        assert "404" in body_of(response)["error"]

    @pytest.mark.asyncio
    async def test_unexpected_failure(self, service):
        service.policy_detail.side_effect = RuntimeError("")
        response = await handle_policy_detail(detail_request("118-hr-1234"), service)
        assert response.status_code == 500
        assert body_of(response) == {"error": "Internal error"}


class TestHealthHandler:
    """Tests for GET /api/health."""

    def test_health(self):
        service = MagicMock()
        service.health.return_value = {
            "status": "ok",
            "environment": [{"name": "CONGRESS_API_KEY", "description": "", "optional": False, "present": True}],
        }

        response = handle_health(service)

        assert response.status_code == 200
        assert body_of(response)["environment"][0]["present"] is True
