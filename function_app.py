import functools
import json
import logging
from typing import Any

import azure.functions as func

from policy_core.config import log_environment_summary
from policy_core.exceptions import InvalidBillIdError, InvalidRequestError, UpstreamError
from policy_core.service import PolicyService, parse_chat_request

app = func.FunctionApp()


@functools.lru_cache(maxsize=1)
def get_service() -> PolicyService:
    # One service (config + generative client) per worker process
    log_environment_summary()
    return PolicyService()


def _json_response(payload: Any, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(payload),
        status_code=status_code,
        mimetype="application/json",
    )


def _error(message: str, status_code: int) -> func.HttpResponse:
    return _json_response({"error": message}, status_code=status_code)


async def handle_chat(req: func.HttpRequest, service: PolicyService) -> func.HttpResponse:
    try:
        body = req.get_json()
    except ValueError:
        return _error("Missing message", 400)

    try:
        message, filters = parse_chat_request(body)
    except (InvalidRequestError, InvalidBillIdError) as e:
        return _error(str(e), 400)

    try:
        result = await service.chat(message, filters)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logging.exception('Orchestrator failed for message: %s', message)
        return _error(str(e) or "Internal error", 500)

    return _json_response(result.to_json_dict())


async def handle_policy_detail(req: func.HttpRequest, service: PolicyService) -> func.HttpResponse:
    bill_id = (req.route_params.get("billId") or "").strip()
    if not bill_id:
        return _error("Missing billId", 400)

    try:
        detail = await service.policy_detail(bill_id)
    except InvalidBillIdError as e:
        return _error(str(e), 400)
    except UpstreamError as e:
        logging.error('Policy detail failed for %s: %s', bill_id, str(e))
        return _error(str(e), 500)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logging.exception('Policy detail failed for %s', bill_id)
        return _error(str(e) or "Internal error", 500)

    return _json_response(detail.to_json_dict())


def handle_health(service: PolicyService) -> func.HttpResponse:
    return _json_response(service.health())


# pylint: disable=invalid-name
@app.route(route="chat", methods=["POST"], auth_level=func.AuthLevel.FUNCTION)
async def PolicyChatHTTP(req: func.HttpRequest) -> func.HttpResponse:
    """
    Answer a legislative question.
    POST /api/chat {"message": "...", "filters": {...}}
    """
    logging.info('Chat request from: %s', req.url)
    return await handle_chat(req, get_service())


# pylint: disable=invalid-name
@app.route(route="policy/{billId}", methods=["GET"], auth_level=func.AuthLevel.FUNCTION)
async def PolicyDetailHTTP(req: func.HttpRequest) -> func.HttpResponse:
    """
    Version history, attribution and influence records for one bill.
    GET /api/policy/118-hr-1234
    """
    logging.info('Policy detail request: %s', req.url)
    return await handle_policy_detail(req, get_service())


# pylint: disable=invalid-name
@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def PolicyHealthHTTP(req: func.HttpRequest) -> func.HttpResponse:
    """Credential presence report. Never includes values."""
    return handle_health(get_service())
