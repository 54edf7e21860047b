"""
Pytest fixtures and configuration.

Following TDD principles:
- Fixtures provide real-world-like upstream payloads (Congress.gov, Senate LDA, OpenFEC)
- Upstream HTTP is served by httpx.MockTransport; mocks used only for LLM clients
- Each test should be independent and fast
"""
import copy
import json
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

from policy_core.api.congress import CongressClient
from policy_core.api.fec import FecClient
from policy_core.api.lda import LdaClient
from policy_core.config import DEFAULT_CONFIG

CONGRESS_BASE = "https://api.congress.gov/v3"
TEXT_BASE = "https://www.congress.gov/118/bills/hr1234"

INTRODUCED_XML = (
    "<bill><section>The Secretary shall establish a clean energy grant program "
    "for rural electric cooperatives.</section></bill>"
)
REPORTED_XML = (
    "<bill><section>The Secretary shall establish a clean energy loan program "
    "for rural electric cooperatives and tribal utilities.</section></bill>"
)


# =============================================================================
# MOCK TRANSPORT
# =============================================================================

def build_transport(routes: dict[str, Any], calls: Optional[list] = None) -> httpx.MockTransport:
    """
    Serve canned responses keyed by URL path.

    Route values: dict/list -> 200 JSON, str -> 200 text, int -> that status,
    callable(request) -> its httpx.Response. Unknown paths return 404.
    """
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            return route(request)
        if isinstance(route, int):
            return httpx.Response(route, json={"error": "upstream failure"})
        if isinstance(route, str):
            return httpx.Response(200, text=route)
        return httpx.Response(200, json=route)

    return httpx.MockTransport(handler)


@pytest.fixture
def make_transport() -> Callable[..., httpx.MockTransport]:
    return build_transport


# =============================================================================
# CONGRESS.GOV PAYLOAD FIXTURES
# =============================================================================

@pytest.fixture
def search_bill_record() -> dict[str, Any]:
    """One entry from a Congress.gov /bill listing."""
    return {
        "congress": 118,
        "type": "HR",
        "number": "1234",
        "title": "Clean Energy Tax Credit Extension Act",
        "originChamber": "House",
        "latestAction": {
            "actionDate": "2023-06-01",
            "text": "Reported by the Committee on Ways and Means.",
        },
        "updateDate": "2024-01-10",
        "url": f"{CONGRESS_BASE}/bill/118/hr/1234?format=json",
    }


@pytest.fixture
def congress_search_payload(search_bill_record) -> dict[str, Any]:
    """Congress.gov /bill listing with one relevant and one unrelated bill."""
    return {
        "bills": [
            search_bill_record,
            {
                "congress": 118,
                "type": "S",
                "number": "77",
                "title": "Wildlife Habitat Conservation Act",
                "latestAction": {"actionDate": "2023-04-02", "text": "Became Public Law No: 118-12."},
                "url": f"{CONGRESS_BASE}/bill/118/s/77?format=json",
            },
        ],
        "pagination": {"count": 2},
    }


@pytest.fixture
def congress_bill_detail() -> dict[str, Any]:
    """Congress.gov /bill/118/hr/1234 detail payload."""
    return {
        "bill": {
            "congress": 118,
            "type": "HR",
            "number": "1234",
            "title": "Clean Energy Tax Credit Extension Act",
            "introducedDate": "2023-02-01",
            "sponsors": [
                {
                    "bioguideId": "S000001",
                    "fullName": "Rep. Smith, John [R-TX-1]",
                    "party": "R",
                    "state": "TX",
                }
            ],
            "latestAction": {
                "actionDate": "2023-06-01",
                "text": "Reported by the Committee on Ways and Means.",
            },
            "textVersions": {"count": 2, "url": f"{CONGRESS_BASE}/bill/118/hr/1234/text"},
            "actions": {"count": 2, "url": f"{CONGRESS_BASE}/bill/118/hr/1234/actions"},
            "amendments": {"count": 1, "url": f"{CONGRESS_BASE}/bill/118/hr/1234/amendments"},
        }
    }


@pytest.fixture
def congress_text_versions() -> dict[str, Any]:
    """Text versions listed newest first, as Congress.gov returns them."""
    return {
        "textVersions": [
            {
                "date": "2023-06-01T04:00:00Z",
                "type": "Reported in House",
                "formats": [
                    {"type": "Formatted Text", "url": f"{TEXT_BASE}/BILLS-118hr1234rh.htm"},
                    {"type": "Formatted XML", "url": f"{TEXT_BASE}/BILLS-118hr1234rh.xml"},
                ],
            },
            {
                "date": "2023-02-01T05:00:00Z",
                "type": "Introduced in House",
                "formats": [
                    {"type": "Formatted XML", "url": f"{TEXT_BASE}/BILLS-118hr1234ih.xml"},
                ],
            },
        ]
    }


@pytest.fixture
def congress_actions() -> dict[str, Any]:
    return {
        "actions": [
            {
                "actionDate": "2023-02-01",
                "text": "Referred to the House Committee on Ways and Means.",
                "type": "IntroReferral",
                "sourceSystem": {"code": 2, "name": "House floor actions"},
            },
            {
                "actionDate": "2023-06-01",
                "text": "Reported by the Committee on Ways and Means.",
                "type": "Committee",
                "committees": [{"name": "Ways and Means Committee", "systemCode": "hswm00"}],
            },
        ],
        "pagination": {"count": 2},
    }


@pytest.fixture
def congress_amendments() -> dict[str, Any]:
    return {
        "amendments": [
            {
                "number": "412",
                "type": "HAMDT",
                "purpose": "Amendment adds tribal utilities to the eligible borrowers.",
                "sponsors": [{"fullName": "Rep. Lee, Dana [D-NM-3]"}],
                "latestAction": {"actionDate": "2023-05-20", "text": "Amendment agreed to by voice vote."},
                "url": f"{CONGRESS_BASE}/amendment/118/hamdt/412",
            }
        ]
    }


@pytest.fixture
def congress_routes(
    congress_search_payload,
    congress_bill_detail,
    congress_text_versions,
    congress_actions,
    congress_amendments,
) -> dict[str, Any]:
    """Every Congress.gov path the pipeline touches for HR 1234."""
    return {
        "/v3/bill": congress_search_payload,
        "/v3/bill/118/hr/1234": congress_bill_detail,
        "/v3/bill/118/hr/1234/text": congress_text_versions,
        "/v3/bill/118/hr/1234/actions": congress_actions,
        "/v3/bill/118/hr/1234/amendments": congress_amendments,
        "/118/bills/hr1234/BILLS-118hr1234ih.xml": INTRODUCED_XML,
        "/118/bills/hr1234/BILLS-118hr1234rh.xml": REPORTED_XML,
    }


# =============================================================================
# SENATE LDA / OPENFEC PAYLOAD FIXTURES
# =============================================================================

@pytest.fixture
def lda_filings_payload() -> dict[str, Any]:
    return {
        "count": 1,
        "next": None,
        "results": [
            {
                "filing_uuid": "5c2e6b1e-0a41-4a5e-9b7e-1f1b2d3c4e5f",
                "filing_year": 2024,
                "filing_period": "first_quarter",
                "filing_period_display": "1st Quarter (Jan 1 - Mar 31)",
                "income": "50000.00",
                "filing_document_url": "https://lda.senate.gov/filings/public/filing/5c2e6b1e/print/",
                "registrant": {"id": 401, "name": "Green Advocates LLC"},
                "client": {"id": 902, "name": "Solar Co"},
                "lobbying_activities": [
                    {
                        "general_issue_code_display": "Energy/Nuclear",
                        "description": "Clean energy tax credits (H.R. 1234)",
                    }
                ],
            }
        ],
    }


@pytest.fixture
def fec_candidate_search() -> dict[str, Any]:
    return {
        "pagination": {"count": 1},
        "results": [{"candidate_id": "H2TX01000", "name": "SMITH, JOHN", "party": "REP"}],
    }


@pytest.fixture
def fec_candidate_totals() -> dict[str, Any]:
    return {
        "results": [
            {
                "candidate_id": "H2TX01000",
                "cycle": 2024,
                "receipts": 1250000.5,
                "committee_name": "SMITH FOR CONGRESS",
            }
        ]
    }


@pytest.fixture
def influence_routes(lda_filings_payload, fec_candidate_search, fec_candidate_totals) -> dict[str, Any]:
    return {
        "/api/v1/filings/": lda_filings_payload,
        "/v1/candidates/search/": fec_candidate_search,
        "/v1/candidate/H2TX01000/totals/": fec_candidate_totals,
    }


@pytest.fixture
def all_routes(congress_routes, influence_routes) -> dict[str, Any]:
    return {**congress_routes, **influence_routes}


# =============================================================================
# UPSTREAM CLIENT FIXTURES
# =============================================================================

@pytest.fixture
def http_calls() -> list:
    """Requests seen by the mock transport, in order."""
    return []


@pytest.fixture
def transport(all_routes, http_calls) -> httpx.MockTransport:
    return build_transport(all_routes, http_calls)


@pytest_asyncio.fixture
async def congress_client(transport):
    async with CongressClient(api_key="test-congress-key", transport=transport) as client:
        yield client


@pytest_asyncio.fixture
async def lda_client(transport):
    async with LdaClient(api_key="test-lda-key", transport=transport) as client:
        yield client


@pytest_asyncio.fixture
async def fec_client(transport):
    async with FecClient(api_key="test-fec-key", transport=transport) as client:
        yield client


# =============================================================================
# MOCK LLM CLIENT FIXTURES
# =============================================================================

def gemini_response(payload: Any, thought_text: Optional[str] = None) -> MagicMock:
    """Gemini response mock with the candidates[0].content.parts structure."""
    json_text = payload if isinstance(payload, str) else json.dumps(payload)
    mock_response = MagicMock()
    mock_response.text = json_text
    mock_response.candidates = [MagicMock()]
    mock_response.candidates[0].content = MagicMock()

    parts = []
    if thought_text is not None:
        thought_part = MagicMock()
        thought_part.text = thought_text
        thought_part.thought = True
        parts.append(thought_part)
    text_part = MagicMock()
    text_part.text = json_text
    text_part.thought = False
    parts.append(text_part)
    mock_response.candidates[0].content.parts = parts
    return mock_response


@pytest.fixture
def make_gemini_response() -> Callable[..., MagicMock]:
    return gemini_response


@pytest.fixture
def valid_grounded_response() -> dict[str, Any]:
    return {
        "answer": "HR 1234 extends clean energy tax credits to rural electric cooperatives.",
        "citations": [
            {
                "label": "Clean Energy Tax Credit Extension Act",
                "url": "https://www.congress.gov/bill/118th-congress/house-bill/1234",
            }
        ],
        "disclaimers": ["Descriptive summary of official records."],
    }


@pytest.fixture
def mock_llm(valid_grounded_response):
    """GenerativeClient stand-in whose generate_json returns a valid grounded answer."""
    llm = MagicMock()
    llm.generate_json = AsyncMock(return_value=valid_grounded_response)
    return llm


@pytest.fixture
def failing_llm():
    llm = MagicMock()
    llm.generate_json = AsyncMock(side_effect=Exception("API rate limit exceeded"))
    return llm


# =============================================================================
# CONFIGURATION FIXTURES
# =============================================================================

@pytest.fixture
def sample_config() -> dict[str, Any]:
    """DEFAULT_CONFIG with the generative provider disabled."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["llm"]["provider"] = "none"
    return config
