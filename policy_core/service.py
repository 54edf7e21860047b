import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx
from pydantic import ValidationError

from policy_core.api.congress import CongressClient
from policy_core.api.fec import FecClient
from policy_core.api.lda import LdaClient
from policy_core.analysis.dna import build_policy_dna
from policy_core.analysis.influence import lookup_influence
from policy_core.analysis.llm import GenerativeClient, get_llm_client
from policy_core.config import inspect_environment, load_config
from policy_core.exceptions import InvalidRequestError
from policy_core.models import (
    BillLocator,
    OrchestratorResult,
    PolicyDetailResponse,
    PolicyFilters,
)
from policy_core.orchestrator import PolicyOrchestrator

logger = logging.getLogger(__name__)

DETAIL_ACTION_KEYWORDS = 2


def parse_chat_request(body: Any) -> tuple[str, Optional[PolicyFilters]]:
    """
    Validate a chat request body.

    Raises:
        InvalidRequestError: message missing or not a string, or filters malformed
        InvalidBillIdError: filters.billId is not a composite bill id
    """
    if not isinstance(body, dict):
        raise InvalidRequestError("Missing message")
    message = body.get("message")
    if not isinstance(message, str) or not message.strip():
        raise InvalidRequestError("Missing message")

    raw_filters = body.get("filters")
    if raw_filters is None:
        return message, None
    try:
        filters = PolicyFilters.model_validate(raw_filters)
    except ValidationError as e:
        raise InvalidRequestError(f"Invalid filters: {e.error_count()} validation errors") from e
    if filters.bill_id:
        BillLocator.parse(filters.bill_id)
    return message, filters


class PolicyService:
    """
    Entry points shared by the HTTP app and the CLI.

    Holds configuration and the generative client for the life of the process;
    upstream HTTP clients are opened per request.
    """

    def __init__(
        self,
        config: Optional[dict[str, Any]] = None,
        llm: Optional[GenerativeClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config if config is not None else load_config()
        self.llm = llm if llm is not None else get_llm_client()
        self.transport = transport

    @asynccontextmanager
    async def _clients(self) -> AsyncIterator[tuple[CongressClient, LdaClient, FecClient]]:
        async with CongressClient.from_config(self.config, self.transport) as congress, \
                LdaClient.from_config(self.config, self.transport) as lda, \
                FecClient.from_config(self.config, self.transport) as fec:
            yield congress, lda, fec

    async def chat(self, message: str, filters: Optional[PolicyFilters] = None) -> OrchestratorResult:
        async with self._clients() as (congress, lda, fec):
            orchestrator = PolicyOrchestrator(self.config, congress, lda, fec, self.llm)
            return await orchestrator.run(message, filters)

    async def policy_detail(self, bill_id: str) -> PolicyDetailResponse:
        """
        DNA plus influence for one bill.

        Raises:
            InvalidBillIdError: bill_id is malformed
            UpstreamError: the bill detail could not be fetched
        """
        locator = BillLocator.parse(bill_id)
        async with self._clients() as (congress, lda, fec):
            dna = await build_policy_dna(locator.bill_id, client=congress, settings=self.config)

            keywords = [dna.metadata.title] if dna.metadata.title else []
            keywords.extend(
                action.description
                for action in dna.actions[:DETAIL_ACTION_KEYWORDS]
                if action.description
            )
            sponsors = [dna.metadata.sponsor] if dna.metadata.sponsor else None

            influence = await lookup_influence(
                locator.bill_id,
                keywords=keywords,
                sponsors=sponsors,
                lda_client=lda,
                fec_client=fec,
                settings=self.config,
            )
        return PolicyDetailResponse(bill_id=locator.bill_id, dna=dna, influence=influence)

    def health(self) -> dict[str, Any]:
        return {"status": "ok", "environment": inspect_environment()}
