"""
Question-answering pipeline.

Stages run strictly in order on one mutable OrchestratorState:

    normalize -> search -> dna -> influence -> ground -> guardrail

Each stage appends one line to state.logs. A stage that raises is logged and
the pipeline continues with that stage's field unset, so the user always gets
an answer (possibly the "no match" or deterministic one) and a guardrail verdict.
"""
import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Any, Awaitable, Callable, Optional

from policy_core.api.congress import CongressClient
from policy_core.api.fec import FecClient
from policy_core.api.lda import LdaClient
from policy_core.analysis.dna import build_policy_dna
from policy_core.analysis.grounder import ground_answer
from policy_core.analysis.guardrail import validate_answer
from policy_core.analysis.influence import lookup_influence
from policy_core.analysis.llm import GenerativeClient, get_llm_client
from policy_core.analysis.query import normalize_query
from policy_core.analysis.search import search_policies
from policy_core.config import load_config
from policy_core.exceptions import PolicyCoreError
from policy_core.models import (
    GroundedAnswer,
    GuardrailFinding,
    OrchestratorResult,
    OrchestratorState,
    PolicyFilters,
)

logger = logging.getLogger(__name__)

NO_ANSWER = "No answer generated."

Stage = Callable[[OrchestratorState], Awaitable[OrchestratorState]]


class PolicyOrchestrator:
    """Runs one question through every stage using shared upstream clients."""

    def __init__(
        self,
        settings: dict[str, Any],
        congress: CongressClient,
        lda: LdaClient,
        fec: FecClient,
        llm: Optional[GenerativeClient] = None,
    ):
        self.settings = settings
        self.congress = congress
        self.lda = lda
        self.fec = fec
        self.llm = llm
        self.request_timeout = float(settings.get("orchestrator", {}).get("request_timeout", 90.0))

    async def normalize(self, state: OrchestratorState) -> OrchestratorState:
        state.normalized_query = normalize_query(state.query)
        state.logs.append(f"Normalized query to: {state.normalized_query}")
        return state

    async def search(self, state: OrchestratorState) -> OrchestratorState:
        state.policies = await search_policies(
            state.normalized_query or state.query,
            state.filters,
            client=self.congress,
            settings=self.settings,
        )
        state.logs.append(f"Retrieved {len(state.policies)} policies from Congress.gov")
        return state

    async def dna(self, state: OrchestratorState) -> OrchestratorState:
        if not state.policies:
            state.logs.append("Skipping DNA computation; no policies available.")
            return state
        primary = state.policies[0]
        try:
            state.dna = await build_policy_dna(primary.bill_id, client=self.congress, settings=self.settings)
        except PolicyCoreError as e:
            logger.warning("Policy DNA failed for %s: %s", primary.bill_id, e)
            state.logs.append(f"Skipping DNA for {primary.bill_id}: {e}")
            return state
        state.logs.append(f"Built DNA for {primary.bill_id} ({len(state.dna.timeline)} versions)")
        return state

    async def influence(self, state: OrchestratorState) -> OrchestratorState:
        if not state.policies:
            state.logs.append("Skipping influence lookup; no policies available.")
            return state
        primary = state.policies[0]

        sponsor = primary.sponsor
        if sponsor is None and state.dna is not None:
            sponsor = state.dna.metadata.sponsor
        period = state.filters.date_range if state.filters else None

        state.influence = await lookup_influence(
            primary.bill_id,
            keywords=[state.normalized_query or state.query, primary.title],
            sponsors=[sponsor] if sponsor else None,
            period=period,
            lda_client=self.lda,
            fec_client=self.fec,
            settings=self.settings,
        )
        state.logs.append(
            f"Influence lookup complete ({len(state.influence.lobbying)} lobbying, "
            f"{len(state.influence.finance)} finance)"
        )
        return state

    async def ground(self, state: OrchestratorState) -> OrchestratorState:
        state.answer = await ground_answer(
            state.query,
            state.policies,
            dna=state.dna,
            influence=state.influence,
            llm=self.llm,
        )
        state.logs.append(f"Answer grounded with {len(state.answer.citations)} citations")
        return state

    async def guardrail(self, state: OrchestratorState) -> OrchestratorState:
        if state.answer is None:
            state.guardrail_result = GuardrailFinding(ok=False, warnings=["Missing answer"])
            state.logs.append("Guardrail skipped; no answer to check")
            return state
        state.guardrail_result = await validate_answer(state.answer.answer, llm=self.llm)
        state.logs.append("Guardrail passed" if state.guardrail_result.ok else "Guardrail warnings issued")
        return state

    @property
    def stages(self) -> list[tuple[str, Stage]]:
        return [
            ("normalize", self.normalize),
            ("search", self.search),
            ("dna", self.dna),
            ("influence", self.influence),
            ("ground", self.ground),
            ("guardrail", self.guardrail),
        ]

    async def _run_stages(self, state: OrchestratorState) -> OrchestratorState:
        for name, stage in self.stages:
            try:
                state = await stage(state)
            except Exception as e:
                logger.exception("Stage %s failed", name)
                state.logs.append(f"Stage {name} failed: {e}")
        return state

    async def run(self, query: str, filters: Optional[PolicyFilters] = None) -> OrchestratorResult:
        """
        Answer one question.

        The whole run is bounded by orchestrator.request_timeout; on timeout
        in-flight upstream calls are cancelled and whatever the finished stages
        produced is returned.
        """
        state = OrchestratorState(query=query, filters=filters)
        try:
            await asyncio.wait_for(self._run_stages(state), timeout=self.request_timeout)
        except asyncio.TimeoutError:
            logger.warning("Request timed out after %.0fs: %r", self.request_timeout, query)
            state.logs.append(f"Request timed out after {self.request_timeout:.0f}s; returning partial results")

        return OrchestratorResult(
            query=query,
            filters=filters,
            policies=state.policies,
            dna=state.dna,
            influence=state.influence,
            answer=state.answer or GroundedAnswer(answer=NO_ANSWER, citations=[]),
            guardrail=state.guardrail_result or GuardrailFinding(ok=False, warnings=["Guardrail missing"]),
            logs=state.logs,
        )


async def run_orchestrator(
    query: str,
    filters: Optional[PolicyFilters] = None,
    settings: Optional[dict[str, Any]] = None,
    llm: Optional[GenerativeClient] = None,
) -> OrchestratorResult:
    """Open upstream clients from config, answer one question, close them."""
    config = settings if settings is not None else load_config()
    if llm is None:
        llm = get_llm_client()

    async with AsyncExitStack() as stack:
        congress = await stack.enter_async_context(CongressClient.from_config(config))
        lda = await stack.enter_async_context(LdaClient.from_config(config))
        fec = await stack.enter_async_context(FecClient.from_config(config))
        orchestrator = PolicyOrchestrator(config, congress, lda, fec, llm)
        return await orchestrator.run(query, filters)
