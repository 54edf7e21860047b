import logging
from typing import Optional

from pydantic import ValidationError

from policy_core.api.congress import CONGRESS_WEB_URL, congress_gov_url
from policy_core.api.records import to_timestamp
from policy_core.analysis.llm import GenerativeClient
from policy_core.analysis.prompts import GROUNDED_ANSWER_SCHEMA, build_grounded_answer_prompt
from policy_core.exceptions import LLMResponseError
from policy_core.models import (
    Citation,
    GroundedAnswer,
    InfluenceResult,
    PolicyDNAResult,
    PolicySearchHit,
)

logger = logging.getLogger(__name__)

NO_MATCH_DISCLAIMER = "No matching bills returned by Congress.gov"
CLOSING_LINE = "All information is descriptive and sourced from official records."
FALLBACK_DISCLAIMER = (
    "This summary was assembled directly from official records. "
    "It describes the legislation and does not recommend any action."
)
INFLUENCE_DISCLAIMER = (
    "Lobbying and campaign-finance records are matched by text search and do not "
    "establish that any filing or contribution affected this bill."
)

MAX_POLICY_LINES = 3
MAX_TIMELINE_LINES = 3
GOVINFO_URL = "https://www.govinfo.gov/"
LDA_WEB_URL = "https://lda.senate.gov/"
FEC_WEB_URL = "https://www.fec.gov/"

ContextLine = tuple[str, Citation]


def _bill_url(hit: PolicySearchHit) -> str:
    if hit.congress and hit.bill_type and hit.bill_number:
        return congress_gov_url(hit.congress, hit.bill_type, hit.bill_number)
    return CONGRESS_WEB_URL


def _policy_lines(policies: list[PolicySearchHit]) -> list[ContextLine]:
    lines = []
    for hit in policies[:MAX_POLICY_LINES]:
        section = max(hit.sections, key=lambda s: s.score) if hit.sections else None
        clause = (section.heading if section else None) or "summary"
        snippet = (section.snippet if section else None) or hit.summary or hit.latest_action or hit.title
        url = (section.source_uri if section else None) or _bill_url(hit)
        lines.append((
            f"• {hit.title} ({hit.jurisdiction}) - {clause}: {snippet}",
            Citation(label=hit.title, url=url),
        ))
    return lines


def _timeline_lines(dna: Optional[PolicyDNAResult]) -> list[ContextLine]:
    if dna is None or not dna.timeline:
        return []
    recent = sorted(dna.timeline, key=lambda e: to_timestamp(e.issued_on), reverse=True)
    lines = []
    for entry in recent[:MAX_TIMELINE_LINES]:
        change = entry.change_summary
        lines.append((
            f"• {entry.label} issued {entry.issued_on or 'on an unknown date'} with "
            f"{change.added if change else 0} words added and {change.removed if change else 0} removed",
            Citation(label=f"{entry.label} text", url=entry.source_uri or GOVINFO_URL),
        ))
    return lines


def _influence_lines(influence: Optional[InfluenceResult]) -> list[ContextLine]:
    if influence is None:
        return []
    lines = []
    links = influence.metadata.links
    if influence.lobbying:
        top = influence.lobbying[0]
        lines.append((
            f"• Senate LDA filings show {top.registrant} lobbying for {top.client} on "
            f"{top.issue or 'the bill'} in {top.period or 'recent filing periods'}",
            Citation(label=top.client, url=top.source_url or links.get("lda") or LDA_WEB_URL),
        ))
    if influence.finance:
        top = influence.finance[0]
        receipts = f"${top.total_receipts:,.0f}" if top.total_receipts is not None else "an unreported amount"
        cycle = f" in the {top.cycle} cycle" if top.cycle else ""
        lines.append((
            f"• FEC reports list {top.committee_name} receiving {receipts}{cycle}",
            Citation(label=top.committee_name, url=top.source_url or links.get("fec") or FEC_WEB_URL),
        ))
    return lines


def build_context_lines(
    policies: list[PolicySearchHit],
    dna: Optional[PolicyDNAResult] = None,
    influence: Optional[InfluenceResult] = None,
) -> list[ContextLine]:
    """Digest lines, each paired with the citation that backs it."""
    return _policy_lines(policies) + _timeline_lines(dna) + _influence_lines(influence)


def format_deterministic_answer(question: str, lines: list[ContextLine]) -> GroundedAnswer:
    answer = "\n".join([
        f'Here is what I found about "{question}":',
        *(text for text, _ in lines),
        CLOSING_LINE,
    ])
    return GroundedAnswer(
        answer=answer,
        citations=[citation for _, citation in lines],
        disclaimers=[FALLBACK_DISCLAIMER],
    )


def _validate_generated(payload: dict) -> GroundedAnswer:
    answer = payload.get("answer")
    citations = payload.get("citations")
    if not isinstance(answer, str) or not answer.strip():
        raise LLMResponseError("Generated answer is empty")
    if not isinstance(citations, list):
        raise LLMResponseError("Generated citations are not a list")

    disclaimers = payload.get("disclaimers")
    if not isinstance(disclaimers, list):
        disclaimers = None
    try:
        return GroundedAnswer(
            answer=answer.strip(),
            citations=citations,
            disclaimers=[d for d in disclaimers if isinstance(d, str)] if disclaimers else None,
        )
    except ValidationError as e:
        raise LLMResponseError(f"Generated citations are malformed: {e.error_count()} errors") from e


async def ground_answer(
    question: str,
    policies: list[PolicySearchHit],
    dna: Optional[PolicyDNAResult] = None,
    influence: Optional[InfluenceResult] = None,
    llm: Optional[GenerativeClient] = None,
) -> GroundedAnswer:
    """
    Compose a cited answer from search hits, version history and influence records.

    The model, when available, may only restate the digest. Any generation
    failure falls back to a deterministic bullet list whose citations line up
    one-to-one with its lines. Never raises.
    """
    if not policies:
        return GroundedAnswer(
            answer=(
                f'I could not find a bill that directly matches "{question}". Try narrowing '
                "the request with a bill number, chamber, or congress session."
            ),
            citations=[],
            disclaimers=[NO_MATCH_DISCLAIMER],
        )

    lines = build_context_lines(policies, dna, influence)
    if llm is None:
        return format_deterministic_answer(question, lines)

    prompt = build_grounded_answer_prompt(
        question,
        [text for text, _ in lines],
        [citation.model_dump() for _, citation in lines],
    )
    try:
        grounded = _validate_generated(await llm.generate_json(prompt, GROUNDED_ANSWER_SCHEMA))
    except Exception as e:
        logger.warning("Generated answer rejected, using deterministic summary: %s", e)
        return format_deterministic_answer(question, lines)

    if influence is not None and (influence.lobbying or influence.finance):
        disclaimers = list(grounded.disclaimers or [])
        if INFLUENCE_DISCLAIMER not in disclaimers:
            disclaimers.append(INFLUENCE_DISCLAIMER)
        grounded.disclaimers = disclaimers
    return grounded
