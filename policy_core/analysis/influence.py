"""
Influence lookup: Senate LDA lobbying filings and OpenFEC campaign totals
related to a bill and its sponsors.

Both registries are searched by free text, so results are best-effort
associations, not verified links. Lobbying and finance run concurrently and a
failure on either side becomes a note rather than an error.
"""
import asyncio
import logging
import re
from contextlib import AsyncExitStack
from typing import Any, Iterable, Optional, Union

from policy_core.api.fec import FEC_TOTALS_DOCS_URL, FecClient, candidate_page_url
from policy_core.api.lda import LdaClient
from policy_core.api.records import pick_field, pick_int, pick_number, stable_id, unwrap_collection
from policy_core.config import load_config
from policy_core.exceptions import UpstreamError
from policy_core.models import (
    DateRange,
    FinanceRecord,
    InfluenceMetadata,
    InfluenceResult,
    LobbyingRecord,
    PolicySponsor,
)

logger = logging.getLogger(__name__)

SponsorLike = Union[str, PolicySponsor, dict]

KEYWORD_PREFIX_WORDS = 4

_HONORIFIC_RE = re.compile(r"^(?:rep|sen|senator|representative|del|delegate|hon|mr|mrs|ms|dr)\.?\s+", re.IGNORECASE)
_BRACKETED_RE = re.compile(r"\s*[\[(][^\])]*[\])]")


def bill_alias(bill_id: str) -> str:
    """ "118-hr-1234" -> "HR 1234". Unparseable ids come back with dashes as spaces."""
    parts = [part for part in (bill_id or "").split("-") if part]
    if len(parts) >= 3:
        return f"{parts[1].upper()} {'-'.join(parts[2:])}"
    return " ".join(parts)


def build_search_terms(bill_id: str, keywords: Optional[Iterable[str]], max_terms: int = 5) -> list[str]:
    """Bill alias first, then each keyword phrase and its 4-word prefix, case-insensitively unique."""
    candidates = [bill_alias(bill_id)]
    for phrase in keywords or []:
        if not isinstance(phrase, str):
            continue
        words = phrase.split()
        if not words:
            continue
        candidates.append(" ".join(words))
        if len(words) > KEYWORD_PREFIX_WORDS:
            candidates.append(" ".join(words[:KEYWORD_PREFIX_WORDS]))

    terms: list[str] = []
    seen: set[str] = set()
    for term in candidates:
        key = term.lower()
        if term and key not in seen:
            seen.add(key)
            terms.append(term)
    return terms[:max_terms]


def sponsor_name_variants(name: str) -> list[str]:
    """
    Candidate spellings to try against FEC's candidate search.

    "Rep. Smith, John [R-TX-1]" -> ["Smith, John", "John Smith", "Smith John", "Smith"]
    """
    cleaned = _BRACKETED_RE.sub("", name or "")
    cleaned = _HONORIFIC_RE.sub("", cleaned.strip()).strip()
    if not cleaned:
        return []

    variants = [cleaned]
    reordered = cleaned
    if "," in cleaned:
        last, _, first = cleaned.partition(",")
        reordered = f"{first.strip()} {last.strip()}".strip()
        variants.append(reordered)
        variants.append(" ".join(cleaned.replace(",", " ").split()))

    words = reordered.split()
    if len(words) > 2:
        variants.append(" ".join(words[:2]))
    if len(words) > 1:
        variants.append(words[-1])

    unique: list[str] = []
    for variant in variants:
        if variant and variant.lower() not in (u.lower() for u in unique):
            unique.append(variant)
    return unique


def _sponsor_name(sponsor: SponsorLike) -> Optional[str]:
    if isinstance(sponsor, str):
        return sponsor.strip() or None
    if isinstance(sponsor, PolicySponsor):
        return sponsor.name or None
    if isinstance(sponsor, dict):
        return pick_field(sponsor, "sponsor.name")
    return None


def map_lobbying_filing(filing: dict) -> LobbyingRecord:
    client = pick_field(filing, "lobbying.client") or "Unknown client"
    registrant = pick_field(filing, "lobbying.registrant") or "Unknown registrant"
    issue = pick_field(filing, "lobbying.issue")

    period = pick_field(filing, "lobbying.period")
    if not period:
        year = pick_field(filing, "lobbying.year")
        quarter = pick_field(filing, "lobbying.quarter")
        if year:
            period = f"{year} Q{quarter}" if quarter else year

    return LobbyingRecord(
        id=pick_field(filing, "lobbying.id") or stable_id(client, registrant, period, issue),
        client=client,
        registrant=registrant,
        amount=pick_number(filing, "lobbying.amount"),
        issue=issue,
        period=period,
        source_url=pick_field(filing, "lobbying.url"),
    )


async def fetch_lobbying(
    lda: LdaClient,
    terms: list[str],
    period: Optional[DateRange],
    max_records: int = 10,
    page_size: int = 10,
) -> tuple[list[LobbyingRecord], list[str]]:
    records: dict[str, LobbyingRecord] = {}
    notes: list[str] = []
    for term in terms:
        if len(records) >= max_records:
            break
        try:
            payload = await lda.search_filings(
                term,
                posted_after=period.date_from if period else None,
                posted_before=period.date_to if period else None,
                page_size=page_size,
            )
        except UpstreamError as e:
            logger.warning("Senate LDA lookup failed for %r: %s", term, e)
            notes.append(f"Senate LDA lookup failed: {e}")
            break

        filings = unwrap_collection(payload.get("results") if isinstance(payload, dict) else payload)
        for filing in filings:
            record = map_lobbying_filing(filing)
            if record.id not in records:
                records[record.id] = record
            if len(records) >= max_records:
                break

    return list(records.values()), notes


async def _match_candidate(fec: FecClient, name: str, notes: list[str]) -> Optional[dict]:
    for variant in sponsor_name_variants(name):
        try:
            payload = await fec.search_candidates(variant)
        except UpstreamError as e:
            logger.warning("FEC candidate search failed for %r: %s", variant, e)
            notes.append(f"FEC candidate search failed for '{variant}': {e}")
            continue
        for candidate in unwrap_collection(payload.get("results") if isinstance(payload, dict) else None):
            if pick_field(candidate, "fec.candidate_id"):
                return candidate
    return None


async def fetch_finance(
    fec: FecClient,
    sponsor_names: list[str],
) -> tuple[list[FinanceRecord], list[str]]:
    records: dict[str, FinanceRecord] = {}
    notes: list[str] = []
    for name in sponsor_names:
        try:
            candidate = await _match_candidate(fec, name, notes)
            if candidate is None:
                notes.append(f"No FEC candidate matched sponsor '{name}'.")
                continue
            candidate_id = pick_field(candidate, "fec.candidate_id")
            if candidate_id in records:
                continue
            payload = await fec.candidate_totals(candidate_id)
        except UpstreamError as e:
            logger.warning("FEC lookup failed for %r: %s", name, e)
            notes.append(f"FEC lookup failed for '{name}': {e}")
            continue

        totals = unwrap_collection(payload.get("results") if isinstance(payload, dict) else None)
        if not totals:
            notes.append(f"No FEC totals on file for {candidate_id} ('{name}').")
            continue
        latest = totals[0]
        cycle = pick_int(latest, "fec.cycle")
        records[candidate_id] = FinanceRecord(
            candidate_id=candidate_id,
            committee_name=(
                pick_field(latest, "fec.committee_name")
                or pick_field(candidate, "fec.committee_name")
                or candidate_id
            ),
            total_receipts=pick_number(latest, "fec.receipts"),
            cycle=cycle,
            source_url=candidate_page_url(candidate_id, cycle),
        )

    return list(records.values()), notes


def _outcome(result: Any, label: str) -> tuple[list, list[str]]:
    if isinstance(result, Exception):
        logger.error("%s lookup raised %s: %s", label, type(result).__name__, result)
        return [], [f"{label} lookup failed: {result}"]
    return result


async def _lookup(
    bill_id: str,
    keywords: Optional[Iterable[str]],
    sponsors: Optional[Iterable[SponsorLike]],
    period: Optional[DateRange],
    lda: LdaClient,
    fec: FecClient,
    config: dict[str, Any],
) -> InfluenceResult:
    terms = build_search_terms(bill_id, keywords, int(config.get("max_terms", 5)))

    sponsor_names: list[str] = []
    for sponsor in sponsors or []:
        name = _sponsor_name(sponsor)
        if name and name not in sponsor_names:
            sponsor_names.append(name)

    lobbying_result, finance_result = await asyncio.gather(
        fetch_lobbying(
            lda,
            terms,
            period,
            max_records=int(config.get("max_lobbying", 10)),
            page_size=int(config.get("page_size", 10)),
        ),
        fetch_finance(fec, sponsor_names),
        return_exceptions=True,
    )
    lobbying, lobbying_notes = _outcome(lobbying_result, "Senate LDA")
    finance, finance_notes = _outcome(finance_result, "FEC")

    notes: list[str] = []
    if not fec.has_key:
        notes.append("FEC_API_KEY not configured; using DEMO_KEY with limited rate.")
    if not lda.has_key:
        notes.append("LDA_API_KEY not configured (optional); Senate LDA requests are anonymous.")
    notes.extend(lobbying_notes)
    if not lobbying:
        notes.append("No recent Senate LDA filings matched the search terms.")
    if not sponsor_names:
        notes.append("No bill sponsors supplied; campaign finance lookup skipped.")
    else:
        notes.extend(finance_notes)
        if not finance:
            notes.append("No FEC finance totals were matched to bill sponsors.")

    logger.info(
        "Influence for %s: %d lobbying filings, %d finance records", bill_id, len(lobbying), len(finance)
    )
    return InfluenceResult(
        lobbying=lobbying,
        finance=finance,
        metadata=InfluenceMetadata(
            notes=notes,
            links={"lda": lda.filings_url, "fec": FEC_TOTALS_DOCS_URL},
            search_terms=terms,
        ),
    )


async def lookup_influence(
    bill_id: str,
    keywords: Optional[Iterable[str]] = None,
    sponsors: Optional[Iterable[SponsorLike]] = None,
    period: Optional[Union[DateRange, dict]] = None,
    lda_client: Optional[LdaClient] = None,
    fec_client: Optional[FecClient] = None,
    settings: Optional[dict[str, Any]] = None,
) -> InfluenceResult:
    """
    Collect lobbying filings and sponsor campaign totals for a bill.

    Args:
        bill_id: Composite bill id; its alias ("HR 1234") is the first search term
        keywords: Topic phrases (normalized query, bill title)
        sponsors: Sponsor names, PolicySponsor objects or {"name": ...} dicts
        period: Optional {from, to} window for LDA posting dates
        lda_client: Senate LDA client (opened from config when omitted)
        fec_client: OpenFEC client (opened from config when omitted)
        settings: Full configuration dict (load_config() when omitted)

    Returns:
        InfluenceResult; never raises for upstream failures
    """
    config = settings if settings is not None else load_config()
    if isinstance(period, dict):
        period = DateRange.model_validate(period)

    async with AsyncExitStack() as stack:
        if lda_client is None:
            lda_client = await stack.enter_async_context(LdaClient.from_config(config))
        if fec_client is None:
            fec_client = await stack.enter_async_context(FecClient.from_config(config))
        return await _lookup(
            bill_id, keywords, sponsors, period, lda_client, fec_client, config.get("influence", {})
        )
