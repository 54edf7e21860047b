"""
Policy search: fetch candidate bills from Congress.gov and rank them locally.

Congress.gov's /bill listing does little relevance ranking of its own, so every
record that comes back is re-scored against the question by weighted token
overlap across title, summary, latest action, section snippets and sponsor.
"""
import logging
import re
from typing import Any, Optional

from policy_core.api.congress import CongressClient, congress_gov_url
from policy_core.api.records import (
    extract_bill_records,
    first_item,
    pick_field,
    pick_int,
    stable_id,
    unwrap_collection,
)
from policy_core.analysis.query import parse_bill_reference
from policy_core.config import load_config
from policy_core.exceptions import UpstreamError
from policy_core.models import (
    BillLocator,
    PolicyFilters,
    PolicySearchHit,
    PolicySectionHit,
    PolicySponsor,
)

logger = logging.getLogger(__name__)

FIELD_WEIGHTS: dict[str, float] = {
    "title": 3.0,
    "summary": 2.0,
    "latest_action": 1.5,
    "sections": 1.2,
    "sponsor": 1.0,
}

# Short tokens that still carry meaning on their own
HIGH_SIGNAL_TOKENS: frozenset[str] = frozenset({
    "ai", "tax", "gun", "aca", "irs", "epa", "fda", "va", "dod", "dhs",
    "ev", "usps", "nih", "nsf", "fcc", "ftc", "sec", "cbo",
})

# Question scaffolding that would otherwise count as signal
QUESTION_WORDS: frozenset[str] = frozenset({
    "what", "which", "when", "where", "about", "does", "tell", "show", "find",
    "bill", "bills", "legislation", "there", "that", "this", "with", "from",
    "have", "would", "could", "please", "any", "the", "and", "for", "are", "how",
})

BILL_REFERENCE_WORDS: frozenset[str] = frozenset({
    "hr", "s", "hres", "sres", "hjres", "sjres", "hconres", "sconres", "congress",
})

STEM_SUFFIXES: tuple[str, ...] = ("ation", "ment", "ing", "ed", "al")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_ORDINAL = re.compile(r"^\d+(st|nd|rd|th)$")

SUMMARY_SNIPPET_CHARS = 300
SECTION_SNIPPET_CHARS = 280
MAX_DECLARED_SECTIONS = 3


def tokenize(text: Optional[str]) -> list[str]:
    """Lower-case, split on non-alphanumerics, drop single characters."""
    if not text:
        return []
    return [token for token in _NON_ALNUM.sub(" ", text.lower()).split() if len(token) > 1]


def token_variants(token: str) -> set[str]:
    """The token plus crude stems (plural and common suffixes), each at least 3 chars."""
    variants = {token}
    candidates = []
    if token.endswith("ies"):
        candidates.append(token[:-3] + "y")
    if token.endswith("es"):
        candidates.append(token[:-2])
    if token.endswith("s") and not token.endswith("ss"):
        candidates.append(token[:-1])
    for suffix in STEM_SUFFIXES:
        if token.endswith(suffix):
            candidates.append(token[: -len(suffix)])
    variants.update(stem for stem in candidates if len(stem) >= 3)
    return variants


def _expanded(tokens: list[str]) -> set[str]:
    expanded: set[str] = set()
    for token in tokens:
        expanded |= token_variants(token)
    return expanded


def is_signal_token(token: str) -> bool:
    return len(token) >= 4 or token.isdigit() or token in HIGH_SIGNAL_TOKENS


def query_tokens(text: str, names_bill: bool) -> list[str]:
    tokens = []
    for token in tokenize(text):
        if token in QUESTION_WORDS:
            continue
        if names_bill and (token in BILL_REFERENCE_WORDS or _ORDINAL.match(token)):
            continue
        if token not in tokens:
            tokens.append(token)
    return tokens


def extract_sections(record: dict, bill_number: str, bill_url: Optional[str]) -> list[PolicySectionHit]:
    sections: list[PolicySectionHit] = []

    summary = pick_field(record, "bill.summary")
    if summary:
        sections.append(PolicySectionHit(
            id=f"{bill_number}-summary",
            heading=pick_field(record, "bill.summary_heading"),
            snippet=summary[:SUMMARY_SNIPPET_CHARS],
            score=0.82,
            source_uri=pick_field(record, "bill.summary_url") or bill_url,
        ))

    declared = unwrap_collection(record.get("sections") or record.get("sectionList"))
    for idx, section in enumerate(declared[:MAX_DECLARED_SECTIONS]):
        text = pick_field(section, "section.text")
        if not text:
            continue
        heading = pick_field(section, "section.heading")
        sections.append(PolicySectionHit(
            id=pick_field(section, "section.id") or stable_id(bill_number, heading, text[:80]),
            heading=heading,
            snippet=text[:SECTION_SNIPPET_CHARS],
            score=round(0.7 - 0.05 * idx, 2),
            source_uri=pick_field(section, "section.url") or bill_url,
        ))

    return sections


def map_bill_record(record: dict, filters: Optional[PolicyFilters] = None) -> Optional[PolicySearchHit]:
    """Map one reconciled bill record to an unscored search hit."""
    bill_type = (pick_field(record, "bill.type") or "").lower()
    bill_number = pick_field(record, "bill.number") or ""
    if not bill_type and not bill_number:
        return None

    congress = pick_int(record, "bill.congress") or (filters.congress if filters and filters.congress else 0)
    if congress and bill_type and bill_number:
        bill_url = congress_gov_url(congress, bill_type, bill_number)
    else:
        bill_url = pick_field(record, "bill.url")

    sponsor = None
    sponsor_record = first_item(record.get("sponsors")) or first_item(record.get("sponsor"))
    sponsor_name = pick_field(sponsor_record, "sponsor.name")
    if sponsor_name:
        sponsor = PolicySponsor(
            name=sponsor_name,
            party=pick_field(sponsor_record, "sponsor.party"),
            state=pick_field(sponsor_record, "sponsor.state"),
            bioguide_id=pick_field(sponsor_record, "sponsor.bioguide_id"),
        )

    latest_action = pick_field(record, "bill.latest_action")
    return PolicySearchHit(
        bill_id=f"{congress}-{bill_type}-{bill_number}",
        congress=congress,
        bill_type=bill_type,
        bill_number=bill_number,
        title=pick_field(record, "bill.title") or "Untitled bill",
        status=pick_field(record, "bill.status") or "Unknown",
        latest_action=latest_action,
        summary=pick_field(record, "bill.summary") or pick_field(record, "bill.description"),
        jurisdiction="federal",
        sections=extract_sections(record, bill_number, bill_url),
        sponsor=sponsor,
    )


def _has_summary(hit: PolicySearchHit) -> bool:
    return any(section.id.endswith("-summary") for section in hit.sections)


def _alias_pattern(hit: PolicySearchHit) -> Optional[re.Pattern]:
    if not hit.bill_type or not hit.bill_number:
        return None
    return re.compile(
        rf"\b{re.escape(hit.bill_type)}\s?{re.escape(hit.bill_number)}\b",
        re.IGNORECASE,
    )


def _alias_matches(hit: PolicySearchHit, reference: Optional[tuple], texts: list[str]) -> bool:
    if reference is not None:
        congress, bill_type, bill_number = reference
        if bill_type == hit.bill_type and bill_number == hit.bill_number:
            if congress is None or congress == hit.congress:
                return True
    pattern = _alias_pattern(hit)
    if pattern is None:
        return False
    for text in texts:
        plain = text.replace(".", "") if text else ""
        if plain and pattern.search(plain):
            return True
    return False


def score_hit(hit: PolicySearchHit, tokens: list[str], reference: Optional[tuple] = None) -> float:
    """
    Relevance of a hit to the query tokens, in [0, 0.99].

    score = 0.7 * weighted field coverage + 0.3 * token coverage, plus 0.25 when
    the bill's own alias appears and 0.1 when every signal token matched. A hit
    matching no signal token scores 0 unless its alias matched.
    """
    field_texts = {
        "title": hit.title,
        "summary": hit.summary,
        "latest_action": hit.latest_action,
        "sections": " ".join(f"{s.heading or ''} {s.snippet}" for s in hit.sections),
        "sponsor": hit.sponsor.name if hit.sponsor else None,
    }
    field_tokens = {
        name: _expanded(tokenize(text))
        for name, text in field_texts.items()
        if text and text.strip()
    }

    alias_hit = _alias_matches(hit, reference, [hit.title, hit.summary or "", hit.latest_action or ""])

    matched_tokens = set()
    matched_weight = 0.0
    for name, vocabulary in field_tokens.items():
        field_matched = False
        for token in tokens:
            if token_variants(token) & vocabulary:
                matched_tokens.add(token)
                field_matched = True
        if field_matched:
            matched_weight += FIELD_WEIGHTS[name]

    total_weight = sum(FIELD_WEIGHTS[name] for name in field_tokens)
    weighted = matched_weight / total_weight if total_weight else 0.0
    coverage = len(matched_tokens) / len(tokens) if tokens else 0.0
    score = 0.7 * weighted + 0.3 * coverage

    signal = [token for token in tokens if is_signal_token(token)]
    matched_signal = [token for token in signal if token in matched_tokens]
    if not matched_signal and not alias_hit:
        return 0.0
    if alias_hit:
        score += 0.25
    if signal and len(matched_signal) == len(signal):
        score += 0.1
    return round(min(score, 0.99), 4)


def rank_heuristic(rank: int, total: int, has_summary: bool) -> int:
    bonus = max(0, 20 - rank * 5)
    return min(99, 70 + bonus + (8 if has_summary else 0) + (2 if total > 3 else 0))


def compute_confidence(score: float, rank: int, total: int, has_summary: bool) -> int:
    """User-facing 0-99 confidence: the larger of relevance and the rank heuristic, floored at 35."""
    confidence = max(round(score * 100), rank_heuristic(rank, total, has_summary))
    return max(35, min(99, confidence))


async def _fetch_bill_hit(
    client: CongressClient,
    locator: BillLocator,
    filters: Optional[PolicyFilters],
) -> list[PolicySearchHit]:
    try:
        payload = await client.get_bill(locator.congress, locator.bill_type, locator.bill_number)
    except UpstreamError as e:
        logger.warning("Bill detail lookup failed for %s: %s", locator.bill_id, e)
        return []

    records = extract_bill_records(payload)
    if not records:
        return []
    record = {"congress": locator.congress, "type": locator.bill_type, "number": locator.bill_number, **records[0]}
    hit = map_bill_record(record, filters)
    if hit is None:
        return []
    hit.relevance = 0.99
    hit.confidence = max(35, rank_heuristic(0, 1, _has_summary(hit)))
    return [hit]


async def _search(
    client: CongressClient,
    query: str,
    filters: Optional[PolicyFilters],
    config: dict[str, Any],
) -> list[PolicySearchHit]:
    filters = filters or PolicyFilters()
    keywords = [k for k in (filters.keywords or []) if isinstance(k, str) and k.strip()]
    search_text = " ".join([query.strip(), *keywords]).strip()

    reference = parse_bill_reference(query)
    if filters.bill_id:
        return await _fetch_bill_hit(client, BillLocator.parse(filters.bill_id), filters)
    if reference is not None and reference[0] is not None:
        congress, bill_type, bill_number = reference
        locator = BillLocator(congress=congress, bill_type=bill_type, bill_number=bill_number)
        return await _fetch_bill_hit(client, locator, filters)

    tokens = query_tokens(search_text, names_bill=reference is not None)
    if reference is None and not any(is_signal_token(token) for token in tokens):
        logger.info("Query %r has no searchable terms; skipping Congress.gov search", query)
        return []

    max_records = int(config.get("max_records", 60))
    date_range = filters.date_range
    try:
        pages = await client.search_bills(
            search_text,
            congress=filters.congress,
            date_from=date_range.date_from if date_range else None,
            date_to=date_range.date_to if date_range else None,
            limit=int(config.get("page_size", 20)),
            max_pages=int(config.get("max_pages", 3)),
        )
    except UpstreamError as e:
        logger.warning("Congress.gov search failed for %r: %s", query, e)
        return []

    hits: dict[str, PolicySearchHit] = {}
    records_seen = 0
    for page in pages:
        for record in extract_bill_records(page):
            if records_seen >= max_records:
                break
            records_seen += 1
            hit = map_bill_record(record, filters)
            if hit is not None and hit.bill_id not in hits:
                hits[hit.bill_id] = hit

    min_relevance = float(config.get("min_relevance", 0.2))
    scored = []
    for hit in hits.values():
        hit.relevance = score_hit(hit, tokens, reference)
        if hit.relevance >= min_relevance:
            scored.append(hit)

    # sorted() is stable, so equal scores keep upstream order
    ranked = sorted(scored, key=lambda h: h.relevance, reverse=True)[: int(config.get("max_hits", 5))]
    for rank, hit in enumerate(ranked):
        hit.confidence = compute_confidence(hit.relevance, rank, len(ranked), _has_summary(hit))

    logger.info("Policy search for %r: %d records, %d ranked hits", query, records_seen, len(ranked))
    return ranked


async def search_policies(
    query: str,
    filters: Optional[PolicyFilters] = None,
    client: Optional[CongressClient] = None,
    settings: Optional[dict[str, Any]] = None,
) -> list[PolicySearchHit]:
    """
    Search Congress.gov and return ranked, de-duplicated policy hits.

    Args:
        query: Natural-language question or normalized bill reference
        filters: Optional congress, date range, keywords or explicit bill id
        client: Congress.gov client (one is opened from config when omitted)
        settings: Full configuration dict (load_config() when omitted)

    Returns:
        Up to search.max_hits hits sorted by relevance. Upstream failures yield
        whatever pages arrived, possibly nothing.

    Raises:
        InvalidBillIdError: filters.bill_id is malformed
    """
    config = settings if settings is not None else load_config()
    search_config = config.get("search", {})
    if client is not None:
        return await _search(client, query, filters, search_config)
    async with CongressClient.from_config(config) as owned:
        return await _search(owned, query, filters, search_config)
