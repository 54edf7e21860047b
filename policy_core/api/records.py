"""
Tolerant decoders for heterogeneous upstream JSON.

Congress.gov, Senate LDA and OpenFEC each wrap collections differently and
rename fields between endpoints. Instead of ad hoc optional chaining, every
logical value is looked up through an ordered list of candidate keys kept in
FIELD_ALIASES. Paths are dotted; a list met along the way resolves to its first
object, so "sponsors.fullName" reads the first sponsor's full name.

All functions here are pure: same payload in, same records out.
"""
import hashlib
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

COLLECTION_KEYS: tuple[str, ...] = ("item", "items", "results")
BILL_COLLECTION_KEYS: tuple[str, ...] = ("bills", "results", "data", "items")

# Congress.gov detail payloads reference sub-collections as {"count": n, "url": ...}
STUB_KEYS: frozenset[str] = frozenset({"count", "url"})

# Keys tried, in order, when a scalar is wanted but a dict was found
NESTED_SCALAR_KEYS: tuple[str, ...] = (
    "name", "fullName", "text", "title", "label", "description", "url", "code",
)

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    # Bills (search results and detail)
    "bill.congress": ("congress", "congressNumber", "congress_num"),
    "bill.type": ("billType", "type", "bill_type"),
    "bill.number": ("billNumber", "number", "bill_num"),
    "bill.title": ("title", "shortTitle", "originChamberTitle", "officialTitle", "titles.title"),
    "bill.status": ("currentStatus", "status", "latestAction.text"),
    "bill.latest_action": ("latestAction.text", "actions.text"),
    "bill.summary": ("summary.text", "summaries.text", "summaries.item.text", "summary"),
    "bill.summary_heading": ("summary.title", "summaries.title", "summary.actionDesc", "summaries.actionDesc"),
    "bill.summary_url": ("summary.url", "summaries.url"),
    "bill.description": ("titleDescription", "latestAction.text"),
    "bill.url": ("url",),
    "bill.introduced_date": ("introducedDate", "introduced_date"),
    "bill.update_date": ("updateDate", "latestAction.actionDate"),
    # Sponsors (bills and amendments)
    "sponsor.name": ("fullName", "name", "sponsorName"),
    "sponsor.party": ("party",),
    "sponsor.state": ("state",),
    "sponsor.bioguide_id": ("bioguideId", "bioguide_id", "bioguide"),
    # Declared sections
    "section.id": ("sectionId", "identifier"),
    "section.heading": ("heading", "title", "sectionTitle"),
    "section.text": ("text", "sectionText", "summary", "snippet"),
    "section.url": ("url", "citation", "source"),
    # Text versions
    "version.id": ("versionCode", "versionNumber", "version", "id", "versionName", "type.code"),
    "version.label": ("versionName", "versionCode", "title", "label", "type.type", "type.description", "type"),
    "version.type": ("type", "versionCode", "versionName"),
    "version.date": ("date", "issuedDate", "updateDate", "dateIssued", "versionDate"),
    "version.format_type": ("type", "format", "fileType"),
    "version.download": ("download", "download.url", "link", "url", "content.url"),
    # Actions
    "action.type": ("type", "actionType", "type.label", "actionType.label"),
    "action.date": ("actionDate", "date", "recordedAt", "datetime"),
    "action.actor": ("actor", "by", "committee", "committees.name", "chamber", "sourceSystem.name"),
    "action.description": ("text", "description", "actionCode.text"),
    "action.link": ("link", "url", "sourceLink", "source.url"),
    # Amendments
    "amendment.number": ("number", "amendmentNumber", "id", "version", "versionName"),
    "amendment.heading": ("title", "purpose", "description"),
    "amendment.author": (
        "sponsor.fullName", "sponsors.fullName", "sponsor.name", "sponsors.name",
        "sponsor.sponsorName", "sponsor",
    ),
    "amendment.action_type": ("action", "latestAction.text", "latestAction.action"),
    "amendment.action_date": ("submittedDate", "date", "latestAction.actionDate", "latestAction.date"),
    "amendment.summary": ("description", "purpose", "text"),
    "amendment.url": ("url", "link", "origin", "latestAction.link"),
    # Senate LDA filings
    "lobbying.id": ("id", "filing_uuid", "filing_id", "registration_number"),
    "lobbying.client": (
        "client_name", "client.name", "client.client_name", "client.organization_name", "client",
    ),
    "lobbying.registrant": (
        "registrant_name", "registrant.name", "registrant.organization_name", "registrant",
    ),
    "lobbying.amount": (
        "specific_issues.amount", "amount", "income_amount", "income", "expenses",
    ),
    "lobbying.issue": (
        "specific_issue", "specific_issues.issue", "specific_issues.description",
        "lobbying_activities.description", "general_issue_area",
        "lobbying_activities.general_issue_code_display",
    ),
    "lobbying.period": ("period", "report_period", "filing_period_display", "effective_date"),
    "lobbying.year": ("filing_year", "year"),
    "lobbying.quarter": ("quarter", "filing_period"),
    "lobbying.url": (
        "url", "pdf_url", "filing_url", "filing_document_url", "document_url", "document.url",
    ),
    # OpenFEC candidates and totals
    "fec.candidate_id": ("candidate_id", "id"),
    "fec.committee_name": ("committee_name", "candidate_name", "name"),
    "fec.receipts": ("receipts", "total_receipts"),
    "fec.cycle": ("cycle", "candidate_election_year"),
}


def _is_record(value: Any) -> bool:
    return isinstance(value, dict)


def _is_stub(value: dict) -> bool:
    return bool(value) and set(value) <= STUB_KEYS


def _scalar(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, (int, float)):
        return str(value)
    return None


def unwrap_collection(value: Any) -> list[dict]:
    """
    Flatten any upstream collection shape into a list of records.

    Accepts None, a bare object, an array, or an object wrapping item/items/results
    (whose value may itself be a single object). Non-dict entries are dropped.
    """
    if not value:
        return []
    if isinstance(value, list):
        return [entry for entry in value if _is_record(entry)]
    if not _is_record(value):
        return []
    for key in COLLECTION_KEYS:
        if key in value:
            inner = value[key]
            if isinstance(inner, list):
                return [entry for entry in inner if _is_record(entry)]
            if _is_record(inner):
                return [inner]
            return []
    if _is_stub(value):
        return []
    return [value]


def first_item(value: Any) -> Optional[dict]:
    """First dict in an array, or the dict itself."""
    if isinstance(value, list):
        return next((entry for entry in value if _is_record(entry)), None)
    if _is_record(value):
        return value
    return None


def _dedupe(records: Iterable[dict]) -> list[dict]:
    unique: list[dict] = []
    for record in records:
        if not any(record is seen or record == seen for seen in unique):
            unique.append(record)
    return unique


def extract_bill_records(payload: Any) -> list[dict]:
    """
    Pull bill records out of a search or detail payload.

    Looks under bills/results/data/items, replaces {bill: {...}} wrappers with the
    nested bill, and falls back to a top-level "bill" object.
    """
    if not _is_record(payload):
        return []

    flattened: list[dict] = []
    for key in BILL_COLLECTION_KEYS:
        if key not in payload:
            continue
        for entry in unwrap_collection(payload[key]):
            nested = first_item(entry.get("bill"))
            flattened.append(nested if nested is not None else entry)

    if not flattened and _is_record(payload.get("bill")):
        flattened.append(payload["bill"])

    return _dedupe(flattened)


def collect_objects(*sources: Any) -> list[dict]:
    """Flatten several sources into one de-duplicated record list, order preserved."""
    results: list[dict] = []
    for source in sources:
        results.extend(unwrap_collection(source))
    return _dedupe(results)


def resolve_path(record: Any, path: str) -> Any:
    current = record
    for segment in path.split("."):
        if isinstance(current, list):
            current = first_item(current)
        if not _is_record(current):
            return None
        current = current.get(segment)
    return current


def pick_string(*values: Any) -> Optional[str]:
    """First scalar among values, looking one level into dicts."""
    for value in values:
        direct = _scalar(value)
        if direct is not None:
            return direct
        record = first_item(value)
        if record is None:
            continue
        for key in NESTED_SCALAR_KEYS:
            nested = _scalar(record.get(key))
            if nested is not None:
                return nested
    return None


def pick_field(record: Any, name: str) -> Optional[str]:
    """
    Look up a logical field through its FIELD_ALIASES entry.

    Args:
        record: Upstream record
        name: Key into FIELD_ALIASES, e.g. "bill.title"

    Returns:
        First present non-empty scalar (numbers stringified), or None
    """
    if record is None:
        return None
    return pick_string(*(resolve_path(record, path) for path in FIELD_ALIASES[name]))


def pick_number(record: Any, name: str) -> Optional[float]:
    raw = pick_field(record, name)
    if raw is None:
        return None
    try:
        return float(raw.replace(",", "").replace("$", ""))
    except ValueError:
        return None


def pick_int(record: Any, name: str) -> Optional[int]:
    number = pick_number(record, name)
    return int(number) if number is not None else None


def stable_id(*parts: Any, length: int = 12) -> str:
    """Deterministic short SHA-256 id for records the upstream left without one."""
    joined = "|".join("" if part is None else str(part) for part in parts)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()[:length]


def to_timestamp(value: Optional[str]) -> float:
    """POSIX timestamp for an upstream date string; 0 when missing or unparseable."""
    if not value:
        return 0.0
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.strptime(text[:10], "%Y-%m-%d")
        except ValueError:
            return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()
