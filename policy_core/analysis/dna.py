"""
Policy DNA: a bill's version timeline, clause attribution and action history.

The bill detail is required; the four sub-collections (text versions, actions,
amendments, sections) are fetched concurrently and each degrades to empty on
failure. Version texts are then downloaded one after another and diffed
against their predecessor.
"""
import asyncio
import logging
from typing import Any, Callable, Optional

from policy_core.api.congress import CongressClient, congress_gov_url
from policy_core.api.records import (
    extract_bill_records,
    first_item,
    pick_field,
    pick_int,
    stable_id,
    to_timestamp,
    unwrap_collection,
)
from policy_core.analysis.changes import compute_change_summary
from policy_core.config import load_config
from policy_core.exceptions import UpstreamError
from policy_core.models import (
    BillLocator,
    ChangeSummary,
    PolicyActionEvent,
    PolicyBlameEntry,
    PolicyDNAResult,
    PolicyMetadata,
    PolicySponsor,
    PolicyTimelineEntry,
)

logger = logging.getLogger(__name__)

# Sub-collection endpoint -> keys holding records in its payload and inline in the detail
COLLECTIONS: dict[str, tuple[str, ...]] = {
    "text": ("textVersions", "versions", "billVersions", "billTextVersions"),
    "actions": ("actions",),
    "amendments": ("amendments",),
    "sections": ("sections", "sectionList"),
}

MAX_AMENDMENT_BLAME = 10
MAX_SECTION_BLAME = 10
SYNTHETIC_BLAME_ACTIONS = 3


def _records_from(payload: Any, keys: tuple[str, ...]) -> list[dict]:
    if not isinstance(payload, dict):
        return []
    records: list[dict] = []
    for key in keys:
        records.extend(unwrap_collection(payload.get(key)))
    return records


def _merge_unique(records: list[dict], key_fn: Callable[[dict], str]) -> list[dict]:
    seen: set[str] = set()
    merged = []
    for record in records:
        key = key_fn(record)
        if key in seen:
            continue
        seen.add(key)
        merged.append(record)
    return merged


def _version_key(version: dict) -> str:
    code = pick_field(version, "version.id")
    if code:
        return code
    return f"{pick_field(version, 'version.date') or ''}|{pick_field(version, 'version.type') or ''}"


def _action_key(action: dict) -> str:
    return f"{pick_field(action, 'action.date') or ''}|{stable_id(pick_field(action, 'action.description'))}"


def _amendment_key(amendment: dict) -> str:
    return pick_field(amendment, "amendment.number") or stable_id(
        pick_field(amendment, "amendment.heading"),
        pick_field(amendment, "amendment.action_date"),
    )


def _section_key(section: dict) -> str:
    return pick_field(section, "section.id") or stable_id(
        pick_field(section, "section.heading"),
        (pick_field(section, "section.text") or "")[:80],
    )


def _format_type(fmt: dict) -> str:
    return (pick_field(fmt, "version.format_type") or "").lower()


def extract_version_url(version: dict) -> Optional[str]:
    """
    Best download link for a text version: XML/USLM, then HTML/TXT, then any
    raw download/link/url.
    """
    download = version.get("download")
    formats = (
        unwrap_collection(version.get("formats"))
        + unwrap_collection(version.get("urls"))
        + (unwrap_collection(download.get("formats")) if isinstance(download, dict) else [])
    )
    formats = [f for f in formats if isinstance(f.get("url"), str) and f["url"]]

    for fmt in formats:
        kind = _format_type(fmt)
        if "xml" in kind or "uslm" in kind:
            return fmt["url"]
    for fmt in formats:
        kind = _format_type(fmt)
        if "html" in kind or "txt" in kind or "text" in kind:
            return fmt["url"]

    return pick_field(version, "version.download")


async def _download_text(client: CongressClient, url: Optional[str]) -> str:
    if not url:
        return ""
    try:
        return await client.get_text(url)
    except UpstreamError as e:
        logger.warning("Could not download bill text from %s: %s", url, e)
        return ""


async def build_timeline(client: CongressClient, versions: list[dict]) -> list[PolicyTimelineEntry]:
    """
    Diff each version against the last version whose text was retrieved.

    A version whose download fails keeps an all-zero change summary and does
    not become the baseline for the next one.
    """
    ordered = sorted(versions, key=lambda v: to_timestamp(pick_field(v, "version.date")))

    timeline: list[PolicyTimelineEntry] = []
    previous_text = ""
    for idx, version in enumerate(ordered):
        url = extract_version_url(version)
        text = await _download_text(client, url)
        if text.strip():
            change_summary = compute_change_summary(previous_text, text)
            previous_text = text
        else:
            change_summary = ChangeSummary()

        timeline.append(PolicyTimelineEntry(
            version_id=pick_field(version, "version.id") or f"v{idx}",
            label=pick_field(version, "version.label") or f"Version {idx + 1}",
            issued_on=pick_field(version, "version.date"),
            change_summary=change_summary,
            source_uri=url,
        ))
    return timeline


def map_actions(actions: list[dict], limit: int = 25) -> list[PolicyActionEvent]:
    return [
        PolicyActionEvent(
            type=pick_field(action, "action.type") or "action",
            date=pick_field(action, "action.date"),
            actor=pick_field(action, "action.actor"),
            description=pick_field(action, "action.description"),
            link=pick_field(action, "action.link"),
        )
        for action in actions[:limit]
    ]


def _sponsor_from(bill: dict) -> Optional[PolicySponsor]:
    record = first_item(bill.get("sponsors")) or first_item(bill.get("sponsor"))
    name = pick_field(record, "sponsor.name")
    if not name:
        return None
    return PolicySponsor(
        name=name,
        party=pick_field(record, "sponsor.party"),
        state=pick_field(record, "sponsor.state"),
        bioguide_id=pick_field(record, "sponsor.bioguide_id"),
    )


def build_metadata(bill: dict, locator: BillLocator) -> PolicyMetadata:
    return PolicyMetadata(
        title=pick_field(bill, "bill.title"),
        summary=pick_field(bill, "bill.summary"),
        sponsor=_sponsor_from(bill),
        congress=locator.congress or pick_int(bill, "bill.congress"),
        bill_type=locator.bill_type,
        bill_number=locator.bill_number,
        introduced_date=pick_field(bill, "bill.introduced_date"),
    )


def _amendment_blame(amendments: list[dict]) -> list[PolicyBlameEntry]:
    entries = []
    for amendment in amendments[:MAX_AMENDMENT_BLAME]:
        entries.append(PolicyBlameEntry(
            section_id=_amendment_key(amendment),
            heading=pick_field(amendment, "amendment.heading"),
            author=pick_field(amendment, "amendment.author"),
            action_type=pick_field(amendment, "amendment.action_type"),
            action_date=pick_field(amendment, "amendment.action_date"),
            summary=pick_field(amendment, "amendment.summary"),
            source_uri=pick_field(amendment, "amendment.url"),
        ))
    return entries


def _section_blame(sections: list[dict], author: Optional[str], bill_url: str) -> list[PolicyBlameEntry]:
    entries = []
    for section in sections[:MAX_SECTION_BLAME]:
        text = pick_field(section, "section.text")
        entries.append(PolicyBlameEntry(
            section_id=_section_key(section),
            heading=pick_field(section, "section.heading"),
            author=author,
            action_type="Section",
            summary=text[:280] if text else None,
            source_uri=pick_field(section, "section.url") or bill_url,
        ))
    return entries


def _timeline_blame(timeline: list[PolicyTimelineEntry], author: Optional[str]) -> list[PolicyBlameEntry]:
    entries = []
    for idx, entry in enumerate(timeline):
        change = entry.change_summary or ChangeSummary()
        entries.append(PolicyBlameEntry(
            section_id=entry.version_id,
            heading=entry.label,
            author=author if idx == 0 else None,
            action_type="Introduced" if idx == 0 else "Revision",
            action_date=entry.issued_on,
            summary=f"{change.added} words added, {change.removed} removed",
            source_uri=entry.source_uri,
        ))
    return entries


def _action_blame(actions: list[PolicyActionEvent]) -> list[PolicyBlameEntry]:
    return [
        PolicyBlameEntry(
            section_id=f"action-{stable_id(action.date, action.description)}",
            heading=action.type,
            author=action.actor,
            action_type=action.type,
            action_date=action.date,
            summary=action.description,
            source_uri=action.link,
        )
        for action in actions[:SYNTHETIC_BLAME_ACTIONS]
    ]


def build_blame(
    amendments: list[dict],
    sections: list[dict],
    timeline: list[PolicyTimelineEntry],
    actions: list[PolicyActionEvent],
    sponsor_name: Optional[str],
    bill_url: str,
    max_blame: int = 20,
) -> list[PolicyBlameEntry]:
    """Merge attribution signals, deduped on (section_id, heading, action_date)."""
    candidates = (
        _amendment_blame(amendments)
        + _section_blame(sections, sponsor_name, bill_url)
        + _timeline_blame(timeline, sponsor_name)
    )

    seen: set[tuple] = set()
    blame: list[PolicyBlameEntry] = []
    for entry in candidates:
        key = (entry.section_id, entry.heading, entry.action_date)
        if key in seen:
            continue
        seen.add(key)
        blame.append(entry)
        if len(blame) >= max_blame:
            break

    if not blame:
        blame = _action_blame(actions)
    return blame


async def _fetch_collection(
    client: CongressClient,
    locator: BillLocator,
    collection: str,
    max_pages: int,
) -> list[dict]:
    try:
        pages = await client.get_bill_collection(
            locator.congress, locator.bill_type, locator.bill_number, collection, max_pages=max_pages
        )
    except UpstreamError as e:
        logger.warning("Skipping %s for %s: %s", collection, locator.bill_id, e)
        return []
    records: list[dict] = []
    for page in pages:
        records.extend(_records_from(page, COLLECTIONS[collection]))
    return records


async def _build(client: CongressClient, locator: BillLocator, config: dict[str, Any]) -> PolicyDNAResult:
    max_pages = int(config.get("max_pages", 3))

    payload = await client.get_bill(locator.congress, locator.bill_type, locator.bill_number)
    records = extract_bill_records(payload)
    bill = records[0] if records else (payload if isinstance(payload, dict) else {})

    versions, actions, amendments, sections = await asyncio.gather(*(
        _fetch_collection(client, locator, name, max_pages) for name in COLLECTIONS
    ))

    versions = _merge_unique(versions + _records_from(bill, COLLECTIONS["text"]), _version_key)
    actions = _merge_unique(actions + _records_from(bill, COLLECTIONS["actions"]), _action_key)
    amendments = _merge_unique(amendments + _records_from(bill, COLLECTIONS["amendments"]), _amendment_key)
    sections = _merge_unique(sections + _records_from(bill, COLLECTIONS["sections"]), _section_key)

    metadata = build_metadata(bill, locator)
    bill_url = congress_gov_url(locator.congress, locator.bill_type, locator.bill_number)

    timeline = await build_timeline(client, versions)
    action_events = map_actions(actions, int(config.get("max_actions", 25)))
    # Blame sees only fetched versions so the action fallback applies to text-less bills
    blame = build_blame(
        amendments,
        sections,
        timeline,
        action_events,
        metadata.sponsor.name if metadata.sponsor else None,
        bill_url,
        max_blame=int(config.get("max_blame", 20)),
    )

    if not timeline:
        timeline = [PolicyTimelineEntry(
            version_id="introduced",
            label="Introduced",
            issued_on=metadata.introduced_date,
            change_summary=ChangeSummary(),
            source_uri=bill_url,
        )]

    logger.info(
        "Policy DNA for %s: %d versions, %d actions, %d amendments, %d blame entries",
        locator.bill_id, len(timeline), len(action_events), len(amendments), len(blame),
    )
    return PolicyDNAResult(
        bill_id=locator.bill_id,
        timeline=timeline,
        blame=blame,
        actions=action_events,
        metadata=metadata,
    )


async def build_policy_dna(
    bill_id: str,
    client: Optional[CongressClient] = None,
    settings: Optional[dict[str, Any]] = None,
) -> PolicyDNAResult:
    """
    Reconstruct a bill's edit history from Congress.gov.

    Args:
        bill_id: Composite id "<congress>-<billType>-<billNumber>"
        client: Congress.gov client (one is opened from config when omitted)
        settings: Full configuration dict (load_config() when omitted)

    Returns:
        Frozen PolicyDNAResult

    Raises:
        InvalidBillIdError: bill_id is malformed (raised before any request)
        UpstreamError: the bill detail itself could not be fetched
    """
    locator = BillLocator.parse(bill_id)
    config = settings if settings is not None else load_config()
    dna_config = config.get("dna", {})
    if client is not None:
        return await _build(client, locator, dna_config)
    async with CongressClient.from_config(config) as owned:
        return await _build(owned, locator, dna_config)
