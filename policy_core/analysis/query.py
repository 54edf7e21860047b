import re
from typing import Optional

from policy_core.api.congress import ordinal

# Optional congress prefix ("118", "118th", "118th Congress"), then the bill type
# (longest alternatives first so "hjres" is not read as "h"), then the number and
# an optional "(118th Congress)" suffix as written by normalize_query.
BILL_PATTERN = re.compile(
    r"(?<![\w'’])"
    r"(?:(\d{3})(?:st|nd|rd|th)?\s*(?:congress\s*)?)?"
    r"(h\.?j\.?res\.?|s\.?j\.?res\.?|h\.?con\.?res\.?|s\.?con\.?res\.?"
    r"|h\.?res\.?|s\.?res\.?|h\.?r\.?|s\.?)"
    r"\s*(\d{1,5})\b"
    r"(?:\s*\((\d{3})(?:st|nd|rd|th)?\s+congress\))?",
    re.IGNORECASE,
)


def parse_bill_reference(text: str) -> Optional[tuple[Optional[int], str, str]]:
    """
    Find the first bill reference in free text.

    Returns:
        (congress or None, lower-case bill type, bill number without leading zeros),
        or None when the text names no bill
    """
    if not text:
        return None
    match = BILL_PATTERN.search(text)
    if not match:
        return None
    congress_raw, type_raw, number_raw, suffix_raw = match.groups()
    bill_type = type_raw.replace(".", "").lower()
    bill_number = str(int(number_raw))
    if bill_number == "0":
        return None
    congress_raw = congress_raw or suffix_raw
    congress = int(congress_raw) if congress_raw else None
    return congress, bill_type, bill_number


def normalize_query(text: str) -> str:
    """
    Canonicalize bill references, e.g. "hr 1234" -> "HR 1234" and
    "118 s.5678" -> "S 5678 (118th Congress)". Other text comes back trimmed.
    """
    reference = parse_bill_reference(text)
    if reference is None:
        return (text or "").strip()
    congress, bill_type, bill_number = reference
    normalized = f"{bill_type.upper()} {bill_number}"
    if congress:
        normalized += f" ({ordinal(congress)} Congress)"
    return normalized
