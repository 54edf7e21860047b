import difflib
import hashlib
import html
import re

from policy_core.models import ChangeSummary

_TAG_RE = re.compile(r"<[^>]+>")


def strip_markup(text: str) -> str:
    """Drop XML/HTML tags and decode entities so only bill prose is compared."""
    if not text:
        return ""
    return html.unescape(_TAG_RE.sub(" ", text))


def compute_text_hash(text: str) -> str:
    return hashlib.sha256((text or "").encode("utf-8")).hexdigest()


def compute_change_summary(previous_text: str, current_text: str) -> ChangeSummary:
    """
    Word-level change counts between two versions of a bill.

    Inserted words count as added, deleted words as removed, a replaced run as
    both. modified = min(added, removed) when both are positive; this is an
    approximation of replacement edits, not a structural diff.

    With no previous text the version is the first one: added is 1 when it has
    any text and everything else is 0.

    Args:
        previous_text: Raw text (markup allowed) of the predecessor version
        current_text: Raw text of this version

    Returns:
        ChangeSummary with non-negative counts
    """
    current_words = strip_markup(current_text).split()
    if not previous_text:
        return ChangeSummary(added=1 if current_words else 0, removed=0, modified=0)

    if compute_text_hash(previous_text) == compute_text_hash(current_text):
        return ChangeSummary()

    previous_words = strip_markup(previous_text).split()
    # Statutory text repeats words heavily; autojunk would discard them as anchors
    matcher = difflib.SequenceMatcher(None, previous_words, current_words, autojunk=False)

    added = 0
    removed = 0
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag in ("insert", "replace"):
            added += j2 - j1
        if tag in ("delete", "replace"):
            removed += i2 - i1

    modified = min(added, removed) if added > 0 and removed > 0 else 0
    return ChangeSummary(added=added, removed=removed, modified=modified)
