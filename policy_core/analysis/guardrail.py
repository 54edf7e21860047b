import logging
import re
from typing import Optional

from policy_core.analysis.llm import GenerativeClient
from policy_core.analysis.prompts import GUARDRAIL_SCHEMA, build_guardrail_prompt
from policy_core.models import GuardrailFinding

logger = logging.getLogger(__name__)

# Phrases that turn a descriptive answer into advocacy
ADVOCACY_PATTERNS: list[re.Pattern] = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bshould\b",
        r"\bmust\b",
        r"\brecommend\w*",
        r"\bconsider\b",
        r"\badvise\w*",
        r"\bcall your (?:representative|senator|congress\w*)\b",
        r"\burge\b",
        r"\bvote (?:for|against)\b",
    )
]


def detect_advocacy(answer: str) -> list[str]:
    """One warning per distinct advocacy phrase found, in pattern order."""
    warnings: list[str] = []
    for pattern in ADVOCACY_PATTERNS:
        match = pattern.search(answer or "")
        if match:
            warning = f'Advocacy language detected: "{match.group(0)}"'
            if warning not in warnings:
                warnings.append(warning)
    return warnings


async def _moderate(answer: str, llm: GenerativeClient) -> Optional[GuardrailFinding]:
    try:
        payload = await llm.generate_json(build_guardrail_prompt(answer), GUARDRAIL_SCHEMA)
    except Exception as e:
        logger.warning("Moderation call failed, using pattern checks only: %s", e)
        return None

    ok = payload.get("ok")
    warnings = payload.get("warnings", [])
    if not isinstance(ok, bool) or not isinstance(warnings, list):
        logger.warning("Moderation response malformed, using pattern checks only")
        return None
    return GuardrailFinding(ok=ok, warnings=[w for w in warnings if isinstance(w, str) and w.strip()])


async def validate_answer(answer: str, llm: Optional[GenerativeClient] = None) -> GuardrailFinding:
    """
    Check an answer for advocacy language.

    The pattern layer always runs and cannot be overridden by the model: any
    pattern hit makes ok False. Model warnings are appended after pattern
    warnings, without duplicates.
    """
    warnings = detect_advocacy(answer)
    ok = not warnings

    if llm is not None:
        finding = await _moderate(answer, llm)
        if finding is not None:
            ok = ok and finding.ok
            for warning in finding.warnings:
                if warning not in warnings:
                    warnings.append(warning)

    return GuardrailFinding(ok=ok, warnings=warnings)
