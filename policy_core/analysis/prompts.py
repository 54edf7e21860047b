# Gemini API response schemas - enforce object output
# Using OpenAPI 3.0 schema subset supported by Gemini
GROUNDED_ANSWER_SCHEMA = {
    "type": "object",
    "properties": {
        "answer": {"type": "string"},
        "citations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "label": {"type": "string"},
                    "url": {"type": "string"}
                },
                "required": ["label", "url"]
            }
        },
        "disclaimers": {"type": "array", "items": {"type": "string"}}
    },
    "required": ["answer", "citations"]
}

GUARDRAIL_SCHEMA = {
    "type": "object",
    "properties": {
        "ok": {"type": "boolean"},
        "warnings": {"type": "array", "items": {"type": "string"}}
    },
    "required": ["ok", "warnings"]
}


def build_grounded_answer_prompt(question: str, context_lines: list[str], citations: list[dict]) -> str:
    """
    Args:
        question: The user's original question
        context_lines: Digest lines built from search hits, timeline and influence records
        citations: {label, url} pairs, one per digest line, in the same order

    Returns:
        Prompt asking for a descriptive answer built only from the digest
    """
    digest = "\n".join(context_lines)
    sources = "\n".join(f"[{i + 1}] {c['label']} - {c['url']}" for i, c in enumerate(citations))
    return f"""You are a nonpartisan legislative research assistant. You explain what bills say and how they changed. You never take positions.

RULES:
1. Answer ONLY from the research digest below. If the digest does not cover the question, say so.
2. Be descriptive, not prescriptive. Never tell the reader what they should do, support, oppose, or vote for.
3. Cite every factual statement with a source from the list below, copying its label and url exactly.
4. Lobbying and campaign-finance records are associations found by text search, not proof of influence. Say so if you mention them.
5. Respond ONLY with valid JSON: {{"answer": string, "citations": [{{"label": string, "url": string}}], "disclaimers": [string]}}

QUESTION:
{question}

RESEARCH DIGEST:
{digest}

SOURCES:
{sources}"""


def build_guardrail_prompt(answer: str) -> str:
    return f"""You review answers from a nonpartisan legislative research assistant before they are shown to users.

Flag any of the following:
- Advocacy: telling the reader what to do, support, oppose, or how to vote
- Partisan framing or loaded characterizations of lawmakers or parties
- Claims that lobbying or donations caused a legislative outcome
- Statements presented as fact that are speculation

Respond ONLY with valid JSON: {{"ok": boolean, "warnings": [string]}}
"ok" is true only when nothing should be flagged. Each warning names one problem in a short sentence.

ANSWER TO REVIEW:
{answer}"""
