from .query import normalize_query, parse_bill_reference
from .search import search_policies
from .changes import compute_change_summary
from .dna import build_policy_dna
from .influence import lookup_influence
from .llm import GenerativeClient, GeminiClient, OpenAIClient, create_llm_client, get_llm_client
from .grounder import ground_answer
from .guardrail import validate_answer

__all__ = [
    "normalize_query",
    "parse_bill_reference",
    "search_policies",
    "compute_change_summary",
    "build_policy_dna",
    "lookup_influence",
    "GenerativeClient",
    "GeminiClient",
    "OpenAIClient",
    "create_llm_client",
    "get_llm_client",
    "ground_answer",
    "validate_answer",
]
