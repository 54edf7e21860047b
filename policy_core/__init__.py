# Policy DNA core library
# Main entry point: from policy_core.orchestrator import run_orchestrator

from .config import load_config, get_api_keys, inspect_environment
from .orchestrator import PolicyOrchestrator, run_orchestrator
from .service import PolicyService

from .models import (
    BillLocator,
    PolicyFilters,
    PolicySearchHit,
    PolicyDNAResult,
    InfluenceResult,
    GroundedAnswer,
    GuardrailFinding,
    OrchestratorResult,
    PolicyDetailResponse,
)

from .exceptions import (
    PolicyCoreError,
    InvalidBillIdError,
    InvalidRequestError,
    UpstreamError,
    LLMResponseError,
    APIKeyMissingError,
)

__all__ = [
    # Main entry points
    "run_orchestrator",
    "PolicyOrchestrator",
    "PolicyService",
    "load_config",
    "get_api_keys",
    "inspect_environment",
    # Models
    "BillLocator",
    "PolicyFilters",
    "PolicySearchHit",
    "PolicyDNAResult",
    "InfluenceResult",
    "GroundedAnswer",
    "GuardrailFinding",
    "OrchestratorResult",
    "PolicyDetailResponse",
    # Exceptions
    "PolicyCoreError",
    "InvalidBillIdError",
    "InvalidRequestError",
    "UpstreamError",
    "LLMResponseError",
    "APIKeyMissingError",
]
