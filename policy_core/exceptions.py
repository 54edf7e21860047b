"""
Custom exceptions for the policy question-answering pipeline.

Structural errors (bad bill ids, bad requests) propagate to the caller.
Upstream and generation errors are caught at the component that made the call
and degrade to an empty or deterministic result.
"""
from typing import Optional


class PolicyCoreError(Exception):
    """Base exception for policy pipeline errors."""
    pass


class InvalidBillIdError(PolicyCoreError, ValueError):
    """Composite bill id is not of the form <congress>-<billType>-<billNumber>."""
    pass


class InvalidRequestError(PolicyCoreError):
    """A required request field is missing or has the wrong type."""
    pass


class UpstreamError(PolicyCoreError):
    """An upstream registry returned a non-2xx response, bad JSON, or timed out."""

    def __init__(self, message: str, source: str = "upstream", status_code: Optional[int] = None):
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class LLMResponseError(PolicyCoreError):
    """LLM returned an invalid or unexpected response."""
    pass


class APIKeyMissingError(PolicyCoreError):
    """Required API key is not configured."""
    pass
