from .http import JsonApiClient
from .congress import CongressClient, congress_gov_url, ordinal
from .lda import LdaClient
from .fec import FecClient

__all__ = [
    "JsonApiClient",
    "CongressClient",
    "congress_gov_url",
    "ordinal",
    "LdaClient",
    "FecClient",
]
