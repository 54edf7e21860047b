from typing import Any, Optional

import httpx

from policy_core.api.http import DEFAULT_TIMEOUT, JsonApiClient
from policy_core.config import get_api_keys

LDA_BASE_URL: str = "https://lda.senate.gov/api/v1"


class LdaClient(JsonApiClient):
    """Senate Lobbying Disclosure Act API. Anonymous access works at lower rate limits."""

    source = "senate-lda"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = LDA_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers: dict[str, str] = {}
        if api_key:
            headers["Authorization"] = f"Token {api_key}"
        if user_agent:
            headers["User-Agent"] = user_agent
        super().__init__(base_url, headers=headers, timeout=timeout, transport=transport)
        self.has_key = bool(api_key)

    @classmethod
    def from_config(cls, config: dict[str, Any], transport: Optional[httpx.AsyncBaseTransport] = None):
        http_cfg = config.get("http", {})
        return cls(
            api_key=get_api_keys()["lda"],
            base_url=config.get("lda", {}).get("base_url", LDA_BASE_URL),
            timeout=http_cfg.get("timeout", DEFAULT_TIMEOUT),
            user_agent=http_cfg.get("user_agent"),
            transport=transport,
        )

    @property
    def filings_url(self) -> str:
        return f"{self.base_url}/filings/"

    async def search_filings(
        self,
        term: str,
        posted_after: Optional[str] = None,
        posted_before: Optional[str] = None,
        page_size: int = 10,
    ) -> Any:
        return await self.get_json(
            "/filings/",
            {
                "filing_specific_lobbying_issues": term,
                "filing_dt_posted_after": posted_after,
                "filing_dt_posted_before": posted_before,
                "page_size": page_size,
            },
        )
