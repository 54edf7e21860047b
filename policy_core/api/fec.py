from typing import Any, Optional

import httpx

from policy_core.api.http import DEFAULT_TIMEOUT, JsonApiClient
from policy_core.config import get_api_keys

FEC_BASE_URL: str = "https://api.open.fec.gov/v1"
FEC_DEMO_KEY: str = "DEMO_KEY"
FEC_TOTALS_DOCS_URL: str = (
    "https://api.open.fec.gov/developers/#/candidate/get_candidate__candidate_id__totals_"
)


def candidate_page_url(candidate_id: str, cycle: Optional[int] = None) -> str:
    return f"https://www.fec.gov/data/candidate/{candidate_id}/?cycle={cycle or ''}"


class FecClient(JsonApiClient):
    """OpenFEC v1. The key is an api_key query parameter; DEMO_KEY works with tight limits."""

    source = "openfec"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = FEC_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"User-Agent": user_agent} if user_agent else None
        super().__init__(
            base_url,
            headers=headers,
            params={"api_key": api_key or FEC_DEMO_KEY},
            timeout=timeout,
            transport=transport,
        )
        self.has_key = bool(api_key)

    @classmethod
    def from_config(cls, config: dict[str, Any], transport: Optional[httpx.AsyncBaseTransport] = None):
        http_cfg = config.get("http", {})
        fec_cfg = config.get("fec", {})
        return cls(
            api_key=get_api_keys()["fec"] or None,
            base_url=fec_cfg.get("base_url", FEC_BASE_URL),
            timeout=http_cfg.get("timeout", DEFAULT_TIMEOUT),
            user_agent=http_cfg.get("user_agent"),
            transport=transport,
        )

    async def search_candidates(self, name: str, per_page: int = 5) -> Any:
        return await self.get_json(
            "/candidates/search/",
            {
                "q": name,
                "per_page": per_page,
                "sort": "-two_year_period",
                "sort_hide_null": "false",
                "sort_null_only": "false",
            },
        )

    async def candidate_totals(self, candidate_id: str) -> Any:
        return await self.get_json(
            f"/candidate/{candidate_id}/totals/",
            {"per_page": 1, "sort": "-cycle"},
        )
