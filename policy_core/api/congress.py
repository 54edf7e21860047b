import logging
from typing import Any, Optional

import httpx

from policy_core.api.http import DEFAULT_TIMEOUT, JsonApiClient
from policy_core.config import get_api_keys

logger = logging.getLogger(__name__)

CONGRESS_BASE_URL: str = "https://api.congress.gov/v3"
CONGRESS_WEB_URL: str = "https://www.congress.gov"

# congress.gov path segment for each bill type
BILL_TYPE_SLUGS: dict[str, str] = {
    "hr": "house-bill",
    "s": "senate-bill",
    "hjres": "house-joint-resolution",
    "sjres": "senate-joint-resolution",
    "hconres": "house-concurrent-resolution",
    "sconres": "senate-concurrent-resolution",
    "hres": "house-resolution",
    "sres": "senate-resolution",
}


def ordinal(number: int) -> str:
    """118 -> "118th", 101 -> "101st"."""
    if 10 <= number % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def congress_gov_url(congress: int, bill_type: str, bill_number: str) -> str:
    """Public congress.gov page for a bill."""
    slug = BILL_TYPE_SLUGS.get(bill_type.lower(), bill_type.lower())
    return f"{CONGRESS_WEB_URL}/bill/{ordinal(congress)}-congress/{slug}/{bill_number}"


class CongressClient(JsonApiClient):
    """
    Congress.gov v3 client.

    The key travels in the X-Api-Key header; format=json is sent on every call.
    """

    source = "congress.gov"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = CONGRESS_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers: dict[str, str] = {}
        if api_key:
            headers["X-Api-Key"] = api_key
        else:
            logger.warning("CONGRESS_API_KEY not configured; Congress.gov requests will be rejected")
        if user_agent:
            headers["User-Agent"] = user_agent
        super().__init__(
            base_url,
            headers=headers,
            params={"format": "json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: dict[str, Any], transport: Optional[httpx.AsyncBaseTransport] = None):
        http_cfg = config.get("http", {})
        return cls(
            api_key=get_api_keys()["congress"],
            base_url=config.get("congress", {}).get("base_url", CONGRESS_BASE_URL),
            timeout=http_cfg.get("timeout", DEFAULT_TIMEOUT),
            user_agent=http_cfg.get("user_agent"),
            transport=transport,
        )

    async def search_bills(
        self,
        query: str,
        congress: Optional[int] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: int = 20,
        max_pages: int = 3,
    ) -> list[Any]:
        params = {
            "query": query,
            "q": query,
            "sort": "updateDate desc",
            "limit": limit,
            "congress": congress,
            "fromDateTime": date_from,
            "toDateTime": date_to,
        }
        return await self.get_pages("/bill", params, max_pages=max_pages)

    async def get_bill(self, congress: int, bill_type: str, bill_number: str) -> Any:
        return await self.get_json(f"/bill/{congress}/{bill_type}/{bill_number}")

    async def get_bill_collection(
        self,
        congress: int,
        bill_type: str,
        bill_number: str,
        collection: str,
        max_pages: int = 3,
        limit: int = 250,
    ) -> list[Any]:
        """Pages of one bill sub-collection: text, actions, amendments, sections."""
        return await self.get_pages(
            f"/bill/{congress}/{bill_type}/{bill_number}/{collection}",
            {"limit": limit},
            max_pages=max_pages,
        )
