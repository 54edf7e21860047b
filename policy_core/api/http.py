import logging
from typing import Any, Optional

import httpx

from policy_core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: float = 20.0


def _next_link(payload: Any) -> Optional[str]:
    """Pagination link from a Congress.gov ({pagination: {next}}) or LDA ({next}) page."""
    if not isinstance(payload, dict):
        return None
    pagination = payload.get("pagination")
    if isinstance(pagination, dict) and isinstance(pagination.get("next"), str):
        return pagination["next"] or None
    if isinstance(payload.get("next"), str):
        return payload["next"] or None
    return None


class JsonApiClient:
    """
    Thin async JSON client around one httpx.AsyncClient.

    Every failure (non-2xx, network, timeout, undecodable body) is raised as
    UpstreamError tagged with the source name, so callers decide whether to
    degrade or propagate.
    """

    source: str = "upstream"

    def __init__(
        self,
        base_url: str,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json", **(headers or {})},
            params=params,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, path: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        clean = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        try:
            response = await self._http.get(path, params=clean)
        except httpx.TimeoutException as e:
            raise UpstreamError(f"{self.source} request timed out: {path}", source=self.source) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"{self.source} request failed: {e}", source=self.source) from e

        if response.status_code >= 400:
            raise UpstreamError(
                f"{self.source} returned {response.status_code} for {response.url.path}",
                source=self.source,
                status_code=response.status_code,
            )
        return response

    async def get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        response = await self._request(path, params)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"{self.source} returned invalid JSON for {path}",
                source=self.source,
                status_code=response.status_code,
            ) from e

    async def get_text(self, url: str, params: Optional[dict[str, Any]] = None) -> str:
        """Fetch a document body. Absolute URLs are fetched as-is with the client's credentials."""
        response = await self._request(url, params)
        return response.text

    async def get_pages(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        max_pages: int = 3,
    ) -> list[Any]:
        """
        Fetch a paginated collection, following "next" links.

        Args:
            path: First page path
            params: Query parameters for the first page (next links carry their own)
            max_pages: Upper bound on pages fetched

        Returns:
            List of raw page payloads in fetch order. A failure on the first page
            raises UpstreamError; a failure on a later page stops pagination and
            returns what arrived.
        """
        pages: list[Any] = [await self.get_json(path, params)]
        next_url = _next_link(pages[0])

        while next_url and len(pages) < max_pages:
            try:
                page = await self.get_json(next_url)
            except UpstreamError as e:
                logger.warning("Stopped paginating %s after %d pages: %s", path, len(pages), e)
                break
            pages.append(page)
            next_url = _next_link(page)

        return pages
