"""
Brave Search client used to ground the cost estimates.

One query per finding, e.g. "cost to repair cracked foundation in
123 Main St". The raw API response is trimmed down to ordered
(title, link, snippet) results -- that's all the synthesis prompt needs.
"""

import logging
from dataclasses import dataclass

import httpx

from config import BRAVE_API_KEY, SEARCH_RESULT_COUNT, SEARCH_TIMEOUT
from errors import SearchError

logger = logging.getLogger(__name__)

BRAVE_ENDPOINT = "https://api.search.brave.com/res/v1/web/search"


@dataclass(frozen=True)
class SearchResult:
    title: str
    link: str
    snippet: str


class BraveSearchClient:
    """Async Brave web search over a single shared httpx client.

    Use as an async context manager, or call aclose() when done. An
    http_client can be passed in (tests use httpx.MockTransport).
    """

    def __init__(self, api_key=BRAVE_API_KEY, count=SEARCH_RESULT_COUNT,
                 timeout=SEARCH_TIMEOUT, http_client=None):
        self.api_key = api_key
        self.count = count
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self):
        return bool(self.api_key)

    async def search(self, query):
        if not self.configured:
            raise SearchError("Brave Search API key is not configured")

        headers = {
            "X-Subscription-Token": self.api_key,
            "Accept": "application/json",
        }
        try:
            resp = await self._http.get(
                BRAVE_ENDPOINT,
                params={"q": query, "count": min(self.count, 20)},
                headers=headers,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as exc:
            raise SearchError(f"search timed out: {query!r}") from exc
        except httpx.HTTPStatusError as exc:
            raise SearchError(
                f"search returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SearchError(f"search request failed: {exc}") from exc
        except ValueError as exc:
            raise SearchError("search returned a non-JSON body") from exc

        return parse_brave_results(data)

    async def aclose(self):
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()


def parse_brave_results(data):
    """Pulls the web results out of a Brave response, keeping their order."""
    if not isinstance(data, dict):
        raise SearchError("search returned an unexpected payload")
    web = data.get("web") or {}
    results = []
    for item in web.get("results") or []:
        if not isinstance(item, dict) or not item.get("url"):
            continue
        results.append(
            SearchResult(
                title=item.get("title") or "",
                link=item["url"],
                snippet=item.get("description") or "",
            )
        )
    logger.debug("Brave returned %d usable results", len(results))
    return results


def default_search_client():
    """BraveSearchClient using the configured key (may be unconfigured)."""
    if not BRAVE_API_KEY:
        logger.warning("Brave Search API key is not set; web research will be skipped")
    return BraveSearchClient()
