"""Exa web search client.

Wraps the Exa ``/search`` (with page contents) and ``/answer`` endpoints
over httpx and formats results for injection into a generation turn.
"""

from typing import Any

import httpx

from app.core.exceptions import SearchError
from app.core.logging import get_logger
from app.core.schemas_generation import Citation, SearchAnswer, SearchResultItem

logger = get_logger(__name__)

EXA_BASE_URL = "https://api.exa.ai"
SNIPPET_LENGTH = 150


class ExaService:
    """Search capability backed by Exa."""

    provider_name = "ExaSearch"

    def __init__(self, api_key: str, timeout: float = 20.0, base_url: str = EXA_BASE_URL):
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.api_key:
            raise SearchError("EXA_API_KEY not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}{endpoint}",
                    headers={"x-api-key": self.api_key, "Content-Type": "application/json"},
                    json=payload,
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise SearchError(f"Exa {endpoint} returned {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise SearchError(f"Exa {endpoint} timed out") from e
        except httpx.HTTPError as e:
            raise SearchError(f"Exa {endpoint} request failed: {e}") from e
        except ValueError as e:
            raise SearchError(f"Exa {endpoint} returned invalid JSON") from e

    async def search(self, query: str, limit: int = 5) -> list[SearchResultItem]:
        """
        Search the web and return page contents.

        Args:
            query: Search query string
            limit: Number of results to return

        Returns:
            List of SearchResultItem

        Raises:
            SearchError: If the key is missing or the request fails
        """
        data = await self._post(
            "/search",
            {
                "query": query,
                "numResults": limit,
                "contents": {"text": True, "livecrawl": "always"},
            },
        )

        results = []
        for item in (data.get("results") or [])[:limit]:
            if not item.get("url"):
                continue
            results.append(
                SearchResultItem(
                    title=item.get("title") or "No title",
                    url=item["url"],
                    text=item.get("text") or item.get("content") or "No content available",
                    score=item.get("score"),
                )
            )

        logger.info(f"Exa search '{query[:50]}': {len(results)} results")
        return results

    async def answer(self, query: str) -> SearchAnswer:
        """
        Ask Exa for a direct answer with citations.

        Raises:
            SearchError: If the request fails or the response has the wrong shape
        """
        data = await self._post("/answer", {"query": query, "text": True})

        answer = data.get("answer")
        citations = data.get("citations")
        if not isinstance(answer, str) or not isinstance(citations, list):
            raise SearchError("Exa /answer returned an unexpected response shape")

        return SearchAnswer(
            answer=answer,
            citations=[
                Citation(
                    id=c.get("id"),
                    url=c.get("url", ""),
                    title=c.get("title"),
                    author=c.get("author"),
                    published_date=c.get("publishedDate"),
                    text=c.get("text"),
                )
                for c in citations
                if isinstance(c, dict)
            ],
        )


def format_results(results: list[SearchResultItem]) -> str:
    """Render results as numbered ``[n] title / url / snippet`` entries."""
    if not results:
        return "No search results found."

    entries = []
    for index, result in enumerate(results, start=1):
        snippet = result.text
        if len(snippet) > SNIPPET_LENGTH:
            snippet = snippet[:SNIPPET_LENGTH] + "..."
        entries.append(f"[{index}] {result.title}\n{result.url}\n{snippet}\n")
    return "\n".join(entries)


def format_search_turn(query: str, results: list[SearchResultItem]) -> str:
    """System turn text carrying search results into a generation."""
    return f'Search results for "{query}":\n\n{format_results(results)}'
