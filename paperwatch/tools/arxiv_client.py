"""
arXiv search client.

Every request goes through the same pipeline: result cache, shared rate
limiter, retry with backoff, and an HTTP call under a bounded timeout. The
public fetch methods fail open: when arXiv is unreachable they log the error
and return an empty result. `search()` and `search_filtered()` return a
SearchOutcome so callers that care can tell a failure from an empty match.
"""
import asyncio
import httpx
import feedparser
from typing import Any, Awaitable, Callable, Dict, List, Optional
from paperwatch.config import settings
from paperwatch.errors import (
    ArxivApiError,
    NetworkFault,
    TimeoutFault,
    error_for_status,
    get_error_message,
    is_retryable_error,
)
from paperwatch.models.items import Paper, SearchFilters, SearchQuery
from paperwatch.models.results import RateLimiterStatus, SearchOutcome
from paperwatch.services.cache import ResultCache
from paperwatch.services.logger import logger
from paperwatch.services.rate_limiter import RateLimiter
from paperwatch.tools.formatting import extract_arxiv_id, is_valid_arxiv_id, sanitize_search_query
from paperwatch.tools.retry import RetryOptions, with_retry

USER_AGENT = "paperwatch/1.0 (arXiv subscription notifier)"

def parse_feed(xml: str) -> List[Paper]:
    """Parse an arXiv Atom response into Papers. Error entries are dropped."""
    feed = feedparser.parse(xml)
    if feed.bozo and not feed.entries:
        raise ArxivApiError(f"Unparseable arXiv response: {feed.get('bozo_exception')}")

    papers = []
    for entry in feed.entries:
        link = entry.get("id") or entry.get("link") or ""
        if "arxiv.org/abs/" not in link:
            # arXiv reports query errors as a pseudo-entry under /api/errors
            logger.debug(f"Skipping non-paper entry: {entry.get('title', '')[:80]}")
            continue
        papers.append(Paper(
            id=extract_arxiv_id(link),
            title=" ".join(entry.get("title", "").split()),
            summary=entry.get("summary", "").strip(),
            published=entry.get("published", "")[:10],
            link=link,
            authors=[a.get("name") for a in entry.get("authors", []) if a.get("name")],
            categories=[t.get("term") for t in entry.get("tags", []) if t.get("term")],
        ))
    return papers

def _field_term(prefix: str, value: str) -> str:
    value = sanitize_search_query(value)
    if " " in value:
        return f'{prefix}:"{value}"'
    return f"{prefix}:{value}"

def build_search_query(filters: SearchFilters) -> str:
    terms = []
    if filters.query and filters.query.strip():
        terms.append(f"all:{sanitize_search_query(filters.query)}")
    if filters.author and filters.author.strip():
        terms.append(_field_term("au", filters.author))
    if filters.title and filters.title.strip():
        terms.append(_field_term("ti", filters.title))
    if filters.category and filters.category.strip():
        terms.append(f"cat:{filters.category.strip()}")
    return " AND ".join(terms)

class ArxivClient:
    def __init__(
        self,
        rate_limiter: RateLimiter,
        cache: Optional[ResultCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_options: Optional[RetryOptions] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.base_url = base_url or settings.ARXIV_API_URL
        self.timeout = timeout if timeout is not None else settings.ARXIV_TIMEOUT_SECONDS
        self.retry_options = retry_options or RetryOptions.from_settings(
            is_retryable=is_retryable_error, name="arXiv request"
        )
        self._sleep = sleep
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT}, follow_redirects=True, timeout=self.timeout
        )

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    # Outcome-returning searches

    async def search(self, query: SearchQuery) -> SearchOutcome:
        topic = sanitize_search_query(query.topic)
        if not topic:
            return SearchOutcome()
        params = {
            "search_query": f"all:{topic}",
            "start": query.start,
            "max_results": query.max_results,
            "sortBy": query.sort_by,
            "sortOrder": query.sort_order,
        }
        return await self._execute(query.cache_key(), params, f"topic '{topic}'")

    async def search_filtered(self, filters: SearchFilters) -> SearchOutcome:
        if not filters.has_criteria():
            return SearchOutcome()
        params = {
            "search_query": build_search_query(filters),
            "start": filters.start,
            "max_results": filters.max_results,
            "sortBy": filters.sort_by,
            "sortOrder": filters.sort_order,
        }
        return await self._execute(filters.cache_key(), params, f"query '{params['search_query']}'")

    # Fail-open convenience API for the chat layer

    async def fetch(self, topic: str, start: int = 0, max_results: int = 5) -> List[Paper]:
        outcome = await self.search(SearchQuery(topic=topic, start=start, max_results=max_results))
        return outcome.papers

    async def fetch_advanced(
        self,
        topic: str,
        start: int = 0,
        max_results: int = 5,
        sort_by: str = "submittedDate",
        sort_order: str = "descending",
    ) -> List[Paper]:
        query = SearchQuery(topic=topic, start=start, max_results=max_results, sort_by=sort_by, sort_order=sort_order)
        return (await self.search(query)).papers

    async def search_advanced(self, filters: SearchFilters) -> List[Paper]:
        return (await self.search_filtered(filters)).papers

    async def search_by_author(self, author: str, max_results: int = 10) -> List[Paper]:
        return await self.search_advanced(
            SearchFilters(author=author, max_results=max_results, sort_by="submittedDate")
        )

    async def search_by_category(self, category: str, max_results: int = 10) -> List[Paper]:
        return await self.search_advanced(
            SearchFilters(category=category, max_results=max_results, sort_by="submittedDate")
        )

    async def fetch_by_id(self, arxiv_id: str) -> Optional[Paper]:
        arxiv_id = (arxiv_id or "").strip()
        if not is_valid_arxiv_id(arxiv_id):
            return None
        params = {"id_list": arxiv_id, "max_results": 1}
        outcome = await self._execute(f"id:{arxiv_id.lower()}", params, f"id {arxiv_id}")
        return outcome.papers[0] if outcome.papers else None

    def get_rate_limiter_status(self) -> RateLimiterStatus:
        return self.rate_limiter.status()

    # Pipeline

    async def _execute(self, cache_key: str, params: Dict[str, Any], label: str) -> SearchOutcome:
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return SearchOutcome(papers=cached, from_cache=True)

        try:
            await self.rate_limiter.throttle()
            papers = await with_retry(lambda: self._request(params), self.retry_options, sleep=self._sleep)
            logger.info(f"arXiv returned {len(papers)} papers for {label}")
            if self.cache is not None:
                self.cache.set(cache_key, papers)
            return SearchOutcome(papers=papers)
        except Exception as e:
            logger.error(f"arXiv search failed for {label}: {e}")
            return SearchOutcome(ok=False, error=get_error_message(e))

    async def _request(self, params: Dict[str, Any]) -> List[Paper]:
        try:
            resp = await asyncio.wait_for(
                self._client.get(self.base_url, params=params, timeout=self.timeout), timeout=self.timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise TimeoutFault(f"arXiv request timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise NetworkFault(f"arXiv request failed: {e}") from e

        if resp.status_code != 200:
            raise error_for_status(resp.status_code, resp.text)
        return parse_feed(resp.text)
