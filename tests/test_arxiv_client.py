import asyncio

import httpx
import pytest

from paperwatch.errors import ArxivApiError, is_retryable_error
from paperwatch.models.items import SearchFilters, SearchQuery
from paperwatch.services.cache import ResultCache
from paperwatch.services.rate_limiter import RateLimiter
from paperwatch.tools.arxiv_client import ArxivClient, build_search_query, parse_feed
from paperwatch.tools.retry import RetryOptions

BASE_URL = "http://arxiv.test/api/query"

ATOM_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>ArXiv Query</title>
  <id>http://arxiv.org/api/query</id>
  <updated>2023-01-02T00:00:00Z</updated>
  <entry>
    <id>http://arxiv.org/abs/2301.00001v2</id>
    <updated>2023-01-02T10:00:00Z</updated>
    <published>2023-01-01T10:00:00Z</published>
    <title>Attention Is
      All You Need</title>
    <summary>  We propose a new simple network architecture.  </summary>
    <author><name>Ashish Vaswani</name></author>
    <author><name>Noam Shazeer</name></author>
    <link href="http://arxiv.org/abs/2301.00001v2" rel="alternate" type="text/html"/>
    <category term="cs.CL" scheme="http://arxiv.org/schemas/atom"/>
    <category term="cs.LG" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
  <entry>
    <id>http://arxiv.org/abs/2301.00002v1</id>
    <updated>2023-01-02T11:00:00Z</updated>
    <published>2023-01-02T11:00:00Z</published>
    <title>A Second Paper</title>
    <summary>Another abstract.</summary>
    <author><name>Grace Hopper</name></author>
    <link href="http://arxiv.org/abs/2301.00002v1" rel="alternate" type="text/html"/>
    <category term="cs.LG" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
</feed>
"""

EMPTY_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>ArXiv Query</title>
  <id>http://arxiv.org/api/query</id>
  <updated>2023-01-02T00:00:00Z</updated>
</feed>
"""

ERROR_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>ArXiv Query</title>
  <id>http://arxiv.org/api/query</id>
  <updated>2023-01-02T00:00:00Z</updated>
  <entry>
    <id>http://arxiv.org/api/errors#incorrect_id_format_for_9999.99999</id>
    <title>Error</title>
    <summary>incorrect id format for 9999.99999</summary>
  </entry>
</feed>
"""


class Recorder:
    """MockTransport handler that replays (status, body) pairs or exceptions and records requests."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses[min(len(self.requests), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        status, body = response
        return httpx.Response(status, text=body)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def params(self, index: int = -1) -> dict:
        return dict(self.requests[index].url.params)


def make_client(handler, fake_clock, cache=None, max_attempts=3, timeout=5.0) -> ArxivClient:
    limiter = RateLimiter(1 / 3, name="arXiv", clock=fake_clock, sleep=fake_clock.sleep)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    retry_options = RetryOptions(
        max_attempts=max_attempts,
        base_delay=1.0,
        max_delay=10.0,
        is_retryable=is_retryable_error,
        name="arXiv request",
    )

    async def no_sleep(seconds: float) -> None:
        pass

    return ArxivClient(
        limiter,
        cache=cache,
        http_client=http_client,
        base_url=BASE_URL,
        timeout=timeout,
        retry_options=retry_options,
        sleep=no_sleep,
    )


def test_parse_feed_maps_entries() -> None:
    papers = parse_feed(ATOM_FEED)

    assert [p.id for p in papers] == ["2301.00001", "2301.00002"]
    first = papers[0]
    assert first.title == "Attention Is All You Need"
    assert first.summary == "We propose a new simple network architecture."
    assert first.published == "2023-01-01"
    assert first.link == "http://arxiv.org/abs/2301.00001v2"
    assert first.authors == ["Ashish Vaswani", "Noam Shazeer"]
    assert first.categories == ["cs.CL", "cs.LG"]


def test_parse_feed_skips_error_entries() -> None:
    assert parse_feed(ERROR_FEED) == []


def test_parse_feed_rejects_garbage() -> None:
    with pytest.raises(ArxivApiError):
        parse_feed("this is not a feed at all")


def test_build_search_query() -> None:
    filters = SearchFilters(query="graph networks", author="Geoffrey Hinton", title="capsules", category="cs.LG")
    assert build_search_query(filters) == (
        'all:graph networks AND au:"Geoffrey Hinton" AND ti:capsules AND cat:cs.LG'
    )


def test_search_sends_expected_params(fake_clock) -> None:
    handler = Recorder((200, ATOM_FEED))
    client = make_client(handler, fake_clock)

    outcome = asyncio.run(client.search(SearchQuery(topic="machine learning", max_results=10)))

    assert outcome.ok is True
    assert len(outcome.papers) == 2
    params = handler.params()
    assert params["search_query"] == "all:machine learning"
    assert params["start"] == "0"
    assert params["max_results"] == "10"
    assert params["sortBy"] == "submittedDate"
    assert params["sortOrder"] == "descending"


def test_cache_hit_skips_network(fake_clock) -> None:
    handler = Recorder((200, ATOM_FEED))
    client = make_client(handler, fake_clock, cache=ResultCache(clock=fake_clock))

    async def run():
        first = await client.search(SearchQuery(topic="Machine Learning"))
        second = await client.search(SearchQuery(topic="machine  learning"))
        return first, second

    first, second = asyncio.run(run())

    assert handler.calls == 1
    assert first.from_cache is False
    assert second.from_cache is True
    assert second.papers == first.papers


def test_empty_result_is_success(fake_clock) -> None:
    handler = Recorder((200, EMPTY_FEED))
    client = make_client(handler, fake_clock)

    outcome = asyncio.run(client.search(SearchQuery(topic="nothing matches")))

    assert outcome.ok is True
    assert outcome.papers == []


def test_server_error_is_retried(fake_clock) -> None:
    handler = Recorder((503, "busy"), (200, ATOM_FEED))
    client = make_client(handler, fake_clock)

    papers = asyncio.run(client.fetch("transformers"))

    assert handler.calls == 2
    assert len(papers) == 2


def test_client_error_fails_fast(fake_clock) -> None:
    handler = Recorder((400, "bad query"))
    client = make_client(handler, fake_clock)

    outcome = asyncio.run(client.search(SearchQuery(topic="transformers")))

    assert handler.calls == 1
    assert outcome.ok is False
    assert "HTTP 400" in outcome.error


def test_persistent_failure_fails_open(fake_clock) -> None:
    handler = Recorder((500, "down"))
    cache = ResultCache(clock=fake_clock)
    client = make_client(handler, fake_clock, cache=cache)

    async def run():
        outcome = await client.search(SearchQuery(topic="transformers"))
        papers = await client.fetch("transformers")
        return outcome, papers

    outcome, papers = asyncio.run(run())

    assert outcome.ok is False
    assert "HTTP 500" in outcome.error
    assert papers == []
    # failures are never cached, so the second call went to the network again
    assert handler.calls == 6
    assert len(cache) == 0


def test_network_error_is_retried(fake_clock) -> None:
    request = httpx.Request("GET", BASE_URL)
    handler = Recorder(httpx.ConnectError("connection refused", request=request), (200, ATOM_FEED))
    client = make_client(handler, fake_clock)

    papers = asyncio.run(client.fetch("transformers"))

    assert handler.calls == 2
    assert len(papers) == 2


def test_slow_response_times_out(fake_clock) -> None:
    calls = []

    async def slow_handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        await asyncio.sleep(1)
        return (200, ATOM_FEED)

    client = make_client(slow_handler, fake_clock, max_attempts=2, timeout=0.01)

    outcome = asyncio.run(client.search(SearchQuery(topic="transformers")))

    assert outcome.ok is False
    assert "timed out" in outcome.error
    assert len(calls) == 2


def test_unparseable_body_is_not_retried(fake_clock) -> None:
    handler = Recorder((200, "this is not a feed at all"))
    client = make_client(handler, fake_clock)

    outcome = asyncio.run(client.search(SearchQuery(topic="transformers")))

    assert outcome.ok is False
    assert handler.calls == 1


def test_blank_topic_makes_no_request(fake_clock) -> None:
    handler = Recorder((200, ATOM_FEED))
    client = make_client(handler, fake_clock)

    assert asyncio.run(client.fetch("   ")) == []
    assert handler.calls == 0


def test_search_advanced_without_criteria_makes_no_request(fake_clock) -> None:
    handler = Recorder((200, ATOM_FEED))
    client = make_client(handler, fake_clock)

    assert asyncio.run(client.search_advanced(SearchFilters(query="  "))) == []
    assert handler.calls == 0


def test_search_by_author_and_category(fake_clock) -> None:
    handler = Recorder((200, ATOM_FEED))
    client = make_client(handler, fake_clock)

    async def run() -> None:
        await client.search_by_author("Geoffrey Hinton", max_results=3)
        await client.search_by_category("cs.AI")

    asyncio.run(run())

    assert handler.params(0)["search_query"] == 'au:"Geoffrey Hinton"'
    assert handler.params(0)["max_results"] == "3"
    assert handler.params(0)["sortBy"] == "submittedDate"
    assert handler.params(1)["search_query"] == "cat:cs.AI"


def test_fetch_by_id(fake_clock) -> None:
    handler = Recorder((200, ATOM_FEED))
    client = make_client(handler, fake_clock)

    paper = asyncio.run(client.fetch_by_id("2301.00001"))

    assert paper is not None
    assert paper.id == "2301.00001"
    assert handler.params()["id_list"] == "2301.00001"
    assert handler.params()["max_results"] == "1"


def test_fetch_by_id_rejects_malformed_ids(fake_clock) -> None:
    handler = Recorder((200, ATOM_FEED))
    client = make_client(handler, fake_clock)

    assert asyncio.run(client.fetch_by_id("not-an-id")) is None
    assert asyncio.run(client.fetch_by_id("")) is None
    assert handler.calls == 0


def test_fetch_by_id_unknown_paper(fake_clock) -> None:
    handler = Recorder((200, ERROR_FEED))
    client = make_client(handler, fake_clock)

    assert asyncio.run(client.fetch_by_id("9999.99999")) is None


def test_requests_share_the_rate_limit(fake_clock) -> None:
    handler = Recorder((200, ATOM_FEED))
    client = make_client(handler, fake_clock)

    async def run() -> None:
        await client.fetch("first topic")
        await client.fetch("second topic")

    asyncio.run(run())

    assert handler.calls == 2
    assert fake_clock.sleeps == [pytest.approx(3.0)]
    status = client.get_rate_limiter_status()
    assert status.can_proceed is False
    assert status.pending_requests == 0


def test_owned_http_client_uses_configured_timeout() -> None:
    client = ArxivClient(RateLimiter(1000), timeout=30.0)

    assert client._client.timeout.read == 30.0
    assert client._client.timeout.connect == 30.0
    asyncio.run(client.aclose())


def test_request_carries_configured_timeout(fake_clock) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.extensions["timeout"])
        return httpx.Response(200, text=EMPTY_FEED)

    client = make_client(handler, fake_clock, timeout=30.0)
    asyncio.run(client.fetch("transformers"))

    assert seen[0]["read"] == 30.0


class ExplodingCache(ResultCache):
    def set(self, key, papers, ttl=None):
        raise RuntimeError("cache unavailable")


def test_failure_after_fetch_still_fails_open(fake_clock) -> None:
    handler = Recorder((200, ATOM_FEED))
    client = make_client(handler, fake_clock, cache=ExplodingCache(clock=fake_clock))

    async def run():
        return await client.search(SearchQuery(topic="transformers")), await client.fetch("graphs")

    outcome, papers = asyncio.run(run())

    assert outcome.ok is False
    assert outcome.error == "cache unavailable"
    assert papers == []
