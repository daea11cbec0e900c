import asyncio

import pytest

from paperwatch.models.items import Paper
from paperwatch.services.database import Database


class FakeClock:
    """Monotonic clock plus a sleep that advances it instead of waiting."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_paper():
    def _make(arxiv_id: str, title: str | None = None, **extra) -> Paper:
        return Paper(
            id=arxiv_id,
            title=title or f"Paper {arxiv_id}",
            summary=extra.pop("summary", "An abstract."),
            published=extra.pop("published", "2023-01-01"),
            link=f"http://arxiv.org/abs/{arxiv_id}v1",
            authors=extra.pop("authors", ["Ada Lovelace"]),
            categories=extra.pop("categories", ["cs.LG"]),
        )

    return _make


@pytest.fixture
def db(tmp_path) -> Database:
    database = Database(tmp_path / "paperwatch.db")
    asyncio.run(database.init())
    return database
