from typing import Iterable, List, Set
from paperwatch.models.items import Paper
from paperwatch.services.database import Database

class ViewLedger:
    """Per-user record of papers already delivered; used to keep notifications idempotent."""

    def __init__(self, db: Database):
        self.db = db

    async def get_viewed(self, user_id: int, arxiv_ids: Iterable[str]) -> Set[str]:
        return await self.db.get_viewed_ids(user_id, arxiv_ids)

    async def mark_viewed(self, user_id: int, arxiv_ids: Iterable[str]) -> int:
        return await self.db.mark_viewed(user_id, arxiv_ids)

    async def filter_unseen(self, user_id: int, papers: List[Paper]) -> List[Paper]:
        """Papers the user has not been sent yet, in input order, without duplicates."""
        viewed = await self.get_viewed(user_id, [p.id for p in papers])
        unseen, seen_ids = [], set()
        for paper in papers:
            if paper.id in viewed or paper.id in seen_ids:
                continue
            seen_ids.add(paper.id)
            unseen.append(paper)
        return unseen
