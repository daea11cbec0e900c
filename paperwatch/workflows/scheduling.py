from datetime import datetime, timedelta
from typing import List, Optional
from paperwatch.models.items import Subscription
from paperwatch.services.database import Database, utcnow

PAGE_SIZE = 200

def is_due(subscription: Subscription, now: datetime) -> bool:
    if not subscription.is_active:
        return False
    if subscription.last_run_at is None:
        return True
    return now >= subscription.last_run_at + timedelta(hours=subscription.interval_hours)

class DueSubscriptionSelector:
    """
    Picks the subscriptions whose notification interval has elapsed.

    Results come back in creation order and are capped at `limit` so one
    worker pass has a bounded runtime; the rest are picked up next time.
    """

    def __init__(self, db: Database, page_size: int = PAGE_SIZE):
        self.db = db
        self.page_size = page_size

    async def select_due(self, now: Optional[datetime] = None, limit: int = 50) -> List[Subscription]:
        now = now or utcnow()
        due: List[Subscription] = []
        after_id = 0
        while len(due) < limit:
            page = await self.db.list_active_subscriptions(after_id=after_id, limit=self.page_size)
            if not page:
                break
            for subscription in page:
                if is_due(subscription, now):
                    due.append(subscription)
                    if len(due) >= limit:
                        break
            after_id = page[-1].id
        return due

    async def count_due(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        count = 0
        after_id = 0
        while True:
            page = await self.db.list_active_subscriptions(after_id=after_id, limit=self.page_size)
            if not page:
                return count
            count += sum(1 for s in page if is_due(s, now))
            after_id = page[-1].id
