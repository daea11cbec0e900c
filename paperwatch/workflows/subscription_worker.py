import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional
from paperwatch.errors import OwnerNotFound, get_error_message
from paperwatch.models.items import SearchFilters, SearchQuery, Subscription
from paperwatch.models.results import CycleResult, SearchOutcome, WorkerConfig, WorkerResult, WorkerStatus
from paperwatch.services.database import Database, utcnow
from paperwatch.services.logger import logger
from paperwatch.services.notifier import TelegramNotifier
from paperwatch.tools.arxiv_client import ArxivClient
from paperwatch.tools.formatting import format_subscription_message
from paperwatch.tools.view_ledger import ViewLedger
from paperwatch.workflows.scheduling import DueSubscriptionSelector

@dataclass
class _RunState:
    sends: int = 0

class SubscriptionWorker:
    """
    One pass over due subscriptions: fetch, drop already-sent papers, notify,
    record what was sent, advance last_run_at.

    Subscriptions are handled one at a time because the arXiv rate limiter is
    shared with interactive searches. A failing subscription is recorded and
    the pass moves on; its last_run_at is left alone so it stays due.

    There is no run-level lock. Two overlapping passes can both pick up the
    same due subscription.
    """

    def __init__(
        self,
        db: Database,
        search_client: ArxivClient,
        notifier: TelegramNotifier,
        selector: Optional[DueSubscriptionSelector] = None,
        ledger: Optional[ViewLedger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.search_client = search_client
        self.notifier = notifier
        self.selector = selector or DueSubscriptionSelector(db)
        self.ledger = ledger or ViewLedger(db)
        self._sleep = sleep
        self._now = now

    async def process_subscriptions(self, config: Optional[WorkerConfig] = None) -> WorkerResult:
        config = config or WorkerConfig()
        started = time.monotonic()
        result = WorkerResult()
        logger.info(f"Starting subscription worker ({config.model_dump()})")

        try:
            due = await self.selector.select_due(self._now(), config.max_subscriptions)
        except Exception as e:
            logger.error(f"Could not load due subscriptions: {e}")
            due = []

        if not due:
            logger.info("No due subscriptions to process")
        else:
            logger.info(f"Found {len(due)} due subscriptions")

        run = _RunState()
        for subscription in due:
            result.record(await self._process_subscription(subscription, config, run))

        result.duration_ms = round((time.monotonic() - started) * 1000, 1)
        logger.info(
            f"Subscription worker completed: {result.processed} processed, "
            f"{result.successful} ok, {result.failed} failed in {result.duration_ms}ms"
        )
        return result

    async def get_worker_status(self, now: Optional[datetime] = None) -> WorkerStatus:
        return WorkerStatus(due_count=await self.selector.count_due(now or self._now()))

    async def _process_subscription(
        self, subscription: Subscription, config: WorkerConfig, run: _RunState
    ) -> CycleResult:
        cycle = CycleResult(
            subscription_id=subscription.id,
            user_id=subscription.user_id,
            topic=subscription.topic,
        )
        try:
            user = await self.db.find_user_by_id(subscription.user_id)
            if user is None:
                raise OwnerNotFound(subscription.user_id)

            # Over-fetch so there is headroom left after dropping viewed papers
            outcome = await self._fetch_candidates(subscription, config.max_papers_per_subscription * 2)
            if not outcome.ok:
                cycle.error = f"Fetch failed: {outcome.error}"
                logger.warning(f"Subscription {subscription.id} ('{subscription.topic}'): {cycle.error}")
                return cycle
            cycle.papers_found = len(outcome.papers)

            new_papers = await self.ledger.filter_unseen(user.id, outcome.papers)
            if not new_papers:
                # Still advance, otherwise a quiet topic is re-polled on every trigger
                await self._advance(subscription, config)
                cycle.success = True
                logger.debug(f"No new papers for subscription {subscription.id} ('{subscription.topic}')")
                return cycle

            to_send = new_papers[:config.max_papers_per_subscription]
            message = format_subscription_message(
                subscription.topic, to_send, len(new_papers), subscription.category
            )
            if not await self._deliver(user.chat_id, message, config, run):
                cycle.error = "Failed to send notification"
                return cycle

            cycle.papers_sent = len(to_send)
            # Only what was sent; the overflow stays eligible for the next cycle
            if config.mark_as_viewed and not config.dry_run:
                await self.ledger.mark_viewed(user.id, [p.id for p in to_send])
            await self._advance(subscription, config)
            cycle.success = True
            logger.info(
                f"✅ Sent {cycle.papers_sent}/{len(new_papers)} new papers for "
                f"'{subscription.topic}' to user {user.id}"
            )
        except OwnerNotFound as e:
            cycle.error = "User not found"
            logger.warning(f"Subscription {subscription.id}: {e}")
        except Exception as e:
            cycle.error = get_error_message(e)
            logger.error(f"❌ Error processing subscription {subscription.id}: {cycle.error}")
        return cycle

    async def _fetch_candidates(self, subscription: Subscription, max_results: int) -> SearchOutcome:
        if subscription.category:
            return await self.search_client.search_filtered(SearchFilters(
                query=subscription.topic,
                category=subscription.category,
                max_results=max_results,
                sort_by="submittedDate",
                sort_order="descending",
            ))
        return await self.search_client.search(SearchQuery(topic=subscription.topic, max_results=max_results))

    async def _deliver(self, chat_id: int, message: str, config: WorkerConfig, run: _RunState) -> bool:
        # Separate throttle for the Telegram side, applied between sends
        if run.sends and config.notification_delay_ms > 0:
            await self._sleep(config.notification_delay_ms / 1000)
        run.sends += 1
        if config.dry_run:
            logger.info(f"DRY RUN: would notify chat {chat_id}")
            return True
        return await self.notifier.send(chat_id, message)

    async def _advance(self, subscription: Subscription, config: WorkerConfig):
        if config.dry_run:
            return
        await self.db.advance_last_run(subscription.id, self._now())
