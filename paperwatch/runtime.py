"""
Process-wide wiring. One RateLimiter and one ResultCache are created here and
handed to the single ArxivClient, which both the worker and any chat handlers
use, so all arXiv traffic shares the same budget.
"""
from typing import Optional
from paperwatch.config import settings
from paperwatch.models.results import WorkerConfig
from paperwatch.services.cache import CacheMaintenance, ResultCache
from paperwatch.services.database import Database
from paperwatch.services.logger import logger
from paperwatch.services.notifier import TelegramNotifier
from paperwatch.services.rate_limiter import RateLimiter
from paperwatch.tools.arxiv_client import ArxivClient
from paperwatch.workflows.subscription_worker import SubscriptionWorker

class Runtime:
    def __init__(
        self,
        db: Optional[Database] = None,
        search_client: Optional[ArxivClient] = None,
        notifier: Optional[TelegramNotifier] = None,
    ):
        self.db = db or Database()
        self.rate_limiter = RateLimiter(settings.ARXIV_REQUESTS_PER_SECOND, name="arXiv")
        self.cache = ResultCache(ttl=settings.CACHE_TTL_SECONDS)
        self.maintenance = CacheMaintenance(self.cache, settings.CACHE_SWEEP_INTERVAL_SECONDS)
        self.search_client = search_client or ArxivClient(self.rate_limiter, self.cache)
        self.notifier = notifier or TelegramNotifier()
        self.worker = SubscriptionWorker(self.db, self.search_client, self.notifier)

    async def start(self):
        await self.db.init()
        await self.notifier.initialize()
        self.maintenance.start()
        logger.info("Runtime started")

    async def stop(self):
        await self.maintenance.stop()
        await self.search_client.aclose()
        await self.notifier.shutdown()
        logger.info("Runtime stopped")

    @staticmethod
    def worker_config(**overrides) -> WorkerConfig:
        values = dict(
            max_subscriptions=settings.WORKER_MAX_SUBSCRIPTIONS,
            max_papers_per_subscription=settings.WORKER_MAX_PAPERS_PER_SUBSCRIPTION,
            notification_delay_ms=settings.WORKER_NOTIFICATION_DELAY_MS,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return WorkerConfig(**values)
