from pydantic import BaseModel, Field
from typing import Optional, List
from paperwatch.models.items import Paper

class SearchOutcome(BaseModel):
    papers: List[Paper] = Field(default_factory=list)
    ok: bool = True
    from_cache: bool = False
    error: Optional[str] = None

class RateLimiterStatus(BaseModel):
    can_proceed: bool
    wait_time_ms: float
    pending_requests: int

class WorkerConfig(BaseModel):
    max_subscriptions: int = Field(default=50, gt=0)
    max_papers_per_subscription: int = Field(default=5, gt=0)
    notification_delay_ms: int = Field(default=1000, ge=0)
    mark_as_viewed: bool = True
    dry_run: bool = False

class CycleResult(BaseModel):
    subscription_id: int
    user_id: int
    topic: str
    success: bool = False
    papers_found: int = 0
    papers_sent: int = 0
    error: Optional[str] = None

class WorkerResult(BaseModel):
    processed: int = 0
    successful: int = 0
    failed: int = 0
    results: List[CycleResult] = Field(default_factory=list)
    duration_ms: float = 0

    def record(self, result: CycleResult):
        self.results.append(result)
        self.processed += 1
        if result.success:
            self.successful += 1
        else:
            self.failed += 1

class WorkerStatus(BaseModel):
    due_count: int
