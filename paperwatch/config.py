from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from paperwatch.arxiv_config import ARXIV_API_URL as DEFAULT_ARXIV_API_URL

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # System
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "app.log"  # under DATA_DIR; empty disables the file sink
    DATA_DIR: Path = Path("./data")
    DATABASE_FILE: str = "paperwatch.db"

    # Telegram
    TELEGRAM_BOT_TOKEN: str | None = None

    # arXiv API
    ARXIV_API_URL: str = DEFAULT_ARXIV_API_URL
    ARXIV_REQUESTS_PER_SECOND: float = 0.33  # arXiv asks for <= 1 request every 3 seconds
    ARXIV_TIMEOUT_SECONDS: float = 30.0

    # Retry (seconds)
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY: float = 1.0
    RETRY_MAX_DELAY: float = 10.0
    RETRY_BACKOFF_MULTIPLIER: float = 2.0

    # Result cache
    CACHE_TTL_SECONDS: float = 3600
    CACHE_SWEEP_INTERVAL_SECONDS: float = 300

    # Cron trigger
    CRON_SECRET: str | None = None

    # Subscription worker
    WORKER_MAX_SUBSCRIPTIONS: int = 50
    WORKER_MAX_PAPERS_PER_SUBSCRIPTION: int = 5
    WORKER_NOTIFICATION_DELAY_MS: int = 1000

    @property
    def database_path(self) -> Path:
        return self.DATA_DIR / self.DATABASE_FILE

    @property
    def log_file_path(self) -> Path | None:
        return self.DATA_DIR / self.LOG_FILE if self.LOG_FILE else None

    def ensure_dirs(self):
        self.DATA_DIR.mkdir(parents=True, exist_ok=True)

settings = Settings()
