import aiosqlite
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Set
from paperwatch.config import settings
from paperwatch.errors import PersistenceFault
from paperwatch.models.items import Subscription, User
from paperwatch.services.logger import logger

INIT_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    chat_id INTEGER NOT NULL UNIQUE,
    username TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    topic TEXT NOT NULL,
    category TEXT,
    interval_hours INTEGER NOT NULL DEFAULT 24,
    last_run_at TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS paper_views (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    arxiv_id TEXT NOT NULL,
    viewed_at TEXT NOT NULL,
    UNIQUE(user_id, arxiv_id),
    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_subscriptions_active ON subscriptions(is_active, id);
"""

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def to_db_time(value: datetime) -> str:
    # Fixed-width UTC text so string comparison in SQL matches time order
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")

def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

def _subscription_from_row(row) -> Subscription:
    return Subscription(
        id=row["id"],
        user_id=row["user_id"],
        topic=row["topic"],
        category=row["category"],
        interval_hours=row["interval_hours"],
        last_run_at=from_db_time(row["last_run_at"]),
        is_active=bool(row["is_active"]),
        created_at=from_db_time(row["created_at"]),
    )

class Database:
    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or settings.database_path

    async def init(self):
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        async with self.session("init") as conn:
            await conn.executescript(INIT_SQL)
            await conn.commit()
        logger.info(f"Database initialized at {self.db_path}")

    @asynccontextmanager
    async def session(self, action: str):
        """Connection with Row access; sqlite errors surface as PersistenceFault."""
        try:
            async with aiosqlite.connect(self.db_path) as conn:
                conn.row_factory = aiosqlite.Row
                yield conn
        except aiosqlite.Error as e:
            logger.error(f"Database error during {action}: {e}")
            raise PersistenceFault(f"{action} failed: {e}") from e

    # Users

    async def find_or_create_user(self, chat_id: int, username: Optional[str] = None) -> User:
        async with self.session("find_or_create_user") as conn:
            await conn.execute(
                "INSERT OR IGNORE INTO users (chat_id, username, created_at) VALUES (?, ?, ?)",
                (chat_id, username, to_db_time(utcnow()))
            )
            await conn.commit()
            cursor = await conn.execute("SELECT id, chat_id, username FROM users WHERE chat_id = ?", (chat_id,))
            row = await cursor.fetchone()
        return User(id=row["id"], chat_id=row["chat_id"], username=row["username"])

    async def find_user_by_id(self, user_id: int) -> Optional[User]:
        async with self.session("find_user_by_id") as conn:
            cursor = await conn.execute("SELECT id, chat_id, username FROM users WHERE id = ?", (user_id,))
            row = await cursor.fetchone()
        if row is None:
            return None
        return User(id=row["id"], chat_id=row["chat_id"], username=row["username"])

    # Subscriptions

    async def create_subscription(
        self,
        user_id: int,
        topic: str,
        category: Optional[str] = None,
        interval_hours: int = 24,
        last_run_at: Optional[datetime] = None,
    ) -> Subscription:
        async with self.session("create_subscription") as conn:
            cursor = await conn.execute(
                """
                INSERT INTO subscriptions (user_id, topic, category, interval_hours, last_run_at, is_active, created_at)
                VALUES (?, ?, ?, ?, ?, 1, ?)
                """,
                (user_id, topic, category, interval_hours,
                 to_db_time(last_run_at) if last_run_at else None, to_db_time(utcnow()))
            )
            await conn.commit()
            subscription_id = cursor.lastrowid
        return await self.get_subscription(subscription_id)

    async def get_subscription(self, subscription_id: int) -> Optional[Subscription]:
        async with self.session("get_subscription") as conn:
            cursor = await conn.execute("SELECT * FROM subscriptions WHERE id = ?", (subscription_id,))
            row = await cursor.fetchone()
        return _subscription_from_row(row) if row else None

    async def set_subscription_active(self, subscription_id: int, active: bool) -> bool:
        async with self.session("set_subscription_active") as conn:
            cursor = await conn.execute(
                "UPDATE subscriptions SET is_active = ? WHERE id = ?", (1 if active else 0, subscription_id)
            )
            await conn.commit()
            return cursor.rowcount > 0

    async def list_active_subscriptions(self, after_id: int = 0, limit: int = 100) -> List[Subscription]:
        """One page of active subscriptions in creation (id) order."""
        async with self.session("list_active_subscriptions") as conn:
            cursor = await conn.execute(
                "SELECT * FROM subscriptions WHERE is_active = 1 AND id > ? ORDER BY id LIMIT ?",
                (after_id, limit)
            )
            rows = await cursor.fetchall()
        return [_subscription_from_row(r) for r in rows]

    async def advance_last_run(self, subscription_id: int, now: Optional[datetime] = None) -> bool:
        """Set last_run_at to `now` unless that would move it backwards."""
        stamp = to_db_time(now or utcnow())
        async with self.session("advance_last_run") as conn:
            cursor = await conn.execute(
                """
                UPDATE subscriptions SET last_run_at = ?
                WHERE id = ? AND (last_run_at IS NULL OR last_run_at < ?)
                """,
                (stamp, subscription_id, stamp)
            )
            await conn.commit()
            return cursor.rowcount > 0

    # Paper views

    async def get_viewed_ids(self, user_id: int, arxiv_ids: Iterable[str]) -> Set[str]:
        ids = list(dict.fromkeys(arxiv_ids))
        if not ids:
            return set()
        placeholders = ",".join("?" for _ in ids)
        async with self.session("get_viewed_ids") as conn:
            cursor = await conn.execute(
                f"SELECT arxiv_id FROM paper_views WHERE user_id = ? AND arxiv_id IN ({placeholders})",
                (user_id, *ids)
            )
            rows = await cursor.fetchall()
        return {row["arxiv_id"] for row in rows}

    async def mark_viewed(self, user_id: int, arxiv_ids: Iterable[str]) -> int:
        """Insert-once view records. Returns how many were new."""
        ids = list(dict.fromkeys(arxiv_ids))
        if not ids:
            return 0
        stamp = to_db_time(utcnow())
        async with self.session("mark_viewed") as conn:
            before = conn.total_changes
            await conn.executemany(
                "INSERT OR IGNORE INTO paper_views (user_id, arxiv_id, viewed_at) VALUES (?, ?, ?)",
                [(user_id, arxiv_id, stamp) for arxiv_id in ids]
            )
            await conn.commit()
            return conn.total_changes - before
