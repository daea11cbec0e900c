from urllib.parse import quote
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
from paperwatch.arxiv_config import SORT_BY_OPTIONS, SORT_ORDER_OPTIONS

def _normalize(text: str) -> str:
    # ":" and "=" are key separators, so they are percent-escaped
    return quote(" ".join(text.lower().split()), safe=" ")

def _check_choice(value: str, allowed: tuple) -> str:
    if value not in allowed:
        raise ValueError(f"must be one of: {', '.join(allowed)}")
    return value

class Paper(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # arXiv id without version suffix
    title: str
    summary: str = ""
    published: str = ""  # YYYY-MM-DD
    link: str
    authors: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)

class User(BaseModel):
    id: int
    chat_id: int  # Telegram delivery address
    username: Optional[str] = None

class Subscription(BaseModel):
    id: int
    user_id: int
    topic: str
    category: Optional[str] = None
    interval_hours: int = Field(default=24, gt=0)
    last_run_at: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

class SearchQuery(BaseModel):
    """Plain topic search, the shape used by the subscription worker and /search."""
    topic: str
    start: int = Field(default=0, ge=0)
    max_results: int = Field(default=5, gt=0)
    sort_by: str = "submittedDate"
    sort_order: str = "descending"

    @field_validator("sort_by")
    @classmethod
    def valid_sort_by(cls, v: str) -> str:
        return _check_choice(v, SORT_BY_OPTIONS)

    @field_validator("sort_order")
    @classmethod
    def valid_sort_order(cls, v: str) -> str:
        return _check_choice(v, SORT_ORDER_OPTIONS)

    def cache_key(self) -> str:
        return ":".join([
            "topic",
            _normalize(self.topic),
            str(self.start),
            str(self.max_results),
            self.sort_by,
            self.sort_order,
        ])

class SearchFilters(BaseModel):
    """Advanced search; every set field is AND-ed into the arXiv query."""
    query: Optional[str] = None
    author: Optional[str] = None
    title: Optional[str] = None
    category: Optional[str] = None
    start: int = Field(default=0, ge=0)
    max_results: int = Field(default=10, gt=0)
    sort_by: str = "relevance"
    sort_order: str = "descending"

    @field_validator("sort_by")
    @classmethod
    def valid_sort_by(cls, v: str) -> str:
        return _check_choice(v, SORT_BY_OPTIONS)

    @field_validator("sort_order")
    @classmethod
    def valid_sort_order(cls, v: str) -> str:
        return _check_choice(v, SORT_ORDER_OPTIONS)

    def has_criteria(self) -> bool:
        return any((v or "").strip() for v in (self.query, self.author, self.title, self.category))

    def cache_key(self) -> str:
        # Fixed field order so logically identical filters share one entry
        parts = ["adv"]
        for name in ("query", "author", "title", "category"):
            value = getattr(self, name)
            parts.append(f"{name}={_normalize(value) if value else ''}")
        parts += [str(self.start), str(self.max_results), self.sort_by, self.sort_order]
        return ":".join(parts)
