import math
import re
import sys
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Dict, Any, Mapping
from datetime import datetime, date

from .config import settings

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")

# Keeps (page - 1) * limit inside a signed 64-bit OFFSET
MAX_PAGE = sys.maxsize // settings.max_page_size


def _leading_int(value: Any, default: int) -> int:
    """Parse the leading integer of a query value, like ``parseInt``."""
    if value is None:
        return default
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(str(value))
    if not match:
        return default
    try:
        return int(match.group(1))
    except ValueError:
        # More digits than int() will convert
        return default


# =============================================================================
# Query Schemas
# =============================================================================


class ArticleListParams(BaseModel):
    """Query parameters of ``GET /articles`` with defaulting and clamping applied."""

    page: int = 1
    limit: int = settings.default_page_size
    category: Optional[str] = None
    search: Optional[str] = None
    tag: Optional[str] = None

    @field_validator("page", mode="before")
    @classmethod
    def clamp_page(cls, value):
        return min(max(1, _leading_int(value, 1)), MAX_PAGE)

    @field_validator("limit", mode="before")
    @classmethod
    def clamp_limit(cls, value):
        limit = _leading_int(value, settings.default_page_size)
        return min(max(1, limit), settings.max_page_size)

    @field_validator("category", "search", "tag", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return value or None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "ArticleListParams":
        return cls(**{name: query[name] for name in cls.model_fields if name in query})


# =============================================================================
# Content Schemas
# =============================================================================


class CategoryRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str


class AuthorRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: Optional[str] = None
    full_name: Optional[str] = None


class AuthorDetail(AuthorRef):
    avatar_url: Optional[str] = None


class ArticleSummary(BaseModel):
    """Article as listed; never carries the full content."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    slug: str
    excerpt: Optional[str] = None
    featured_image: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    reading_time: int = 0
    views: int = 0
    published_at: Optional[datetime] = None
    category: Optional[CategoryRef] = None
    author: Optional[AuthorRef] = None

    @field_validator("tags", mode="before")
    @classmethod
    def tags_as_list(cls, value):
        return list(value) if value is not None else []


class ArticleDetail(ArticleSummary):
    content: Optional[str] = None
    created_at: Optional[datetime] = None
    author: Optional[AuthorDetail] = None


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
            has_next=page * limit < total,
            has_prev=page > 1,
        )


# =============================================================================
# API Key Schemas
# =============================================================================


class APIKeyCreateRequest(BaseModel):
    """Request to create new API key."""

    owner_id: str = Field(..., min_length=1, description="Account that owns the key")
    name: str = Field("Default", min_length=1, max_length=255)
    daily_limit: Optional[int] = Field(None, ge=1, description="Requests per UTC day")


class APIKeyUpdateRequest(BaseModel):
    """Partial update of an API key."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    daily_limit: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class APIKeyInfo(BaseModel):
    """API key information (without the actual key)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    name: str
    daily_limit: int
    requests_today: int
    last_reset_date: Optional[date] = None
    is_active: bool
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None


class APIKeyResponse(APIKeyInfo):
    """API key creation response; the only time the raw key is returned."""

    key: str


class APIKeyListResponse(BaseModel):
    data: List[APIKeyInfo]
    total_requests_today: int


# =============================================================================
# Usage Schemas
# =============================================================================


class RequestLogInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    endpoint: str
    method: str
    status_code: int
    created_at: Optional[datetime] = None


class UsageResponse(BaseModel):
    """Usage statistics response."""

    api_key_id: str
    total_requests: int
    requests_today: int
    daily_limit: int
    status_breakdown: Dict[str, int]
