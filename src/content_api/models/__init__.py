"""Database models for the Content Public API."""

from .api_key import APIKey
from .request_log import APIRequestLog
from .content import Article, ArticleTag, Category, Profile

__all__ = ["APIKey", "APIRequestLog", "Article", "ArticleTag", "Category", "Profile"]
