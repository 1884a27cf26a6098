"""Publishing content models read by the public API.

These tables are owned by the authoring side of the application; this
service only ever selects from them.
"""

import uuid

from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    """Author profile embedded in article payloads."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True, default=_uuid)
    username = Column(String, unique=True)
    full_name = Column(String)
    avatar_url = Column(String)


class Category(Base):
    __tablename__ = "categories"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Category(slug='{self.slug}')>"


class ArticleTag(Base):
    """One tag of an article; (article_id, tag) is unique so tags form a set."""

    __tablename__ = "article_tags"

    article_id = Column(
        String, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True
    )
    tag = Column(String, primary_key=True, index=True)


class Article(Base):
    __tablename__ = "articles"

    id = Column(String, primary_key=True, default=_uuid)
    title = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)
    excerpt = Column(Text)
    content = Column(Text)
    featured_image = Column(String)
    reading_time = Column(Integer, default=0, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    status = Column(String, default="draft", nullable=False, index=True)
    category_id = Column(String, ForeignKey("categories.id"), index=True)
    author_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    published_at = Column(DateTime(timezone=True), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    category = relationship(Category, lazy="joined")
    author = relationship(Profile, lazy="joined")
    tag_rows = relationship(
        ArticleTag, cascade="all, delete-orphan", lazy="selectin", order_by=ArticleTag.tag
    )
    tags = association_proxy("tag_rows", "tag", creator=lambda tag: ArticleTag(tag=tag))

    def __repr__(self):
        return f"<Article(slug='{self.slug}', status='{self.status}')>"
