"""Shared fixtures: an in-memory database wired into the app via get_db."""

from datetime import datetime, timedelta, timezone

import pytest
import redis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from content_api.database import Base, get_db
from content_api.main import app
from content_api.models import APIKey, Article, Category, Profile
from content_api.utils.auth import APIKeyManager


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_key(db):
    """Create a key and return (record id, raw secret)."""

    def _make(daily_limit=100, requests_today=0, last_reset_date=None, is_active=True):
        api_key, raw_key = APIKeyManager(db).create_api_key(
            owner_id="owner-1", name="test", daily_limit=daily_limit
        )
        api_key.requests_today = requests_today
        api_key.is_active = is_active
        if last_reset_date is not None:
            api_key.last_reset_date = last_reset_date
        db.commit()
        return api_key.id, raw_key

    return _make


@pytest.fixture()
def reload_key(session_factory):
    def _reload(key_id):
        session = session_factory()
        try:
            return session.get(APIKey, key_id)
        finally:
            session.close()

    return _reload


@pytest.fixture()
def author(db):
    profile = Profile(id="author-1", username="writer", full_name="A. Writer", avatar_url="https://cdn/a.png")
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture()
def categories(db):
    news = Category(id="cat-news", name="News", slug="news", description="Daily news")
    art = Category(id="cat-art", name="Art", slug="art")
    db.add_all([news, art])
    db.commit()
    return {"news": news.id, "art": art.id}


@pytest.fixture()
def make_article(db, author):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(title=None, status="published", category_id=None, tags=(), content="<p>body</p>"):
        counter["n"] += 1
        n = counter["n"]
        article = Article(
            id=f"art-{n}",
            title=title or f"Article {n}",
            slug=f"article-{n}",
            excerpt=f"Excerpt {n}",
            content=content,
            reading_time=3,
            status=status,
            category_id=category_id,
            author_id=author.id,
            published_at=base + timedelta(hours=n),
            tags=list(tags),
        )
        db.add(article)
        db.commit()
        return article.id

    return _make


class FakeRedis:
    """Dict-backed stand-in for the few redis-py calls the key cache makes."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, name):
        return self.store.get(name)

    def setex(self, name, time, value):
        self.store[name] = value
        self.ttls[name] = time
        return True

    def delete(self, *names):
        removed = 0
        for name in names:
            if self.store.pop(name, None) is not None:
                removed += 1
            self.ttls.pop(name, None)
        return removed


class BrokenRedis:
    """Every call fails the way redis-py does when the server is gone."""

    def _fail(self, *args, **kwargs):
        raise redis.exceptions.ConnectionError("Error 111 connecting to localhost:6379")

    get = setex = delete = _fail


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def broken_redis():
    return BrokenRedis()
