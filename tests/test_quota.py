from datetime import date, datetime, timedelta, timezone

from content_api.models import APIKey
from content_api.utils.auth import APIKeyManager, hash_key
from content_api.utils.quota import Admitted, Rejected, needs_reset, utc_today


def test_needs_reset_same_day():
    now = datetime(2024, 5, 2, 23, 59, tzinfo=timezone.utc)
    assert needs_reset(date(2024, 5, 2), now) is False


def test_needs_reset_after_midnight_utc():
    now = datetime(2024, 5, 3, 0, 0, 1, tzinfo=timezone.utc)
    assert needs_reset(date(2024, 5, 2), now) is True


def test_needs_reset_uses_utc_not_local_offset():
    # 2024-05-02 22:00 in UTC-05:00 is already 2024-05-03 in UTC
    now = datetime(2024, 5, 2, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert needs_reset(date(2024, 5, 3), now) is False
    assert needs_reset(date(2024, 5, 2), now) is True


def test_needs_reset_when_never_used():
    assert needs_reset(None, datetime(2024, 5, 2, tzinfo=timezone.utc)) is True


def test_admitted_remaining():
    assert Admitted(limit=10, used=4).remaining == 6
    assert Admitted(limit=10, used=10).remaining == 0


def test_create_api_key_stores_hash_only(db):
    api_key, raw_key = APIKeyManager(db).create_api_key(owner_id="owner-1")

    assert raw_key.startswith("cpk_")
    assert api_key.key_hash == hash_key(raw_key)
    assert raw_key not in {api_key.key_hash, api_key.id}
    assert api_key.requests_today == 0
    assert api_key.daily_limit == 100


def test_verify_api_key_returns_inactive_keys(db, make_key):
    key_id, raw_key = make_key(is_active=False)

    record = APIKeyManager(db).verify_api_key(raw_key)

    assert record.id == key_id
    assert record.is_active is False
    assert APIKeyManager(db).verify_api_key("cpk_unknown") is None


def test_admit_counts_consecutive_requests(db, make_key):
    key_id, _ = make_key(daily_limit=10, requests_today=3)
    manager = APIKeyManager(db)
    api_key = db.get(APIKey, key_id)

    for expected in range(4, 9):
        admission = manager.admit(api_key)
        assert admission == Admitted(limit=10, used=expected)

    assert db.get(APIKey, key_id).requests_today == 8


def test_admit_rejects_without_incrementing(db, make_key):
    key_id, _ = make_key(daily_limit=2, requests_today=2)
    manager = APIKeyManager(db)
    api_key = db.get(APIKey, key_id)

    assert manager.admit(api_key) == Rejected(limit=2, used=2)
    assert api_key.requests_today == 2


def test_reset_if_new_day(db, make_key):
    yesterday = utc_today() - timedelta(days=1)
    key_id, _ = make_key(daily_limit=5, requests_today=5, last_reset_date=yesterday)
    manager = APIKeyManager(db)
    api_key = db.get(APIKey, key_id)

    assert manager.reset_if_new_day(api_key) is True
    assert api_key.requests_today == 0
    assert api_key.last_reset_date == utc_today()

    assert manager.reset_if_new_day(api_key) is False


def test_created_key_is_cached_and_served_from_cache(db, fake_redis, monkeypatch):
    manager = APIKeyManager(db, fake_redis)
    api_key, raw_key = manager.create_api_key(owner_id="owner-1")
    cache_key = f"api_key:{hash_key(raw_key)}"

    assert fake_redis.store[cache_key] == api_key.id
    assert fake_redis.ttls[cache_key] == 3600

    def no_scan(*args, **kwargs):
        raise AssertionError("cache hit should not scan the table")

    monkeypatch.setattr(db, "query", no_scan)
    assert manager.verify_api_key(raw_key).id == api_key.id


def test_stale_cache_entry_falls_back_to_database(db, make_key, fake_redis):
    key_id, raw_key = make_key()
    cache_key = f"api_key:{hash_key(raw_key)}"
    fake_redis.store[cache_key] = "ak_deleted"

    record = APIKeyManager(db, fake_redis).verify_api_key(raw_key)

    assert record.id == key_id
    assert fake_redis.store[cache_key] == key_id


def test_unavailable_cache_falls_back_to_database(db, broken_redis):
    manager = APIKeyManager(db, broken_redis)
    api_key, raw_key = manager.create_api_key(owner_id="owner-1")

    assert manager.verify_api_key(raw_key).id == api_key.id
    assert manager.verify_api_key("cpk_unknown") is None

    manager.delete_api_key(api_key)
    assert manager.verify_api_key(raw_key) is None
