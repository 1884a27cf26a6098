import secrets
import hashlib
import uuid
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ..config import settings
from ..models.api_key import APIKey
from .logging import get_logger
from .quota import Admission, Admitted, Rejected, needs_reset, utc_now, utc_today

logger = get_logger(__name__)


def hash_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()


class APIKeyManager:
    """Manages API key creation, lookup, caching and daily quota accounting."""

    def __init__(self, db: Session, redis_client=None):
        self.db = db
        self.redis = redis_client

    def generate_api_key(self) -> Tuple[str, str]:
        """Generate a new API key and its hash."""
        key = f"{settings.api_key_prefix}{secrets.token_urlsafe(32)}"
        return key, hash_key(key)

    def create_api_key(
        self, owner_id: str, name: str = "Default", daily_limit: Optional[int] = None
    ) -> Tuple[APIKey, str]:
        """Create a new API key. Returns the record and the raw key."""
        key, key_hash = self.generate_api_key()

        api_key = APIKey(
            id=f"ak_{uuid.uuid4().hex[:16]}",
            owner_id=owner_id,
            name=name,
            key_hash=key_hash,
            daily_limit=daily_limit or settings.default_daily_limit,
            requests_today=0,
            last_reset_date=utc_today(),
            is_active=True,
        )

        self.db.add(api_key)
        self.db.commit()
        self.db.refresh(api_key)

        self._cache(key_hash, api_key.id)
        return api_key, key

    def verify_api_key(self, key: str) -> Optional[APIKey]:
        """Return the record for a raw key, active or not, or None."""
        key_hash = hash_key(key)

        # Try Redis cache first
        if self.redis:
            try:
                key_id = self.redis.get(f"api_key:{key_hash}")
            except Exception as e:
                logger.warning("key_cache_read_failed", error=str(e))
                key_id = None
            if key_id:
                api_key = self.db.get(APIKey, key_id)
                if api_key is not None and api_key.key_hash == key_hash:
                    return api_key

        api_key = self.db.query(APIKey).filter(APIKey.key_hash == key_hash).first()

        if api_key is not None:
            self._cache(key_hash, api_key.id)

        return api_key

    def reset_if_new_day(self, api_key: APIKey, now: Optional[datetime] = None) -> bool:
        """Zero the counter on first use after the UTC date changed."""
        now = now or utc_now()
        if not needs_reset(api_key.last_reset_date, now):
            return False

        today = utc_today(now)
        self.db.execute(
            update(APIKey)
            .where(
                APIKey.id == api_key.id,
                or_(APIKey.last_reset_date.is_(None), APIKey.last_reset_date != today),
            )
            .values(requests_today=0, last_reset_date=today)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(api_key)
        logger.info("daily_counter_reset", api_key_id=api_key.id, date=today.isoformat())
        return True

    def admit(self, api_key: APIKey, now: Optional[datetime] = None) -> Admission:
        """Charge one request against the daily quota if any is left.

        The check and the increment are one conditional UPDATE, so concurrent
        requests for the same key cannot both take the last unit.
        """
        now = now or utc_now()
        result = self.db.execute(
            update(APIKey)
            .where(APIKey.id == api_key.id, APIKey.requests_today < APIKey.daily_limit)
            .values(requests_today=APIKey.requests_today + 1, last_used_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(api_key)

        if result.rowcount == 1:
            return Admitted(limit=api_key.daily_limit, used=api_key.requests_today)
        return Rejected(limit=api_key.daily_limit, used=api_key.requests_today)

    def reset_counter(self, api_key: APIKey):
        """Operator reset of today's counter."""
        api_key.requests_today = 0
        api_key.last_reset_date = utc_today()
        self.db.commit()
        self.db.refresh(api_key)

    def delete_api_key(self, api_key: APIKey):
        key_hash = api_key.key_hash
        self.db.delete(api_key)
        self.db.commit()
        self.evict(key_hash)

    def evict(self, key_hash: str):
        if self.redis:
            try:
                self.redis.delete(f"api_key:{key_hash}")
            except Exception as e:
                logger.warning("key_cache_evict_failed", error=str(e))

    def _cache(self, key_hash: str, key_id: str):
        if self.redis:
            try:
                self.redis.setex(f"api_key:{key_hash}", settings.key_cache_ttl, key_id)
            except Exception as e:
                logger.warning("key_cache_write_failed", error=str(e))
