"""API Key model."""

from sqlalchemy import Column, String, Integer, Boolean, Date, DateTime
from sqlalchemy.sql import func
from ..database import Base


class APIKey(Base):
    """API key issued to an account for the public API.

    Only the SHA-256 hash of the secret is stored.
    """

    __tablename__ = "api_keys"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False, default="Default")
    key_hash = Column(String, unique=True, nullable=False, index=True)
    daily_limit = Column(Integer, default=100, nullable=False)
    requests_today = Column(Integer, default=0, nullable=False)
    last_reset_date = Column(Date)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_used_at = Column(DateTime(timezone=True))

    def __repr__(self):
        return f"<APIKey(id='{self.id}', owner_id='{self.owner_id}')>"
