from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.sql import func
from ..database import Base


class APIRequestLog(Base):
    """Audit row written once per admitted or quota-rejected request."""

    __tablename__ = "api_request_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    api_key_id = Column(
        String, ForeignKey("api_keys.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Request details
    endpoint = Column(String, nullable=False)
    method = Column(String, nullable=False)
    status_code = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<APIRequestLog(id={self.id}, endpoint='{self.endpoint}', status={self.status_code})>"

    def to_dict(self):
        """Convert to dictionary."""
        return {
            "id": self.id,
            "api_key_id": self.api_key_id,
            "endpoint": self.endpoint,
            "method": self.method,
            "status_code": self.status_code,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
