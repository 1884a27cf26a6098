import hmac
from fastapi import Depends, HTTPException, Header
from sqlalchemy.orm import Session
from typing import Optional

from ..config import settings
from ..database import get_db, get_redis
from ..models.api_key import APIKey
from ..utils.auth import APIKeyManager


async def verify_admin_token(
    admin_token: Optional[str] = Header(None, alias="x-admin-token"),
) -> None:
    """Guard for key management routes."""
    if not settings.admin_token:
        raise HTTPException(status_code=403, detail="Key management is disabled")

    # Headers arrive latin-1 decoded; compare bytes so non-ASCII input is a plain mismatch
    if not admin_token or not hmac.compare_digest(
        admin_token.encode(), settings.admin_token.encode()
    ):
        raise HTTPException(status_code=401, detail="Invalid or missing x-admin-token header")


def get_key_manager(db: Session = Depends(get_db)) -> APIKeyManager:
    return APIKeyManager(db, get_redis())


def get_api_key_or_404(key_id: str, db: Session = Depends(get_db)) -> APIKey:
    api_key = db.get(APIKey, key_id)
    if api_key is None:
        raise HTTPException(status_code=404, detail=f"API key '{key_id}' not found")
    return api_key
