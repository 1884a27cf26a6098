"""API key management routes for operators.

The public gateway only ever mutates counters; everything else about a key
(creation, limits, activation, deletion) happens here.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db
from ..models import APIKey, APIRequestLog
from ..schemas import (
    APIKeyCreateRequest,
    APIKeyInfo,
    APIKeyListResponse,
    APIKeyResponse,
    APIKeyUpdateRequest,
    RequestLogInfo,
    UsageResponse,
)
from ..utils.auth import APIKeyManager
from ..utils.logging import get_logger
from ..utils.quota import utc_today
from .dependencies import get_api_key_or_404, get_key_manager, verify_admin_token

logger = get_logger(__name__)
router = APIRouter(
    prefix="/v1/api-keys",
    tags=["API Keys"],
    dependencies=[Depends(verify_admin_token)],
)


@router.post("", response_model=APIKeyResponse, status_code=201)
async def create_api_key(
    request: APIKeyCreateRequest, key_manager: APIKeyManager = Depends(get_key_manager)
):
    """Create a new API key. The raw key is only returned here."""
    api_key, raw_key = key_manager.create_api_key(
        owner_id=request.owner_id, name=request.name, daily_limit=request.daily_limit
    )
    logger.info("api_key_created", api_key_id=api_key.id, owner_id=api_key.owner_id)
    return APIKeyResponse(**APIKeyInfo.model_validate(api_key).model_dump(), key=raw_key)


@router.get("", response_model=APIKeyListResponse)
async def list_api_keys(owner_id: Optional[str] = None, db: Session = Depends(get_db)):
    """List keys, newest first, optionally for a single owner."""
    query = db.query(APIKey)
    if owner_id:
        query = query.filter(APIKey.owner_id == owner_id)
    keys = query.order_by(APIKey.created_at.desc(), APIKey.id).all()
    today = utc_today()

    return APIKeyListResponse(
        data=[APIKeyInfo.model_validate(key) for key in keys],
        # Counters of keys not used since an earlier day are still pending their reset
        total_requests_today=sum(
            key.requests_today for key in keys if key.last_reset_date == today
        ),
    )


@router.get("/{key_id}", response_model=APIKeyInfo)
async def get_api_key(api_key: APIKey = Depends(get_api_key_or_404)):
    return api_key


@router.patch("/{key_id}", response_model=APIKeyInfo)
async def update_api_key(
    request: APIKeyUpdateRequest,
    api_key: APIKey = Depends(get_api_key_or_404),
    db: Session = Depends(get_db),
):
    """Rename a key, change its daily limit, or toggle it on and off."""
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(api_key, field, value)
    db.commit()
    db.refresh(api_key)

    logger.info("api_key_updated", api_key_id=api_key.id, fields=sorted(changes))
    return api_key


@router.post("/{key_id}/reset", response_model=APIKeyInfo)
async def reset_api_key_counter(
    api_key: APIKey = Depends(get_api_key_or_404),
    key_manager: APIKeyManager = Depends(get_key_manager),
):
    """Give a key its full daily quota back."""
    key_manager.reset_counter(api_key)
    logger.info("api_key_counter_reset", api_key_id=api_key.id)
    return api_key


@router.delete("/{key_id}")
async def delete_api_key(
    api_key: APIKey = Depends(get_api_key_or_404),
    key_manager: APIKeyManager = Depends(get_key_manager),
    db: Session = Depends(get_db),
):
    """Delete a key together with its request logs."""
    key_id = api_key.id
    db.query(APIRequestLog).filter(APIRequestLog.api_key_id == key_id).delete()
    key_manager.delete_api_key(api_key)

    logger.info("api_key_deleted", api_key_id=key_id)
    return {"message": "API key deleted successfully", "id": key_id}


@router.get("/{key_id}/logs", response_model=List[RequestLogInfo])
async def list_request_logs(
    limit: int = Query(100, ge=1, le=500),
    api_key: APIKey = Depends(get_api_key_or_404),
    db: Session = Depends(get_db),
):
    """Most recent requests made with a key."""
    return (
        db.query(APIRequestLog)
        .filter(APIRequestLog.api_key_id == api_key.id)
        .order_by(APIRequestLog.created_at.desc(), APIRequestLog.id.desc())
        .limit(limit)
        .all()
    )


@router.get("/{key_id}/usage", response_model=UsageResponse)
async def get_usage(api_key: APIKey = Depends(get_api_key_or_404), db: Session = Depends(get_db)):
    """Request totals for a key, broken down by response status."""
    try:
        status_stats = (
            db.query(
                APIRequestLog.status_code,
                func.count(APIRequestLog.id).label("requests"),
            )
            .filter(APIRequestLog.api_key_id == api_key.id)
            .group_by(APIRequestLog.status_code)
            .all()
        )
    except Exception as e:
        logger.error("usage_query_failed", api_key_id=api_key.id, error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to get usage stats: {str(e)}")

    status_breakdown = {str(stat.status_code): stat.requests for stat in status_stats}
    return UsageResponse(
        api_key_id=api_key.id,
        total_requests=sum(status_breakdown.values()),
        requests_today=api_key.requests_today,
        daily_limit=api_key.daily_limit,
        status_breakdown=status_breakdown,
    )
