"""Public read-only API gateway.

Every request under the API root goes through one pipeline: method check,
key authentication, lazy daily reset, quota admission, resource dispatch
and an audit row in ``api_request_logs``.
"""

from typing import Any, Dict, List, Tuple

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db, get_redis
from ..errors import (
    AuthenticationError,
    GatewayError,
    InactiveKeyError,
    InternalError,
    MethodNotAllowedError,
    NotFoundError,
    QuotaExceededError,
)
from ..models import APIKey, APIRequestLog, Article, ArticleTag, Category
from ..schemas import (
    ArticleDetail,
    ArticleListParams,
    ArticleSummary,
    CategoryOut,
    Pagination,
)
from ..utils.auth import APIKeyManager
from ..utils.logging import get_logger
from ..utils.quota import Admitted, Rejected

logger = get_logger(__name__)
router = APIRouter(prefix=settings.api_root, tags=["Public API"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, x-api-key",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
}

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
PUBLISHED = "published"


def json_response(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=data, status_code=status_code, headers=CORS_HEADERS)


def split_path(path: str) -> Tuple[str, str]:
    """Return (resource, resource_id) from the path below the API root."""
    parts = [part for part in path.split("/") if part]
    resource = parts[0] if parts else ""
    resource_id = parts[1] if len(parts) > 1 else ""
    return resource, resource_id


def audit_endpoint(resource: str, resource_id: str, query: str) -> str:
    endpoint = f"/{resource}"
    if resource_id:
        endpoint += f"/{resource_id}"
    if query:
        endpoint += f"?{query}"
    return endpoint


@router.api_route("", methods=ALL_METHODS, include_in_schema=False)
@router.api_route("/{path:path}", methods=ALL_METHODS)
async def public_api(request: Request, db: Session = Depends(get_db)):
    """Single entry point of the public API."""
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)

    try:
        api_key = authenticate(request, db)
    except GatewayError as e:
        logger.info("request_refused", status=e.status_code, reason=e.message)
        return json_response(e.to_payload(), e.status_code)

    resource, resource_id = split_path(request.path_params.get("path", ""))
    endpoint = audit_endpoint(resource, resource_id, request.url.query)

    key_manager = APIKeyManager(db, get_redis())
    try:
        key_manager.reset_if_new_day(api_key)
        admission = key_manager.admit(api_key)
    except Exception as e:
        db.rollback()
        logger.error("admission_failed", api_key_id=api_key.id, error=str(e))
        error = InternalError(str(e) or "Internal server error")
        record_request(db, api_key.id, endpoint, request.method, error.status_code)
        return json_response(error.to_payload(), error.status_code)

    if isinstance(admission, Rejected):
        logger.info(
            "quota_exceeded", api_key_id=api_key.id, limit=admission.limit, used=admission.used
        )
        error = QuotaExceededError(limit=admission.limit, used=admission.used)
        status_code, body = error.status_code, error.to_payload()
    else:
        status_code, body = dispatch(db, resource, resource_id, request, admission)

    record_request(db, api_key.id, endpoint, request.method, status_code)
    return json_response(body, status_code)


def authenticate(request: Request, db: Session) -> APIKey:
    """Admission checks that neither count nor log the request."""
    if request.method != "GET":
        raise MethodNotAllowedError("Method not allowed. Only GET requests are supported.")

    raw_key = request.headers.get("x-api-key")
    if not raw_key:
        raise AuthenticationError(
            "Missing x-api-key header",
            {"hint": "Include your API key in the request header: x-api-key: YOUR_KEY"},
        )

    api_key = APIKeyManager(db, get_redis()).verify_api_key(raw_key)
    if api_key is None:
        raise AuthenticationError("Invalid API key")
    if not api_key.is_active:
        raise InactiveKeyError("API key is inactive. Please contact support.")
    return api_key


def dispatch(
    db: Session, resource: str, resource_id: str, request: Request, admission: Admitted
) -> Tuple[int, Dict[str, Any]]:
    """Run the resource handler and turn its outcome into (status, body)."""
    try:
        if resource == "articles":
            if resource_id:
                body = get_article(db, resource_id)
            else:
                params = ArticleListParams.from_query(request.query_params)
                body = list_articles(db, params)
        elif resource == "categories":
            body = list_categories(db)
        elif resource and settings.strict_routing:
            raise NotFoundError("Unknown resource")
        else:
            body = api_info(admission)
        return 200, body
    except GatewayError as e:
        return e.status_code, e.to_payload()
    except Exception as e:
        db.rollback()
        logger.error("resource_query_failed", resource=resource, error=str(e))
        error = InternalError(str(e) or "Internal server error")
        return error.status_code, error.to_payload()


def list_articles(db: Session, params: ArticleListParams) -> Dict[str, Any]:
    conditions = [Article.status == PUBLISHED]
    if params.category:
        conditions.append(Article.category_id == params.category)
    if params.search:
        conditions.append(Article.title.icontains(params.search, autoescape=True))
    if params.tag:
        conditions.append(
            Article.id.in_(select(ArticleTag.article_id).where(ArticleTag.tag == params.tag))
        )

    total = db.scalar(select(func.count()).select_from(Article).where(*conditions)) or 0
    articles = []
    if params.offset < total:
        articles = db.scalars(
            select(Article)
            .where(*conditions)
            .order_by(Article.published_at.desc(), Article.id)
            .offset(params.offset)
            .limit(params.limit)
        ).all()

    return {
        "data": serialize(ArticleSummary, articles),
        "pagination": Pagination.build(params.page, params.limit, total).model_dump(),
    }


def get_article(db: Session, article_id: str) -> Dict[str, Any]:
    article = db.scalars(
        select(Article).where(Article.id == article_id, Article.status == PUBLISHED)
    ).first()
    # Drafts and missing ids answer identically
    if article is None:
        raise NotFoundError("Article not found")
    return {"data": ArticleDetail.model_validate(article).model_dump(mode="json")}


def list_categories(db: Session) -> Dict[str, Any]:
    categories = db.scalars(select(Category).order_by(Category.name)).all()
    return {"data": serialize(CategoryOut, categories)}


def api_info(admission: Admitted) -> Dict[str, Any]:
    return {
        "name": settings.api_name,
        "version": settings.api_version,
        "description": "Read-only API for accessing published articles and categories.",
        "endpoints": {
            "GET /articles": {
                "description": "List published articles",
                "params": {
                    "page": "Page number (default: 1)",
                    "limit": (
                        f"Items per page (default: {settings.default_page_size}, "
                        f"max: {settings.max_page_size})"
                    ),
                    "category": "Filter by category ID",
                    "search": "Search in article titles",
                    "tag": "Filter by tag",
                },
            },
            "GET /articles/:id": {"description": "Get single article by ID"},
            "GET /categories": {"description": "List all categories"},
        },
        "rate_limit": {
            "limit": admission.limit,
            "used": admission.used,
            "remaining": admission.remaining,
            "reset": "midnight UTC",
        },
        "docs": "See the API documentation page for examples.",
    }


def serialize(schema, rows) -> List[Dict[str, Any]]:
    return [schema.model_validate(row).model_dump(mode="json") for row in rows]


def record_request(db: Session, api_key_id: str, endpoint: str, method: str, status_code: int):
    """Append the audit row. Failures are logged and never reach the caller."""
    try:
        db.add(
            APIRequestLog(
                api_key_id=api_key_id,
                endpoint=endpoint,
                method=method,
                status_code=status_code,
            )
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("request_log_failed", api_key_id=api_key_id, error=str(e))
