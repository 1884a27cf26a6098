from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .config import settings
from .utils.logging import get_logger, setup_logging

# Configure logging
setup_logging(settings.log_level)
logger = get_logger(__name__)

# Import after logging setup
from .database import check_connection, create_tables, get_db
from .api.keys import router as keys_router
from .api.public import router as public_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("service_starting", api_root=settings.api_root)

    try:
        create_tables()
        logger.info("database_initialized")
    except Exception as e:
        logger.error("database_initialization_failed", error=str(e))

    if not settings.admin_token:
        logger.warning("key_management_disabled", reason="ADMIN_TOKEN not set")

    yield

    logger.info("service_stopping")


# Create FastAPI app
app = FastAPI(
    title=settings.api_name,
    description="Read-only public API for published articles and categories",
    version=settings.api_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Browser preflights; the gateway also sets its CORS headers on every response
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(404)
async def not_found_handler(request, exc):
    detail = getattr(exc, "detail", None) or "Not found"
    return JSONResponse(status_code=404, content={"detail": detail})


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    logger.error("internal_server_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Root endpoints
@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": settings.api_name,
        "version": settings.api_version,
        "description": "Read-only public API for published articles and categories",
        "status": "online",
        "endpoints": {
            "health": "/health",
            "docs": "/docs",
            "public_api": settings.api_root,
            "api_keys": "/v1/api-keys",
        },
    }


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint."""
    if not check_connection(db):
        return JSONResponse(
            status_code=503, content={"status": "unhealthy", "database": "unreachable"}
        )
    return {"status": "healthy", "database": "connected"}


# Include API routers
app.include_router(public_router)
app.include_router(keys_router)


# Development server
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "content_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level,
    )
