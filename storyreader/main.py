"""
FastAPI application for the story reading engine
"""

import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from storyreader.api.progress import router as progress_router
from storyreader.api.reading import router as reading_router
from storyreader.config import settings
from storyreader.utils.logger import get_logger, setup_logging

setup_logging(
    level=settings.log_level,
    log_file=settings.log_file or None,
    enable_colors=True,
    include_timestamp=True,
)

logger = get_logger(__name__)

app = FastAPI(
    title="Story Reader",
    description="Read, preview and replay branching stories",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

logger.info("FastAPI application initialized")
logger.info(f"Log level: {settings.log_level}")
logger.info(f"Database: {settings.database_path}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next: Callable) -> Response:
    """Log all HTTP requests and responses"""
    request_id = str(uuid.uuid4())[:8]
    start_time = time.time()

    logger.info(
        f"[API] Request started: {request.method} {request.url.path}",
        extra={
            "component": "API",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        },
    )
    request.state.request_id = request_id

    try:
        response = await call_next(request)
    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(
            f"[API] Request failed: {request.method} {request.url.path} -> ERROR ({duration_ms:.2f}ms): {str(e)}",
            extra={
                "component": "API",
                "request_id": request_id,
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise

    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        f"[API] Request completed: {request.method} {request.url.path} -> {response.status_code} ({duration_ms:.2f}ms)",
        extra={
            "component": "API",
            "request_id": request_id,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


app.include_router(reading_router, prefix="/reading", tags=["reading"])
app.include_router(progress_router, prefix="/progress", tags=["progress"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Story Reader",
        "version": "0.1.0",
        "status": "running",
        "log_level": settings.log_level,
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on {settings.host}:{settings.port}")
    uvicorn.run(
        "storyreader.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower() if settings.log_level != "VERBOSE" else "debug",
    )
