"""
KinAPI ban list server.

Run with:
    uvicorn main:app --host 0.0.0.0 --port 3000
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.client_ip import get_client_ip
from app.core.config import settings
from app.routers import bans
from app.services.ip_ban_service import ip_ban_service
from app.services.rate_limiter import rate_limiter

logger = logging.getLogger("uvicorn.error")

RATE_LIMIT_MESSAGE = "You are sending requests too fast. Please wait a moment."


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "%s %s starting (store backend: %s)",
        settings.APP_NAME, settings.VERSION, settings.STORE_BACKEND,
    )
    yield
    await ip_ban_service.store.aclose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    docs_url=settings.DOCS_URL if settings.ENABLE_SWAGGER else None,
    redoc_url=settings.REDOC_URL if settings.ENABLE_SWAGGER else None,
    lifespan=lifespan,
)


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    if not settings.RATE_LIMIT_ENABLED:
        return await call_next(request)

    result = rate_limiter.hit(get_client_ip(request) or "unknown")
    headers = {
        "RateLimit-Limit": str(result.limit),
        "RateLimit-Remaining": str(result.remaining),
        "RateLimit-Reset": str(result.reset_seconds),
    }
    if not result.allowed:
        return JSONResponse({"detail": RATE_LIMIT_MESSAGE}, status_code=429, headers=headers)

    response = await call_next(request)
    response.headers.update(headers)
    return response


@app.middleware("http")
async def log_requests_middleware(request: Request, call_next):
    if not settings.API_REQUEST_LOGGING_ENABLED:
        return await call_next(request)

    start_time = time.perf_counter()
    response = await call_next(request)
    process_time = time.perf_counter() - start_time
    logger.info(
        "IP: %s Method: %s Path: %s Status: %d Duration: %.4fs",
        get_client_ip(request) or "unknown",
        request.method,
        request.url.path,
        response.status_code,
        process_time,
    )
    return response


# Added last so it wraps the others and preflight requests skip the rate limit
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(bans.router)


@app.get("/")
async def root():
    """Banner showing the server is up."""
    return {"message": f"{settings.APP_NAME} is running", "docs": settings.DOCS_URL}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
