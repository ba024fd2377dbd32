"""
TTRAC — LMS notification & grading backend
FastAPI entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError

from ttrac.core.config import settings
from ttrac.core.database import is_not_found
from ttrac.core.log import setup_logging
from ttrac.routers import assignments, enrollments, notifications, quizzes
from ttrac.services.realtime import hub
from ttrac.utils.response import error_response

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await hub.close()


app = FastAPI(
    title=settings.APP_NAME,
    description="Notification center, enrollment and grading API for the TTRAC LMS",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(APIError)
async def platform_error_handler(request: Request, exc: APIError):
    if is_not_found(exc):
        return JSONResponse(status_code=404, content=error_response("Not found"))
    logger.error("Platform error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=502, content=error_response("Failed to reach the data platform, please try again"))


# Include routers
app.include_router(notifications.router)
app.include_router(enrollments.router)
app.include_router(quizzes.router)
app.include_router(assignments.router)


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "status": "running",
        "auth_mode": settings.AUTH_MODE,
    }


@app.get("/api/health")
async def health():
    return {
        "status": "healthy",
        "auth_mode": settings.AUTH_MODE,
        "live_sessions": len(hub.active_users()),
    }
