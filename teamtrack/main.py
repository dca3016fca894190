"""
FastAPI application entry point.

Configures logging, middleware, routes, and exception handlers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from teamtrack import __version__
from teamtrack.core.config import settings
from teamtrack.core.database import AsyncSessionLocal
from teamtrack.core.dependencies import close_redis
from teamtrack.core.logging_config import RequestLoggingMiddleware, configure_logging
from teamtrack.routers import (
    activities,
    auth,
    comments,
    dashboard,
    labels,
    notifications,
    projects,
    search,
    tasks,
    users,
)
from teamtrack.services.user_service import UserService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging()
    logger.info("Starting teamtrack API in %s mode", settings.ENVIRONMENT)

    if settings.INITIAL_ADMIN_EMAIL:
        async with AsyncSessionLocal() as session:
            await UserService(session).ensure_initial_admin()
            await session.commit()

    yield

    await close_redis()
    logger.info("Shutting down teamtrack API")


app = FastAPI(
    title="teamtrack API",
    description="Project and task tracking for teams",
    version=__version__,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    openapi_url="/api/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    # Uniqueness races that slipped past the service-level checks
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "detail": {
                "code": "CONFLICT",
                "message": "The request conflicts with existing data",
            }
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    if settings.DEBUG:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": {
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": str(exc),
                    "type": type(exc).__name__,
                }
            },
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "version": __version__,
    }


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {
        "message": "teamtrack API",
        "version": __version__,
        "docs": "/api/docs" if settings.DEBUG else "disabled",
    }


app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])
app.include_router(projects.router, prefix="/api/v1/projects", tags=["Projects"])
app.include_router(tasks.router, prefix="/api/v1/tasks", tags=["Tasks"])
app.include_router(comments.router, prefix="/api/v1/comments", tags=["Comments"])
app.include_router(labels.router, prefix="/api/v1/labels", tags=["Labels"])
app.include_router(notifications.router, prefix="/api/v1/notifications", tags=["Notifications"])
app.include_router(activities.router, prefix="/api/v1/activities", tags=["Activities"])
app.include_router(dashboard.router, prefix="/api/v1/dashboard", tags=["Dashboard"])
app.include_router(search.router, prefix="/api/v1/search", tags=["Search"])
