"""
Main application initialization and configuration.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from nestify.dependencies import db_dependency
from nestify.api.routes import playlists
from nestify.core.exceptions import NestifyError
from nestify.core.locks import CONTAINER_LOCK_BACKEND
from nestify.core.redis import close_redis_connection, health_check_redis

logger = logging.getLogger(__name__)

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if CONTAINER_LOCK_BACKEND == "redis":
        await close_redis_connection()


# Initialize FastAPI application
app = FastAPI(title="Nestify API", lifespan=lifespan)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(playlists.router)


@app.exception_handler(NestifyError)
async def nestify_error_handler(request: Request, exc: NestifyError):
    """Return service errors as structured failures with their status category."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/")
def read_root():
    """Return a welcome message at the root endpoint."""
    return {"message": "Welcome to Nestify API"}


@app.get("/api")
@app.get("/api/")
def read_api_root():
    """Return a message with available API endpoints."""
    return {"message": "Nestify API - Available endpoints: /api/playlists/*"}


@app.get("/api/health")
async def health_check():
    """Health check endpoint to verify the API is running."""
    services = {"api": "online"}
    if CONTAINER_LOCK_BACKEND == "redis":
        services["redis"] = await health_check_redis()

    return {"status": "healthy", "services": services}


@app.get("/api/db-test")
def db_test(db: Session = Depends(db_dependency)):
    """Test the database connection."""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "Database connection successful!"}
    except Exception as e:
        return {"status": "Database connection failed", "error": str(e)}
