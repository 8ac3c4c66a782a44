import os
from datetime import datetime

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from app.routers import users, skills, endorsements, jobs, webhooks

# Import logging and middleware
from app.utils.logging_config import configure_for_environment, get_logger
from app.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    RequestLoggingMiddleware,
    PerformanceMiddleware,
    request_validation_handler
)

# Configure logging first
configure_for_environment()
logger = get_logger(__name__)

SLOW_REQUEST_THRESHOLD = float(os.getenv("SLOW_REQUEST_THRESHOLD", "2.0"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager"""
    logger.info("SkillBoard API starting up...")
    logger.info("Initializing database indexes...")

    try:
        from app.services.db import init_indexes
        await init_indexes()
        logger.info("Database indexes initialized successfully")
    except Exception as e:
        logger.warning(f"Database index initialization had issues: {e}")
        logger.info("Application will continue - uniqueness races are not guarded without indexes")

    logger.info("SkillBoard API startup completed")

    yield

    logger.info("SkillBoard API shutting down...")


app = FastAPI(title="SkillBoard API", version="1.0.0", lifespan=lifespan)

app.add_exception_handler(RequestValidationError, request_validation_handler)

# Add middleware in order (LIFO - Last In, First Out)
# Exception handler wraps the logging and timing middleware; CORS sits outside it
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PerformanceMiddleware, slow_request_threshold=SLOW_REQUEST_THRESHOLD)
app.add_middleware(ExceptionHandlerMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
@app.head("/")
async def root():
    """Root endpoint - handles both GET and HEAD requests for health checks"""
    logger.debug("Root endpoint accessed")
    return {"message": "Welcome to the SkillBoard API", "version": "1.0.0", "status": "ok"}


@app.get("/health")
@app.head("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(skills.router, prefix="/api/skills", tags=["skills"])
app.include_router(endorsements.router, prefix="/api/endorsements", tags=["endorsements"])
app.include_router(jobs.router, prefix="/api/jobs", tags=["jobs"])
app.include_router(webhooks.router)

logger.info("SkillBoard API initialized successfully")
