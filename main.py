import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from guardforce.api.v1.api import api_router
from guardforce.core.config import settings
from guardforce.core.database import engine
from guardforce.core.logging_config import setup_logging
from guardforce.db.base import utcnow
from guardforce.middleware.logging import LoggingMiddleware

setup_logging()
logger = logging.getLogger(__name__)

# Create FastAPI app
app_config = {
    "title": "GuardForce Back Office",
    "description": "Guard staffing operations: workforce, deployments, attendance, billing and approvals",
    "version": "1.0.0",
    "docs_url": "/api/docs",
    "openapi_url": "/api/openapi.json",
}

app = FastAPI(**app_config)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS
)
app.add_middleware(LoggingMiddleware)

# Include routers
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "service": app.title,
        "version": app.version,
        "environment": settings.ENVIRONMENT,
        "docs": app.docs_url,
    }


@app.get("/health")
async def health_check():
    database = "connected"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "timestamp": utcnow().isoformat(),
        "components": {
            "database": database,
        }
    }


def run_http():
    """Run HTTP server on port 9106"""
    import uvicorn
    logger.info("Starting HTTP server on port 9106...")
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=9106,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run_http()
