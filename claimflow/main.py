"""
FastAPI application entry point.

Registers the API routers and handles application startup configuration.
"""

from fastapi import FastAPI
import logging

from claimflow.settings import MODE, setup_logging
from claimflow.api.routers.claims_router import router as claims_router

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

if MODE.upper() not in ("DEBUG", "PRODUCTION"):
    raise ValueError("Invalid MODE specified in config.")

# Initialize FastAPI application
app = FastAPI(
    title="Claim-Flow API",
    description="Daily claims classification, assignment and day-over-day movement reporting",
    version="0.1.0",
)

# Register routers
app.include_router(claims_router, tags=["Claims"])

logger.info("[Startup] All routers registered successfully")
logger.info("[Startup] Application started in %s mode", MODE.upper())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "claimflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=MODE.upper() == "DEBUG",
        log_level="info"
    )
