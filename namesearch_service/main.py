"""
FastAPI application for the Username Search Service
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from .api import ai_router, health_router, search_router
from .config import settings
from .errors import register_exception_handlers
from .rate_limiter import rate_limiter
from .upstream import upstream_client

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting Username Search Service...")

    # Connect rate limiter storage
    await rate_limiter.connect()
    logger.info("Rate limiter initialized")

    # Start upstream client
    await upstream_client.start()

    logger.info(f"Username Search Service started successfully on port {settings.PORT}")

    yield

    # Shutdown
    logger.info("Shutting down Username Search Service...")

    # Stop upstream client
    await upstream_client.stop()

    # Disconnect rate limiter storage
    await rate_limiter.disconnect()

    logger.info("Username Search Service shut down successfully")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Username search across platforms and the web, with AI analysis",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(search_router)
app.include_router(ai_router)
app.include_router(health_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "namesearch_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
