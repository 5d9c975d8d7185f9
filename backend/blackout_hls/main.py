"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from blackout_hls.config import settings
from blackout_hls.db.database import init_db, close_db
from blackout_hls.api.routes import router

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
# botocore is extremely chatty at DEBUG
logging.getLogger("botocore").setLevel(logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Blackout HLS...")

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    if settings.default_storage() is None:
        logger.warning("No default storage configured; requests must carry storage credentials")

    yield

    # Shutdown
    logger.info("Shutting down Blackout HLS...")
    await close_db()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Publishes normal and blacked-out HLS renditions of a video to object storage",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": "1.0.0",
        "api": "/api",
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "blackout_hls.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
