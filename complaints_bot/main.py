"""
City Hall Complaints Bot - Main Application Entry Point

Receives WhatsApp complaints, pairs images with their text, classifies them
with an LLM and logs them to Google Sheets. Built with FastAPI, OpenRouter,
gspread and APScheduler.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from complaints_bot.api.errors import register_exception_handlers
from complaints_bot.api.whatsapp_webhook import router as whatsapp_router
from complaints_bot.config.settings import Settings, get_settings
from complaints_bot.infrastructure.message_queue import MessageQueue
from complaints_bot.infrastructure.rate_limiter import RateLimiter
from complaints_bot.infrastructure.scheduler import build_scheduler, start_scheduler, stop_scheduler
from complaints_bot.usecases.complaint_service import ComplaintService
from complaints_bot.usecases.pairing import PairingEngine

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    settings: Settings = app.state.settings

    # Startup
    logger.info("Starting City Hall Complaints Bot...")

    scheduler = build_scheduler(
        settings,
        engine=app.state.pairing_engine,
        limiter=app.state.rate_limiter,
        service=app.state.complaint_service,
    )
    app.state.scheduler = scheduler
    await start_scheduler(scheduler)

    logger.info("Application startup complete!")
    logger.info(f"Timezone: {settings.timezone}")
    logger.info(f"Pairing window: {settings.pairing_window_ms}ms, reverse pairing: {settings.reverse_pairing_enabled}")
    logger.info(f"Webhook signature validation: {not settings.skip_webhook_auth}")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await stop_scheduler(scheduler)
    await app.state.message_queue.shutdown()
    logger.info("Application shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application and its process-wide components.

    Args:
        settings: Settings to use (defaults to environment settings)

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="City Hall Complaints Bot",
        description="WhatsApp complaint intake with image pairing, LLM classification and Google Sheets logging",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.pairing_engine = PairingEngine(
        window_ms=settings.pairing_window_ms,
        dedup_max_size=settings.dedup_max_size,
        reverse_pairing=settings.reverse_pairing_enabled,
    )
    app.state.rate_limiter = RateLimiter(
        window_ms=settings.rate_limit_window_ms,
        max_requests=settings.rate_limit_max_requests,
    )
    app.state.message_queue = MessageQueue(max_size=settings.queue_max_size)
    app.state.complaint_service = ComplaintService(settings)

    register_exception_handlers(app)

    # Register routers
    app.include_router(whatsapp_router, tags=["WhatsApp"])

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "City Hall Complaints Bot",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "webhook": "/webhook",
                "health": "/health",
                "stats": "/stats"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "complaints_bot.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug
    )
