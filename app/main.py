import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from app.core.db import init_db, close_db
from app.api.v1.packages import router as packages_router
from app.consumers.outbox_poller import OutboxProcessor
from app.services.notification_service import ConsoleNotificationService
from app.core.config import LOG_FORMAT, LOG_LEVEL, OUTBOX_PROCESSOR_ENABLED, PROJECT_NAME, VERSION
from app.core.exception_handlers import setup_exception_handlers

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
log = logging.getLogger("main")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db() # Connect to DB and generate schemas

    processor = None
    if OUTBOX_PROCESSOR_ENABLED:
        processor = OutboxProcessor(ConsoleNotificationService())
        await processor.start()
    app.state.outbox_processor = processor

    yield

    if processor is not None:
        await processor.stop()
        app.state.outbox_processor = None
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers for modular API structure
app.include_router(packages_router, prefix="/api/v1/packages", tags=["Packages"])


setup_exception_handlers(app)

@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    processor = getattr(app.state, "outbox_processor", None)
    return {
        "status": "ok",
        "app_name": PROJECT_NAME,
        "outbox_processor_running": bool(processor and processor.is_running),
    }
