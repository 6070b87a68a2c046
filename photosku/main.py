# photosku/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from photosku.core.config import settings
from photosku.core.logging import setup_logging, get_logger
from photosku.api.v1.router import api_router
from photosku.services.storage_service import storage_service
from photosku.middleware.error_handler import add_error_handlers


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = get_logger(__name__)
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    if not settings.PHOTOROOM_API_KEY:
        logger.warning("PHOTOROOM_API_KEY is not set; every photo will fail with 'unauthorized'")
    if not settings.TELEGRAM_BOT_TOKEN:
        logger.warning("TELEGRAM_BOT_TOKEN is not set; Telegram delivery is disabled")

    storage_service.purge_expired(settings.CLEANUP_MAX_AGE_DAYS)

    logger.info("Startup complete")
    yield
    logger.info("Shutting down")

# Initialize app
app = FastAPI(
    title=settings.APP_NAME,
    description="Remove photo backgrounds for a product SKU and package the results",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Setup logging first
setup_logging()

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error handlers
add_error_handlers(app)

# API Router
app.include_router(api_router, prefix="/api/v1")

# Root
@app.get("/")
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "api": "/api/v1"
    }
