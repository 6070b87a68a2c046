from fastapi import APIRouter
from datetime import datetime, timezone
from photosku.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring

    Returns service status and whether the external services are configured
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "integrations": {
            "photoroom": bool(settings.PHOTOROOM_API_KEY),
            "telegram": bool(settings.TELEGRAM_BOT_TOKEN),
        },
        "processing": {
            "max_concurrent": settings.PHOTOROOM_MAX_CONCURRENT,
            "max_retries": settings.PHOTOROOM_MAX_RETRIES,
        }
    }
