"""
Application entry point
Run with: python run.py
"""
import uvicorn
from photosku.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "photosku.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=None if settings.DEBUG else settings.WORKERS,
        log_level=settings.LOG_LEVEL.lower()
    )
