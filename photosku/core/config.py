from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "PhotoSKU API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 1

    # Security
    SECRET_KEY: str = "your-secret-key-change-this-in-production-min-32-chars"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    # Operator account (use a user store in production)
    TEST_USER_USERNAME: str = "admin"
    TEST_USER_PASSWORD: str = "changeme123"

    # Uploads
    UPLOADS_DIR: str = "./uploads"
    MAX_FILE_SIZE: int = 26214400  # 25MB
    MAX_FILES_PER_BATCH: int = 50
    ALLOWED_IMAGE_TYPES: List[str] = ["image/jpeg", "image/jpg", "image/png", "image/heic"]
    ALLOWED_VIDEO_TYPES: List[str] = ["video/mp4", "video/quicktime"]
    SKU_PATTERN: str = r"^\d{6}$"

    # PhotoRoom background removal
    PHOTOROOM_API_KEY: str = ""
    PHOTOROOM_API_URL: str = "https://image-api.photoroom.com/v2/edit"
    PHOTOROOM_TIMEOUT_SECONDS: float = 60.0
    PHOTOROOM_MAX_CONCURRENT: int = 3
    PHOTOROOM_MAX_RETRIES: int = 3
    PHOTOROOM_RETRY_BASE_DELAY: float = 1.0  # seconds, doubled per attempt
    PHOTOROOM_BACKGROUND_COLOR: str = "FFFFFF"
    PHOTOROOM_OUTPUT_SIZE: str = "2000x2000"
    PHOTOROOM_GRAVITY: str = "center"
    PHOTOROOM_PADDING: str = "0.14"
    PHOTOROOM_EXPORT_FORMAT: str = "jpg"

    # Processing
    DELETE_ORIGINALS_ON_SUCCESS: bool = True
    ZIP_COMPRESSION_LEVEL: int = 6
    CLEANUP_MAX_AGE_DAYS: int = 7

    # Telegram delivery
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHAT_ID: str = ""
    TELEGRAM_API_URL: str = "https://api.telegram.org"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )


# Global settings instance
settings = Settings()
