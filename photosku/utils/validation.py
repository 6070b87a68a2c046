# photosku/utils/validation.py
"""
Input validation for SKUs and uploaded files
"""
import re
from typing import Optional, Tuple
from photosku.core.config import settings
from photosku.models.media import MediaKind


def validate_sku(sku: Optional[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate a SKU against SKU_PATTERN

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not sku:
        return False, "SKU is required"
    if not re.fullmatch(settings.SKU_PATTERN, sku):
        return False, f"SKU must match {settings.SKU_PATTERN}"
    return True, None


def detect_kind(content_type: Optional[str]) -> Optional[MediaKind]:
    if not content_type:
        return None
    if content_type.startswith("image/"):
        return MediaKind.IMAGE
    if content_type.startswith("video/"):
        return MediaKind.VIDEO
    return None


def validate_upload(filename: str, content_type: Optional[str], size: int) -> Tuple[bool, Optional[str]]:
    """
    Check an uploaded file's size and declared type

    Returns:
        Tuple of (is_valid, error_message)
    """
    if size > settings.MAX_FILE_SIZE:
        max_mb = round(settings.MAX_FILE_SIZE / 1024 / 1024)
        return False, f"File {filename} is too large. Maximum size: {max_mb}MB"

    allowed = settings.ALLOWED_IMAGE_TYPES + settings.ALLOWED_VIDEO_TYPES
    if content_type not in allowed:
        return False, (
            f"File {filename} has unsupported type: {content_type}. "
            f"Images: {', '.join(settings.ALLOWED_IMAGE_TYPES)}, "
            f"videos: {', '.join(settings.ALLOWED_VIDEO_TYPES)}"
        )
    return True, None


def sanitize_filename(name: str) -> str:
    """Replace anything outside [A-Za-z0-9-_.] with an underscore"""
    return re.sub(r"[^a-zA-Z0-9\-_.]", "_", name)
