# photosku/services/naming.py
"""
Output file naming.

Every file in a batch is renamed to ``{sku}_{NNN}.{ext}``. Images always get
the format PhotoRoom exports; videos are never transformed, so they keep
their own extension.
"""
import re
from typing import Optional
from pathlib import PurePath
from photosku.core.config import settings
from photosku.models.media import MediaKind

_SAFE_SKU = re.compile(r"^[A-Za-z0-9_-]+$")
DEFAULT_VIDEO_EXTENSION = "mp4"


def is_safe_sku(sku: str) -> bool:
    return bool(sku) and _SAFE_SKU.match(sku) is not None


def _check(sku: str, sequence: int) -> None:
    if not is_safe_sku(sku):
        raise ValueError(f"SKU {sku!r} is not safe for use in a filename")
    if sequence < 1:
        raise ValueError(f"Sequence number must be >= 1, got {sequence}")


def original_extension(original_name: str) -> str:
    """Extension of the original file without the dot, '' if it has none"""
    return PurePath(original_name or "").suffix.lstrip(".")


def preserved_name(
    sku: str,
    sequence: int,
    original_name: str,
    kind: MediaKind = MediaKind.VIDEO,
    source_location: str = ""
) -> str:
    """
    Canonical name that keeps the original file's extension

    Without one, the stored source's suffix is used, then the kind's default:
    the export format for images, mp4 for videos.
    """
    _check(sku, sequence)
    ext = original_extension(original_name) or original_extension(source_location)
    if not ext:
        ext = settings.PHOTOROOM_EXPORT_FORMAT if kind == MediaKind.IMAGE else DEFAULT_VIDEO_EXTENSION
    return f"{sku}_{sequence:03d}.{ext}"


def assign_name(
    sku: str,
    sequence: int,
    kind: MediaKind,
    original_name: str = "",
    image_format: Optional[str] = None
) -> str:
    """
    Build the canonical output filename for one item

    Args:
        sku: Product SKU, already validated by the caller
        sequence: 1-based position in the batch, padded to at least 3 digits
        kind: image or video
        original_name: Original filename, only used for videos
        image_format: Output format of edited images (defaults to settings)

    Returns:
        e.g. "123456_001.jpg"
    """
    if kind == MediaKind.VIDEO:
        return preserved_name(sku, sequence, original_name)
    _check(sku, sequence)
    ext = image_format or settings.PHOTOROOM_EXPORT_FORMAT
    return f"{sku}_{sequence:03d}.{ext}"
