# photosku/services/storage_service.py
import asyncio
import re
import shutil
import time
import uuid
from pathlib import Path
from typing import List, Optional, Union

from photosku.core.config import settings
from photosku.core.errors import StorageError
from photosku.core.logging import get_logger
from photosku.models.media import MediaItem
from photosku.services.naming import original_extension
from photosku.utils.validation import detect_kind, sanitize_filename

logger = get_logger(__name__)


class StorageService:
    """Per-SKU file storage under UPLOADS_DIR"""

    def __init__(self, root: Union[str, Path, None] = None):
        self.root = Path(root or settings.UPLOADS_DIR).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def sku_dir(self, sku: str) -> Path:
        path = (self.root / sku).resolve()
        if path.parent != self.root:
            raise StorageError(f"Invalid SKU directory: {sku}")
        return path

    def resolve(self, sku: str, filename: str) -> Path:
        """Path of a file inside a SKU directory, rejecting traversal"""
        sku_dir = self.sku_dir(sku)
        path = (sku_dir / filename).resolve()
        if path.parent != sku_dir:
            raise StorageError(f"Invalid path: {filename}")
        return path

    def ensure_within_sku(self, sku: str, location: str) -> Path:
        """
        Check that a client supplied location is an upload of the SKU

        Processed outputs ({sku}_NNN.ext) and the ledger live in the same
        directory but are never valid sources.
        """
        path = Path(location).resolve()
        if path.parent != self.sku_dir(sku):
            raise StorageError(f"Location {location} is outside SKU {sku}")
        if path.name == f"{sku}-process-info.json" or re.match(rf"{re.escape(sku)}_\d{{3,}}\.", path.name):
            raise StorageError(f"Location {location} is not an uploaded file")
        return path

    async def save_upload(
        self,
        sku: str,
        filename: str,
        content_type: Optional[str],
        data: bytes
    ) -> MediaItem:
        """Store one uploaded file as {uuid}.{ext} and describe it"""
        kind = detect_kind(content_type)
        if kind is None:
            raise StorageError(f"Cannot determine media kind of {filename} ({content_type})")

        ext = sanitize_filename(original_extension(filename)).lower()
        stored_name = f"{uuid.uuid4().hex}.{ext}" if ext else uuid.uuid4().hex
        path = self.resolve(sku, stored_name)

        def _write():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Failed to store {filename}: {e}") from e

        logger.info(f"Stored upload {filename} for SKU {sku} as {stored_name} ({len(data)} bytes)")
        return MediaItem(
            id=uuid.uuid4().hex,
            original_name=filename,
            kind=kind,
            source_location=str(path),
            content_type=content_type,
            size=len(data),
        )

    async def read_bytes(self, location: str) -> bytes:
        try:
            return await asyncio.to_thread(Path(location).read_bytes)
        except OSError as e:
            raise StorageError(f"Failed to read {Path(location).name}: {e.strerror or e}") from e

    async def write_result(self, sku: str, final_name: str, data: bytes) -> str:
        """Write processed bytes as {sku}/{final_name} and return the location"""
        path = self.resolve(sku, final_name)

        def _write():
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(path.name + ".part")
            tmp.write_bytes(data)
            tmp.replace(path)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Failed to write {final_name}: {e.strerror or e}") from e
        return str(path)

    async def delete(self, location: str) -> bool:
        try:
            await asyncio.to_thread(Path(location).unlink)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {Path(location).name}: {e}") from e

    def list_files(self, sku: str) -> List[Path]:
        sku_dir = self.sku_dir(sku)
        if not sku_dir.is_dir():
            return []
        return sorted(p for p in sku_dir.iterdir() if p.is_file())

    async def remove_sku(self, sku: str) -> bool:
        """Delete everything stored for a SKU"""
        sku_dir = self.sku_dir(sku)
        if not sku_dir.exists():
            return False
        try:
            await asyncio.to_thread(shutil.rmtree, sku_dir)
        except OSError as e:
            raise StorageError(f"Failed to remove files for SKU {sku}: {e}") from e
        logger.info(f"Removed stored files for SKU {sku}")
        return True

    def purge_expired(self, max_age_days: int) -> int:
        """
        Delete SKU directories untouched for more than max_age_days

        Returns:
            Number of directories removed
        """
        cutoff = time.time() - max_age_days * 86400
        removed = 0
        for sku_dir in self.root.iterdir():
            if not sku_dir.is_dir():
                continue
            try:
                if sku_dir.stat().st_mtime < cutoff:
                    shutil.rmtree(sku_dir)
                    removed += 1
            except OSError as e:
                logger.warning(f"Could not purge {sku_dir.name}: {e}")
        if removed:
            logger.info(f"Purged {removed} expired SKU directories")
        return removed


# Global storage instance
storage_service = StorageService()
