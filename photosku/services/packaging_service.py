# photosku/services/packaging_service.py
import asyncio
import hashlib
import io
import json
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from photosku.core.config import settings
from photosku.core.logging import get_logger
from photosku.models.media import BatchLedger, ProcessStatus

logger = get_logger(__name__)


class PackagingService:
    """Builds ZIP archives of a SKU's processed files from its ledger"""

    def __init__(self, compression_level: Optional[int] = None):
        self.compression_level = (
            settings.ZIP_COMPRESSION_LEVEL if compression_level is None else compression_level
        )

    def build_manifest(self, ledger: BatchLedger) -> dict:
        return {
            "sku": ledger.sku,
            "batch_id": ledger.batch_id,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "files": [
                {
                    "id": r.id,
                    "original": r.original_name,
                    "final": r.final_name,
                    "type": r.kind.value,
                    "status": r.status.value,
                    "error": r.error,
                }
                for r in ledger.results
            ],
        }

    def archive_name(self, sku: str, now: Optional[datetime] = None) -> str:
        """photo-sku-{sku}-{timestamp}-{hash}.zip"""
        now = now or datetime.now(timezone.utc)
        timestamp = now.strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        digest = hashlib.md5(f"{sku}{timestamp}".encode()).hexdigest()[:8]
        return f"photo-sku-{sku}-{timestamp}-{digest}.zip"

    def _write_archive(self, ledger: BatchLedger, include_originals: bool) -> Tuple[bytes, int]:
        buffer = io.BytesIO()
        added = 0
        with zipfile.ZipFile(
            buffer, "w", zipfile.ZIP_DEFLATED, compresslevel=self.compression_level
        ) as zipf:
            zipf.writestr("manifest.json", json.dumps(self.build_manifest(ledger), indent=2))

            for result in ledger.results:
                if result.status == ProcessStatus.DONE:
                    path, arcname = result.output_location, result.final_name
                elif result.status == ProcessStatus.SKIPPED:
                    path, arcname = result.source_location, result.final_name
                elif include_originals:
                    path, arcname = result.source_location, f"originals/{result.final_name}"
                else:
                    continue

                if not path or not Path(path).is_file():
                    logger.warning(f"Missing file for {result.final_name}, left out of archive")
                    continue
                zipf.write(path, arcname)
                added += 1

        return buffer.getvalue(), added

    async def build_archive(
        self,
        ledger: BatchLedger,
        include_originals: bool = False,
        filename: Optional[str] = None
    ) -> Tuple[str, bytes, int]:
        """
        Create a ZIP of the ledger's files in memory

        Args:
            ledger: Processing results for the SKU
            include_originals: Add originals of failed images under originals/
            filename: Archive name, defaults to archive_name(sku)

        Returns:
            Tuple of (archive filename, archive bytes, number of media files)
        """
        name = filename or self.archive_name(ledger.sku)
        content, added = await asyncio.to_thread(self._write_archive, ledger, include_originals)
        logger.info(f"Built archive {name} for SKU {ledger.sku}: {added} files, {len(content)} bytes")
        return name, content, added


# Global packaging service instance
packaging_service = PackagingService()
