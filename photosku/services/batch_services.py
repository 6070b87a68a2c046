# photosku/services/batch_services.py
import asyncio
import itertools
import time
from typing import Callable, List, Optional, Sequence, Tuple

from photosku.core.config import settings
from photosku.core.errors import BatchValidationError, CredentialError, PhotoSkuError, StorageError
from photosku.core.logging import get_logger
from photosku.models.media import (
    BatchLedger,
    MediaItem,
    MediaKind,
    ProcessResult,
    ProcessStatus,
)
from photosku.services.ledger_store import LedgerStore, ledger_store
from photosku.services.naming import assign_name, is_safe_sku, preserved_name
from photosku.services.photoroom_client import PhotoRoomClient, photoroom_client
from photosku.services.storage_service import StorageService, storage_service

logger = get_logger(__name__)

# (sku, item, new status, terminal result or None)
ProgressObserver = Callable[[str, MediaItem, ProcessStatus, Optional[ProcessResult]], None]

# An image waiting for a window slot; the sequence is fixed for retries and
# None for first runs, where it is assigned when the window is dequeued.
_Job = Tuple[MediaItem, Optional[int]]

ABORTED_MESSAGE = "Batch aborted: PhotoRoom rejected the API key"


class BatchService:
    """Runs one SKU's files through background removal and records the outcomes"""

    def __init__(
        self,
        client: PhotoRoomClient,
        storage: StorageService,
        ledgers: LedgerStore,
        max_concurrent: Optional[int] = None,
        delete_originals: Optional[bool] = None,
        preview_prefix: str = "/api/v1/images",
    ):
        self.client = client
        self.storage = storage
        self.ledgers = ledgers
        self.max_concurrent = max(1, max_concurrent or settings.PHOTOROOM_MAX_CONCURRENT)
        self.delete_originals = (
            settings.DELETE_ORIGINALS_ON_SUCCESS if delete_originals is None else delete_originals
        )
        self.preview_prefix = preview_prefix.rstrip("/")

    def _validate(self, sku: str, items: Sequence[MediaItem]) -> None:
        if not sku:
            raise BatchValidationError("SKU is required")
        if not is_safe_sku(sku):
            raise BatchValidationError(f"SKU {sku!r} contains characters not allowed in filenames")
        if not items:
            raise BatchValidationError("At least one file is required")
        ids = [item.id for item in items]
        if len(set(ids)) != len(ids):
            raise BatchValidationError("File ids must be unique within a batch")

    def _notify(
        self,
        observer: Optional[ProgressObserver],
        sku: str,
        item: MediaItem,
        status: ProcessStatus,
        result: Optional[ProcessResult] = None
    ) -> None:
        if observer is None:
            return
        try:
            observer(sku, item, status, result)
        except Exception as e:
            logger.warning(f"Progress observer failed for {item.id}: {e}")

    def _error_result(
        self,
        sku: str,
        item: MediaItem,
        sequence: int,
        message: str,
        code: str
    ) -> ProcessResult:
        # The original is kept, so the name keeps its extension
        return ProcessResult(
            id=item.id,
            original_name=item.original_name,
            final_name=preserved_name(sku, sequence, item.original_name, item.kind, item.source_location),
            kind=item.kind,
            sequence=sequence,
            status=ProcessStatus.ERROR,
            error=message,
            error_code=code,
            source_location=item.source_location,
        )

    def _persist(self, ledger: BatchLedger) -> bool:
        """Store the ledger; a failed write is logged and the run still returns its results"""
        try:
            self.ledgers.write(ledger)
            return True
        except StorageError as e:
            logger.error(f"[Batch-{ledger.batch_id}] Ledger not stored for SKU {ledger.sku}: {e.message}")
            return False

    async def _discard_originals(self, batch_id: str, results: Sequence[ProcessResult]) -> None:
        """Delete the originals of edited images once their results are stored"""
        if not self.delete_originals:
            return
        for result in results:
            if result.status != ProcessStatus.DONE:
                continue
            try:
                await self.storage.delete(result.source_location)
            except PhotoSkuError as e:
                logger.warning(f"[Batch-{batch_id}] Could not delete original {result.original_name}: {e.message}")

    async def process_single_image(
        self,
        sku: str,
        batch_id: str,
        item: MediaItem,
        sequence: int,
        semaphore: asyncio.Semaphore,
        observer: Optional[ProgressObserver] = None
    ) -> ProcessResult:
        """Process one image and return its result; never raises for per-file failures"""
        final_name = assign_name(sku, sequence, MediaKind.IMAGE)
        self._notify(observer, sku, item, ProcessStatus.PROCESSING)
        start_time = time.time()

        try:
            logger.info(f"[Batch-{batch_id}] Processing {item.original_name} as {final_name}")
            data = await self.storage.read_bytes(item.source_location)
            async with semaphore:
                edited = await self.client.remove_background(data)
            output_location = await self.storage.write_result(sku, final_name, edited)

        except PhotoSkuError as e:
            logger.error(f"[Batch-{batch_id}] Failed to process {item.original_name}: {e.message}")
            result = self._error_result(sku, item, sequence, e.message, e.code)

        except Exception as e:
            logger.exception(f"[Batch-{batch_id}] Unexpected error processing {item.original_name}: {e}")
            result = self._error_result(sku, item, sequence, str(e) or e.__class__.__name__, "internal_error")

        else:
            logger.info(
                f"[Batch-{batch_id}] {item.original_name} -> {final_name} "
                f"in {time.time() - start_time:.2f}s"
            )
            result = ProcessResult(
                id=item.id,
                original_name=item.original_name,
                final_name=final_name,
                kind=item.kind,
                sequence=sequence,
                status=ProcessStatus.DONE,
                source_location=item.source_location,
                output_location=output_location,
                preview_url=f"{self.preview_prefix}/{sku}/{final_name}",
            )

        self._notify(observer, sku, item, result.status, result)
        return result

    async def _run_windows(
        self,
        sku: str,
        batch_id: str,
        jobs: List[_Job],
        next_sequence: Callable[[], int],
        observer: Optional[ProgressObserver] = None
    ) -> Tuple[List[ProcessResult], bool]:
        """
        Drive images through the client in windows of max_concurrent

        A window is launched in full and awaited in full before the next one
        starts. A rejected API key stops admission: the remaining jobs are
        recorded as errors without calling PhotoRoom.

        Returns:
            (results in sequence order, whether the run was aborted)
        """
        semaphore = asyncio.Semaphore(self.max_concurrent)
        results: List[ProcessResult] = []
        aborted = False

        for item, _ in jobs:
            self._notify(observer, sku, item, ProcessStatus.QUEUED)

        for start in range(0, len(jobs), self.max_concurrent):
            window = jobs[start:start + self.max_concurrent]

            if aborted:
                for item, sequence in window:
                    result = self._error_result(
                        sku, item, sequence or next_sequence(), ABORTED_MESSAGE, CredentialError.code
                    )
                    self._notify(observer, sku, item, result.status, result)
                    results.append(result)
                continue

            logger.info(
                f"[Batch-{batch_id}] Window {start // self.max_concurrent + 1}: {len(window)} images"
            )
            assigned = [(item, sequence or next_sequence()) for item, sequence in window]
            window_results = await asyncio.gather(*[
                self.process_single_image(sku, batch_id, item, sequence, semaphore, observer)
                for item, sequence in assigned
            ])
            results.extend(window_results)

            if any(r.error_code == CredentialError.code for r in window_results):
                logger.error(f"[Batch-{batch_id}] PhotoRoom API key rejected, aborting remaining images")
                aborted = True

        return results, aborted

    async def process(
        self,
        sku: str,
        items: Sequence[MediaItem],
        observer: Optional[ProgressObserver] = None
    ) -> BatchLedger:
        """
        Process all files submitted for a SKU

        Videos are numbered first and skipped; images are numbered as their
        window is dequeued and sent to PhotoRoom.

        Args:
            sku: Validated product SKU
            items: Uploaded files, in submission order
            observer: Optional callback receiving every item state change

        Returns:
            The stored ledger with one result per item

        Raises:
            BatchValidationError: malformed input, before any remote call
            CredentialError: PhotoRoom rejected the API key; `ledger` holds
                the stored results
        """
        self._validate(sku, items)
        batch_id = self.ledgers.generate_batch_id()
        start_time = time.time()

        videos = [item for item in items if item.kind == MediaKind.VIDEO]
        images = [item for item in items if item.kind == MediaKind.IMAGE]
        logger.info(
            f"[Batch-{batch_id}] Starting SKU {sku}: {len(images)} images, {len(videos)} videos, "
            f"window={self.max_concurrent}"
        )

        counter = itertools.count(1)
        results: List[ProcessResult] = []

        for video in videos:
            self._notify(observer, sku, video, ProcessStatus.QUEUED)
            sequence = next(counter)
            result = ProcessResult(
                id=video.id,
                original_name=video.original_name,
                final_name=assign_name(sku, sequence, MediaKind.VIDEO, video.original_name),
                kind=video.kind,
                sequence=sequence,
                status=ProcessStatus.SKIPPED,
                source_location=video.source_location,
            )
            self._notify(observer, sku, video, result.status, result)
            results.append(result)

        image_results, aborted = await self._run_windows(
            sku, batch_id, [(image, None) for image in images], lambda: next(counter), observer
        )
        results.extend(image_results)

        ledger = BatchLedger(
            batch_id=batch_id,
            sku=sku,
            total_time=time.time() - start_time,
            results=results,
        )
        if self._persist(ledger):
            await self._discard_originals(batch_id, results)

        logger.info(
            f"[Batch-{batch_id}] Complete: {ledger.successful} done, {ledger.skipped} skipped, "
            f"{ledger.failed} failed in {ledger.total_time:.2f}s"
        )
        if aborted:
            raise CredentialError(ABORTED_MESSAGE, ledger=ledger)
        return ledger

    async def retry_failed(
        self,
        sku: str,
        observer: Optional[ProgressObserver] = None
    ) -> BatchLedger:
        """
        Re-run only the failed items of the stored ledger for a SKU

        Items keep their id, original name, source and sequence number.
        Done and skipped items are carried over untouched, so a ledger
        without failures causes no PhotoRoom calls.
        """
        ledger = self.ledgers.read(sku)
        failed = ledger.failed_results()
        if not failed:
            logger.info(f"[Batch-{ledger.batch_id}] Nothing to retry for SKU {sku}")
            return ledger

        logger.info(f"[Batch-{ledger.batch_id}] Retrying {len(failed)} failed files for SKU {sku}")
        start_time = time.time()
        jobs = [
            (
                MediaItem(
                    id=r.id,
                    original_name=r.original_name,
                    kind=r.kind,
                    source_location=r.source_location,
                ),
                r.sequence,
            )
            for r in failed
        ]

        def _no_new_numbers() -> int:
            raise RuntimeError("retried items keep their sequence numbers")

        retried, aborted = await self._run_windows(sku, ledger.batch_id, jobs, _no_new_numbers, observer)

        merged = {r.id: r for r in ledger.results}
        merged.update({r.id: r for r in retried})
        new_ledger = BatchLedger(
            batch_id=ledger.batch_id,
            sku=sku,
            total_time=time.time() - start_time,
            results=sorted(merged.values(), key=lambda r: r.sequence),
        )
        if self._persist(new_ledger):
            await self._discard_originals(ledger.batch_id, retried)

        logger.info(
            f"[Batch-{ledger.batch_id}] Retry complete: {new_ledger.successful} done, "
            f"{new_ledger.failed} still failing"
        )
        if aborted:
            raise CredentialError(ABORTED_MESSAGE, ledger=new_ledger)
        return new_ledger


# Global batch service instance
batch_service = BatchService(photoroom_client, storage_service, ledger_store)
