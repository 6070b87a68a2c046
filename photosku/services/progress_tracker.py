# photosku/services/progress_tracker.py
import threading
from typing import Dict, Optional

from photosku.core.logging import get_logger
from photosku.models.media import (
    TERMINAL_STATUSES,
    BatchLedger,
    BatchStatusResponse,
    ItemProgress,
    MediaItem,
    ProcessResult,
    ProcessStatus,
)

logger = get_logger(__name__)


class ProgressTracker:
    """Latest known state of every item, per SKU, fed by the batch scheduler"""

    def __init__(self):
        self._items: Dict[str, Dict[str, ItemProgress]] = {}
        self._batch_ids: Dict[str, str] = {}
        self._finished: Dict[str, bool] = {}
        self._lock = threading.Lock()

    def start(self, sku: str) -> None:
        with self._lock:
            self._items[sku] = {}
            self._finished[sku] = False
            self._batch_ids.pop(sku, None)

    def observer(
        self,
        sku: str,
        item: MediaItem,
        status: ProcessStatus,
        result: Optional[ProcessResult] = None
    ) -> None:
        with self._lock:
            items = self._items.setdefault(sku, {})
            items[item.id] = ItemProgress(
                id=item.id,
                original_name=item.original_name,
                final_name=result.final_name if result else None,
                status=status,
                error=result.error if result else None,
            )

    def finish(self, sku: str, ledger: Optional[BatchLedger] = None) -> None:
        with self._lock:
            self._finished[sku] = True
            if ledger is not None:
                self._batch_ids[sku] = ledger.batch_id
        logger.debug(f"Progress tracking finished for SKU {sku}")

    def clear(self, sku: str) -> None:
        with self._lock:
            self._items.pop(sku, None)
            self._finished.pop(sku, None)
            self._batch_ids.pop(sku, None)

    def snapshot(self, sku: str) -> BatchStatusResponse:
        with self._lock:
            items = list(self._items.get(sku, {}).values())
            finished = self._finished.get(sku)
            batch_id = self._batch_ids.get(sku)

        done = sum(1 for i in items if i.status == ProcessStatus.DONE)
        failed = sum(1 for i in items if i.status == ProcessStatus.ERROR)
        skipped = sum(1 for i in items if i.status == ProcessStatus.SKIPPED)

        if finished is None:
            status = "idle"
        elif not finished:
            status = "processing"
        else:
            status = "failed" if failed else "completed"

        return BatchStatusResponse(
            sku=sku,
            batch_id=batch_id,
            status=status,
            total_files=len(items),
            processed_files=sum(1 for i in items if i.status in TERMINAL_STATUSES),
            successful=done,
            failed=failed,
            skipped=skipped,
            items=items,
        )


# Global progress tracker instance
progress_tracker = ProgressTracker()
