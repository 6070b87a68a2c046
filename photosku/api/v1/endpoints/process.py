# photosku/api/v1/endpoints/process.py
from typing import Awaitable, Callable
from fastapi import APIRouter, Depends, HTTPException
from photosku.api.deps import (
    get_batch_service,
    get_current_active_operator,
    get_ledger_store,
    get_progress_tracker,
    get_storage_service,
)
from photosku.core.errors import CredentialError, StorageError
from photosku.core.logging import get_logger
from photosku.models.auth import Operator
from photosku.models.media import BatchLedger, BatchStatusResponse
from photosku.models.requests import ProcessRequest
from photosku.services.batch_services import BatchService
from photosku.services.ledger_store import LedgerStore
from photosku.services.progress_tracker import ProgressTracker
from photosku.services.storage_service import StorageService
from photosku.utils.validation import validate_sku

logger = get_logger(__name__)

router = APIRouter()


def _check_sku(sku: str) -> None:
    is_valid, error = validate_sku(sku)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error)


async def _tracked(
    tracker: ProgressTracker,
    sku: str,
    run: Callable[[], Awaitable[BatchLedger]]
) -> BatchLedger:
    tracker.start(sku)
    try:
        ledger = await run()
    except CredentialError as e:
        tracker.finish(sku, e.ledger)
        raise
    except Exception:
        tracker.finish(sku)
        raise
    tracker.finish(sku, ledger)
    return ledger


@router.post("/process", response_model=BatchLedger)
async def process_batch(
    request: ProcessRequest,
    batch: BatchService = Depends(get_batch_service),
    storage: StorageService = Depends(get_storage_service),
    tracker: ProgressTracker = Depends(get_progress_tracker),
    current_user: Operator = Depends(get_current_active_operator)
):
    """
    Remove backgrounds from the uploaded photos of a SKU and rename everything

    Videos are numbered first and passed through untouched; photos are sent
    to PhotoRoom a few at a time. The response always lists one result per
    file, including failures, so failed files can be retried.
    """
    _check_sku(request.sku)
    for item in request.files:
        try:
            storage.ensure_within_sku(request.sku, item.source_location)
        except StorageError as e:
            raise HTTPException(status_code=400, detail=e.message)

    logger.info(f"User {current_user.username} processing {len(request.files)} files for SKU {request.sku}")

    ledger = await _tracked(
        tracker, request.sku,
        lambda: batch.process(request.sku, request.files, observer=tracker.observer)
    )
    logger.info(
        f"Batch {ledger.batch_id}: {ledger.successful}/{ledger.total_files} done "
        f"in {ledger.total_time:.2f}s"
    )
    return ledger


@router.post("/process/{sku}/retry", response_model=BatchLedger)
async def retry_failed(
    sku: str,
    batch: BatchService = Depends(get_batch_service),
    tracker: ProgressTracker = Depends(get_progress_tracker),
    current_user: Operator = Depends(get_current_active_operator)
):
    """
    Re-run only the files that failed in the last run for this SKU
    """
    _check_sku(sku)
    logger.info(f"User {current_user.username} retrying failed files for SKU {sku}")
    return await _tracked(tracker, sku, lambda: batch.retry_failed(sku, observer=tracker.observer))


@router.get("/progress/{sku}", response_model=BatchStatusResponse)
async def get_progress(
    sku: str,
    tracker: ProgressTracker = Depends(get_progress_tracker),
    current_user: Operator = Depends(get_current_active_operator)
):
    """Current state of every file in the running or last batch for a SKU"""
    return tracker.snapshot(sku)


@router.get("/ledger/{sku}", response_model=BatchLedger)
async def get_ledger(
    sku: str,
    ledgers: LedgerStore = Depends(get_ledger_store),
    current_user: Operator = Depends(get_current_active_operator)
):
    """Stored processing results for a SKU"""
    _check_sku(sku)
    return ledgers.read(sku)
