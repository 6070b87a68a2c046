# photosku/api/v1/endpoints/delivery.py
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from photosku.api.deps import (
    get_current_active_operator,
    get_ledger_store,
    get_packaging_service,
    get_progress_tracker,
    get_storage_service,
    get_telegram_service,
)
from photosku.core.config import settings
from photosku.core.logging import get_logger
from photosku.models.auth import Operator
from photosku.models.requests import DownloadRequest, SkuRequest, TelegramRequest, TelegramResponse
from photosku.services.ledger_store import LedgerStore
from photosku.services.packaging_service import PackagingService
from photosku.services.progress_tracker import ProgressTracker
from photosku.services.storage_service import StorageService
from photosku.services.telegram_service import TelegramService, build_caption
from photosku.utils.validation import validate_sku

logger = get_logger(__name__)

router = APIRouter()


def _check_sku(sku: str) -> None:
    is_valid, error = validate_sku(sku)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error)


@router.post("/download")
async def download_archive(
    request: DownloadRequest,
    ledgers: LedgerStore = Depends(get_ledger_store),
    packaging: PackagingService = Depends(get_packaging_service),
    storage: StorageService = Depends(get_storage_service),
    tracker: ProgressTracker = Depends(get_progress_tracker),
    current_user: Operator = Depends(get_current_active_operator)
):
    """
    Download the processed files of a SKU as a ZIP with a manifest.json

    **Parameters:**
    - `include_originals`: add originals of failed photos under `originals/`
    - `cleanup`: delete the SKU's stored files after the archive is built
    """
    _check_sku(request.sku)
    ledger = ledgers.read(request.sku)
    filename, content, _ = await packaging.build_archive(ledger, request.include_originals)

    if request.cleanup:
        await storage.remove_sku(request.sku)
        tracker.clear(request.sku)

    logger.info(f"User {current_user.username} downloaded {filename}")
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.post("/telegram", response_model=TelegramResponse)
async def send_to_telegram(
    request: TelegramRequest,
    ledgers: LedgerStore = Depends(get_ledger_store),
    packaging: PackagingService = Depends(get_packaging_service),
    telegram: TelegramService = Depends(get_telegram_service),
    current_user: Operator = Depends(get_current_active_operator)
):
    """
    Send the processed files of a SKU to Telegram as a single ZIP document
    """
    _check_sku(request.sku)
    chat_id = request.chat_id or settings.TELEGRAM_CHAT_ID
    if not chat_id:
        raise HTTPException(status_code=400, detail="chat_id is required")

    ledger = ledgers.read(request.sku)
    filename, content, count = await packaging.build_archive(ledger, filename=f"{request.sku}.zip")
    if count == 0:
        raise HTTPException(status_code=404, detail="No processed files found for this SKU")

    message_id = await telegram.send_document(
        chat_id, filename, content, caption=build_caption(request.sku, count)
    )
    logger.info(f"User {current_user.username} sent {filename} to Telegram chat {chat_id}")
    return TelegramResponse(
        message="File sent to Telegram successfully",
        telegram_message_id=message_id
    )


@router.post("/cleanup")
async def cleanup_sku(
    request: SkuRequest,
    storage: StorageService = Depends(get_storage_service),
    tracker: ProgressTracker = Depends(get_progress_tracker),
    current_user: Operator = Depends(get_current_active_operator)
):
    """Delete originals, processed files and the ledger of a SKU"""
    _check_sku(request.sku)
    removed = await storage.remove_sku(request.sku)
    tracker.clear(request.sku)
    return {
        "success": True,
        "removed": removed,
        "message": "Files cleaned up successfully" if removed else "Nothing to clean up"
    }


@router.post("/cleanup/expired")
async def cleanup_expired(
    days: int = Query(settings.CLEANUP_MAX_AGE_DAYS, ge=0, description="Maximum age in days"),
    storage: StorageService = Depends(get_storage_service),
    current_user: Operator = Depends(get_current_active_operator)
):
    """Delete SKU directories older than `days`"""
    removed = storage.purge_expired(days)
    return {"success": True, "removed": removed}
