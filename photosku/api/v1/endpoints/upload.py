# photosku/api/v1/endpoints/upload.py
from typing import List
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from photosku.api.deps import get_current_active_operator, get_storage_service
from photosku.core.config import settings
from photosku.core.logging import get_logger
from photosku.models.auth import Operator
from photosku.models.requests import UploadResponse
from photosku.services.storage_service import StorageService
from photosku.utils.validation import validate_sku, validate_upload

logger = get_logger(__name__)

router = APIRouter()


@router.post("/upload", response_model=UploadResponse)
async def upload_media(
    sku: str = Form(..., description="Product SKU"),
    files: List[UploadFile] = File(..., description="Photos and videos for the SKU"),
    storage: StorageService = Depends(get_storage_service),
    current_user: Operator = Depends(get_current_active_operator)
):
    """
    Store the photos and videos for one SKU

    **Returns:** one item per file with the `id` and `source_location` to
    submit to `/process`

    **Example using curl:**
    ```bash
    curl -X POST "http://localhost:8000/api/v1/upload" \\
      -H "Authorization: Bearer YOUR_TOKEN" \\
      -F "sku=123456" \\
      -F "files=@IMG_0001.jpg" \\
      -F "files=@clip.mp4"
    ```
    """
    is_valid, error = validate_sku(sku)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error)

    if len(files) > settings.MAX_FILES_PER_BATCH:
        raise HTTPException(
            status_code=400,
            detail=f"Maximum {settings.MAX_FILES_PER_BATCH} files allowed per batch"
        )

    logger.info(f"User {current_user.username} uploading {len(files)} files for SKU {sku}")

    # Validate everything before storing anything
    payloads = []
    for upload in files:
        data = await upload.read()
        is_valid, error = validate_upload(upload.filename or "", upload.content_type, len(data))
        if not is_valid:
            raise HTTPException(status_code=400, detail=error)
        payloads.append((upload.filename or "unnamed", upload.content_type, data))

    items = [
        await storage.save_upload(sku, filename, content_type, data)
        for filename, content_type, data in payloads
    ]
    return UploadResponse(sku=sku, files=items)
