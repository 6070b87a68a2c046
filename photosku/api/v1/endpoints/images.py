from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from photosku.api.deps import get_storage_service
from photosku.core.errors import StorageError
from photosku.services.storage_service import StorageService

router = APIRouter()

MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
}


@router.get("/images/{sku}/{filename}")
async def get_image(
    sku: str,
    filename: str,
    storage: StorageService = Depends(get_storage_service)
):
    """Serve a stored original or processed file (public, for previews)"""
    try:
        path = storage.resolve(sku, filename)
    except StorageError:
        raise HTTPException(status_code=404, detail="Image not found")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Image not found")

    extension = path.suffix.lstrip(".").lower()
    return FileResponse(
        path,
        media_type=MIME_TYPES.get(extension, "application/octet-stream"),
        headers={"Cache-Control": "public, max-age=31536000, immutable"}
    )
