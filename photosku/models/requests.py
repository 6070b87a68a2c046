from typing import List, Optional
from pydantic import BaseModel, Field
from photosku.models.media import MediaItem


class UploadResponse(BaseModel):
    """Files stored for a SKU, ready to be submitted for processing"""
    success: bool = True
    sku: str
    files: List[MediaItem]


class ProcessRequest(BaseModel):
    """Batch processing request"""
    sku: str = Field(description="Validated product SKU")
    files: List[MediaItem] = Field(description="Items returned by the upload endpoint")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "sku": "123456",
                    "files": [
                        {
                            "id": "3f0c9c1e6b8d4a51a3a3f1a2b7c9d0e4",
                            "original_name": "IMG_0001.png",
                            "kind": "image",
                            "source_location": "uploads/123456/5b1e.png"
                        }
                    ]
                }
            ]
        }
    }


class SkuRequest(BaseModel):
    sku: str


class DownloadRequest(BaseModel):
    sku: str
    include_originals: bool = Field(False, description="Add failed originals under originals/")
    cleanup: bool = Field(True, description="Remove the SKU's files once the archive is built")


class TelegramRequest(BaseModel):
    sku: str
    chat_id: Optional[str] = Field(None, description="Defaults to TELEGRAM_CHAT_ID")


class TelegramResponse(BaseModel):
    success: bool = True
    message: str
    telegram_message_id: int
