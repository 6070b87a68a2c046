# photosku/models/media.py
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, computed_field


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class ProcessStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"
    SKIPPED = "skipped"


TERMINAL_STATUSES = {ProcessStatus.DONE, ProcessStatus.ERROR, ProcessStatus.SKIPPED}


class MediaItem(BaseModel):
    """One uploaded file submitted for a batch"""
    id: str = Field(description="Identifier stable for the lifetime of the batch")
    original_name: str = Field(description="Filename supplied by the client")
    kind: MediaKind = Field(description="image or video, from the declared content type")
    source_location: str = Field(description="Where the uploaded bytes are stored")
    content_type: Optional[str] = Field(None, description="Declared MIME type")
    size: Optional[int] = Field(None, description="Size in bytes")


class ProcessResult(BaseModel):
    """Outcome for a single file in a batch"""
    id: str = Field(description="Identifier of the submitted item")
    original_name: str = Field(description="Original filename")
    final_name: str = Field(description="Canonical SKU_NNN.ext name")
    kind: MediaKind
    sequence: int = Field(ge=1, description="Sequence number inside the batch")
    status: ProcessStatus
    error: Optional[str] = Field(None, description="Error message if failed")
    error_code: Optional[str] = Field(None, description="Machine readable error class")
    source_location: str = Field(description="Location of the original bytes")
    output_location: Optional[str] = Field(None, description="Where the edited bytes were written")
    preview_url: Optional[str] = Field(None, description="URL serving the edited file")


class BatchLedger(BaseModel):
    """Per-file outcomes for one SKU submission"""
    batch_id: str = Field(description="Batch processing ID")
    sku: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    total_time: float = Field(0.0, description="Total processing time in seconds")
    results: List[ProcessResult] = Field(default_factory=list)

    @computed_field
    @property
    def total_files(self) -> int:
        return len(self.results)

    @computed_field
    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.status == ProcessStatus.DONE)

    @computed_field
    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == ProcessStatus.SKIPPED)

    @computed_field
    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == ProcessStatus.ERROR)

    @computed_field
    @property
    def success(self) -> bool:
        return self.failed == 0

    def failed_results(self) -> List[ProcessResult]:
        return [r for r in self.results if r.status == ProcessStatus.ERROR]


class ItemProgress(BaseModel):
    id: str
    original_name: str
    final_name: Optional[str] = None
    status: ProcessStatus
    error: Optional[str] = None


class BatchStatusResponse(BaseModel):
    """Status of a batch processing job"""
    sku: str
    batch_id: Optional[str] = None
    status: str  # "idle", "processing", "completed", "failed"
    total_files: int
    processed_files: int
    successful: int
    failed: int
    skipped: int
    items: List[ItemProgress] = Field(default_factory=list)
