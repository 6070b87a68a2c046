# photosku/services/ledger_store.py
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Union
from pydantic import ValidationError

from photosku.core.config import settings
from photosku.core.errors import LedgerNotFoundError, StorageError
from photosku.core.logging import get_logger
from photosku.models.media import BatchLedger

logger = get_logger(__name__)


class LedgerStore:
    """
    Persists one BatchLedger per SKU as {uploads}/{sku}/{sku}-process-info.json

    Writes replace the previous ledger for the SKU. Two runs for the same SKU
    at the same time are not supported: the last writer wins.
    """

    def __init__(self, root: Union[str, Path, None] = None):
        self.root = Path(root or settings.UPLOADS_DIR).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def generate_batch_id(self) -> str:
        """Generate unique batch ID"""
        return f"{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"

    def path_for(self, sku: str) -> Path:
        return self.root / sku / f"{sku}-process-info.json"

    def exists(self, sku: str) -> bool:
        return self.path_for(sku).exists()

    def write(self, ledger: BatchLedger) -> Path:
        """Store the ledger, replacing any earlier one for the SKU"""
        path = self.path_for(ledger.sku)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(path.name + ".tmp")
            tmp.write_text(ledger.model_dump_json(indent=2), encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise StorageError(f"Failed to write ledger for SKU {ledger.sku}: {e}") from e
        logger.info(f"Ledger stored for SKU {ledger.sku} (batch {ledger.batch_id})")
        return path

    def read(self, sku: str) -> BatchLedger:
        path = self.path_for(sku)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise LedgerNotFoundError(f"No processing results found for SKU {sku}")
        except OSError as e:
            raise StorageError(f"Failed to read ledger for SKU {sku}: {e}") from e
        try:
            return BatchLedger.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Ledger for SKU {sku} is corrupt: {e.error_count()} errors") from e

    def delete(self, sku: str) -> bool:
        path = self.path_for(sku)
        if not path.exists():
            return False
        path.unlink()
        return True


# Global ledger store instance
ledger_store = LedgerStore()
