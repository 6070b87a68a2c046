# tests/conftest.py
import asyncio
import os
import tempfile
from pathlib import Path

import pytest

# Settings are read at import time, so point every path at a scratch
# directory before anything from photosku is imported.
_SCRATCH = Path(tempfile.mkdtemp(prefix="photosku-tests-"))
os.environ.setdefault("UPLOADS_DIR", str(_SCRATCH / "uploads"))
os.environ.setdefault("LOG_DIR", str(_SCRATCH / "logs"))
os.environ.setdefault("PHOTOROOM_API_KEY", "test-key")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123:test-token")
os.environ.setdefault("TELEGRAM_CHAT_ID", "-1001234567890")

from photosku.services.ledger_store import LedgerStore  # noqa: E402
from photosku.services.storage_service import StorageService  # noqa: E402


class FakePhotoRoom:
    """
    Stands in for PhotoRoomClient: echoes the bytes with a prefix and
    records how many calls were in flight at once.
    """

    def __init__(self, delay: float = 0.01):
        self.delay = delay
        self.calls = []
        self.failures = {}
        self.in_flight = 0
        self.peak = 0

    async def remove_background(self, image_bytes: bytes) -> bytes:
        self.calls.append(image_bytes)
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            error = self.failures.get(image_bytes)
            if error is not None:
                raise error
            return b"edited:" + image_bytes
        finally:
            self.in_flight -= 1


@pytest.fixture
def uploads_root(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def storage(uploads_root):
    return StorageService(uploads_root)


@pytest.fixture
def ledgers(uploads_root):
    return LedgerStore(uploads_root)


@pytest.fixture
def fake_client():
    return FakePhotoRoom()
