# photosku/core/errors.py
"""
Domain exceptions.

Every error the services raise derives from PhotoSkuError so the HTTP layer
can map it to a JSON response in one place. PhotoRoom failures carry a
`retryable` flag that drives the client's retry loop.
"""
from typing import Any, Optional


class PhotoSkuError(Exception):
    """Base class for service errors"""
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class BatchValidationError(PhotoSkuError):
    """Malformed batch input; raised before any remote call is made"""
    status_code = 400
    code = "validation_error"


class StorageError(PhotoSkuError):
    """Reading or writing a stored file failed"""
    status_code = 500
    code = "storage_error"


class LedgerNotFoundError(PhotoSkuError):
    status_code = 404
    code = "ledger_not_found"


class DeliveryError(PhotoSkuError):
    """Telegram delivery failed"""
    status_code = 502
    code = "delivery_error"


class PhotoRoomError(PhotoSkuError):
    """Base class for background-removal failures"""
    status_code = 502
    code = "photoroom_error"
    retryable: bool = False

    def __init__(self, message: str, *, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message, code=code)
        self.status = status


class RateLimitedError(PhotoRoomError):
    code = "rate_limited"
    retryable = True


class CredentialError(PhotoRoomError):
    """
    The shared PhotoRoom credential was rejected.

    Fatal to the whole batch: the scheduler attaches the ledger it wrote
    before re-raising so callers still get per-file results.
    """
    code = "unauthorized"
    retryable = False

    def __init__(self, message: str, *, status: Optional[int] = None, ledger: Any = None):
        super().__init__(message, status=status)
        self.ledger = ledger

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.ledger is not None:
            data["ledger"] = self.ledger.model_dump(mode="json")
        return data


class RemoteServerError(PhotoRoomError):
    code = "remote_server_error"
    retryable = True


class RemoteUnavailableError(RemoteServerError):
    """Network failure or timeout before a response arrived"""
    code = "remote_unavailable"


class RemoteClientError(PhotoRoomError):
    """Any other 4xx: malformed request or unsupported content"""
    code = "remote_client_error"
    retryable = False
