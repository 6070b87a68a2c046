from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from photosku.core.security import decode_access_token
from photosku.models.auth import Operator
from photosku.core.config import settings
from photosku.core.logging import get_logger
from photosku.services.batch_services import BatchService, batch_service
from photosku.services.ledger_store import LedgerStore, ledger_store
from photosku.services.packaging_service import PackagingService, packaging_service
from photosku.services.progress_tracker import ProgressTracker, progress_tracker
from photosku.services.storage_service import StorageService, storage_service
from photosku.services.telegram_service import TelegramService, telegram_service

logger = get_logger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer()


def get_current_operator(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Operator:
    """
    Validate JWT token and return the operator

    Raises:
        HTTPException: If token is invalid or the operator is unknown
    """
    payload = decode_access_token(credentials.credentials)

    username: str = payload.get("sub")
    if username is None:
        logger.warning("Token missing 'sub' claim")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if username != settings.TEST_USER_USERNAME:
        logger.warning(f"Unknown operator in token: {username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Operator(username=username)


def get_current_active_operator(
    current: Operator = Depends(get_current_operator)
) -> Operator:
    if current.disabled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )
    return current


# Service providers, overridden in tests
def get_storage_service() -> StorageService:
    return storage_service


def get_ledger_store() -> LedgerStore:
    return ledger_store


def get_batch_service() -> BatchService:
    return batch_service


def get_packaging_service() -> PackagingService:
    return packaging_service


def get_telegram_service() -> TelegramService:
    return telegram_service


def get_progress_tracker() -> ProgressTracker:
    return progress_tracker
