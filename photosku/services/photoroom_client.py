# photosku/services/photoroom_client.py
import asyncio
import time
from typing import Awaitable, Callable, Optional
import httpx

from photosku.core.config import settings
from photosku.core.errors import (
    CredentialError,
    PhotoRoomError,
    RateLimitedError,
    RemoteClientError,
    RemoteServerError,
    RemoteUnavailableError,
)
from photosku.core.logging import get_logger

logger = get_logger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Pull a short message out of a PhotoRoom error body"""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            value = body.get(key)
            if isinstance(value, dict):
                value = value.get("message") or value.get("detail")
            if value:
                return str(value)
    return f"HTTP {response.status_code}"


def classify_response(response: httpx.Response) -> PhotoRoomError:
    """Map a non-success response to the matching PhotoRoomError"""
    status = response.status_code
    message = _error_message(response)
    if status == 429:
        return RateLimitedError(f"Too many requests to PhotoRoom API: {message}", status=status)
    if status in (401, 403):
        return CredentialError(f"Invalid PhotoRoom API key: {message}", status=status)
    if status >= 500:
        return RemoteServerError(f"PhotoRoom server error: {message}", status=status)
    return RemoteClientError(f"PhotoRoom API error: {message}", status=status)


class PhotoRoomClient:
    """Background removal through the PhotoRoom edit API"""

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://image-api.photoroom.com/v2/edit",
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        timeout: float = 60.0,
        edit_params: Optional[dict] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.max_retries = max(1, max_retries)
        self.retry_base_delay = retry_base_delay
        self.timeout = timeout
        self.edit_params = edit_params or {}
        self._transport = transport
        self._sleep = sleep

    @classmethod
    def from_settings(cls, **overrides) -> "PhotoRoomClient":
        options = dict(
            api_key=settings.PHOTOROOM_API_KEY,
            api_url=settings.PHOTOROOM_API_URL,
            max_retries=settings.PHOTOROOM_MAX_RETRIES,
            retry_base_delay=settings.PHOTOROOM_RETRY_BASE_DELAY,
            timeout=settings.PHOTOROOM_TIMEOUT_SECONDS,
            edit_params={
                "background.color": settings.PHOTOROOM_BACKGROUND_COLOR,
                "outputSize": settings.PHOTOROOM_OUTPUT_SIZE,
                "position.gravity": settings.PHOTOROOM_GRAVITY,
                "padding": settings.PHOTOROOM_PADDING,
                "export.format": settings.PHOTOROOM_EXPORT_FORMAT,
            },
        )
        options.update(overrides)
        return cls(**options)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the given (1-based) failed attempt"""
        return self.retry_base_delay * (2 ** (attempt - 1))

    async def _call(self, image_bytes: bytes) -> bytes:
        files = {"imageFile": ("image.jpg", image_bytes, "image/jpeg")}
        headers = {
            "Accept": "image/png, application/json",
            "x-api-key": self.api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    headers=headers,
                    data=self.edit_params,
                    files=files,
                )
        except httpx.TransportError as exc:
            raise RemoteUnavailableError(f"PhotoRoom API unreachable: {exc}") from exc

        if response.is_success:
            return response.content
        raise classify_response(response)

    async def remove_background(self, image_bytes: bytes) -> bytes:
        """
        Remove the background of one image

        Args:
            image_bytes: Raw image bytes as uploaded

        Returns:
            The edited image bytes exactly as PhotoRoom returned them

        Raises:
            PhotoRoomError: last classified failure once retries are exhausted,
                or immediately for non-retryable failures
        """
        if not self.api_key:
            raise CredentialError("PHOTOROOM_API_KEY is not configured")

        last_error: Optional[PhotoRoomError] = None
        for attempt in range(1, self.max_retries + 1):
            start = time.time()
            try:
                logger.debug(f"PhotoRoom attempt {attempt}/{self.max_retries} ({len(image_bytes)} bytes)")
                result = await self._call(image_bytes)
                logger.info(
                    f"PhotoRoom success on attempt {attempt} in {time.time() - start:.2f}s, "
                    f"{len(result)} bytes"
                )
                return result
            except PhotoRoomError as exc:
                last_error = exc
                logger.warning(f"PhotoRoom attempt {attempt}/{self.max_retries} failed: {exc.message}")
                if not exc.retryable or attempt == self.max_retries:
                    break
                delay = self.backoff_delay(attempt)
                logger.info(f"Retrying PhotoRoom call in {delay:.1f}s")
                await self._sleep(delay)

        raise last_error


# Global client instance
photoroom_client = PhotoRoomClient.from_settings()
