# photosku/services/telegram_service.py
from typing import Optional, Union
import httpx

from photosku.core.config import settings
from photosku.core.errors import DeliveryError
from photosku.core.logging import get_logger

logger = get_logger(__name__)


def normalize_chat_id(chat_id: str) -> Union[int, str]:
    """Group and channel ids ("-100...") go out as integers, usernames as text"""
    chat_id = chat_id.strip()
    if chat_id.lstrip("-").isdigit():
        return int(chat_id)
    return chat_id


def build_caption(sku: str, file_count: int) -> str:
    return f"Processed photos for SKU: {sku}\nTotal files: {file_count}"


class TelegramService:
    """Sends archives to a chat through the Telegram Bot API"""

    def __init__(
        self,
        bot_token: str,
        api_url: str = "https://api.telegram.org",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bot_token = bot_token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def send_document(
        self,
        chat_id: str,
        filename: str,
        content: bytes,
        caption: Optional[str] = None
    ) -> int:
        """
        Upload a document to a chat

        Returns:
            Telegram message id

        Raises:
            DeliveryError: missing token or a rejected request
        """
        if not self.bot_token:
            raise DeliveryError("TELEGRAM_BOT_TOKEN is not configured")
        if not chat_id:
            raise DeliveryError("Telegram chat id is required")

        url = f"{self.api_url}/bot{self.bot_token}/sendDocument"
        data = {"chat_id": normalize_chat_id(chat_id)}
        if caption:
            data["caption"] = caption
        files = {"document": (filename, content, "application/zip")}

        logger.info(f"Sending {filename} ({len(content)} bytes) to Telegram chat {chat_id}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, data=data, files=files)
        except httpx.HTTPError as exc:
            raise DeliveryError(f"Telegram API unreachable: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            raise DeliveryError(f"Telegram returned non-JSON response (HTTP {resp.status_code})")

        if not isinstance(body, dict):
            raise DeliveryError(f"Telegram returned an unexpected response (HTTP {resp.status_code})")

        if resp.status_code >= 400 or not body.get("ok"):
            description = body.get("description", "unknown error")
            logger.error(f"Telegram API error: {description}")
            raise DeliveryError(f"Failed to send file to Telegram: {description}")

        message_id = body["result"]["message_id"]
        logger.info(f"File sent to Telegram, message_id={message_id}")
        return message_id


# Global telegram service instance
telegram_service = TelegramService(settings.TELEGRAM_BOT_TOKEN, settings.TELEGRAM_API_URL)
