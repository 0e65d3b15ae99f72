"""CallMeBot WhatsApp/Telegram relay client."""
import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.security.encryption import mask_phone_number

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4096
MIN_PHONE_DIGITS = 10
USER_AGENT = "TradeHub-Todo-System/1.0"

_NON_DIGITS = re.compile(r"\D")


class CallMeBotClient:
    """Thin async client for the CallMeBot gateway.

    Every send issues exactly one GET and never retries; failures come back as
    ``{"success": False, "error": ..., "details": ...}`` instead of raising.
    """

    def __init__(
        self,
        base_url: str = None,
        telegram_url: str = None,
        timeout: float = None,
        batch_delay: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.CALLMEBOT_BASE_URL).rstrip("/")
        self.telegram_url = (telegram_url or settings.TELEGRAM_API_URL).rstrip("/")
        self.timeout = settings.NOTIFICATION_HTTP_TIMEOUT if timeout is None else timeout
        self.batch_delay = settings.NOTIFICATION_BATCH_DELAY_SECONDS if batch_delay is None else batch_delay
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return response.text

    async def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.get(url, params=params)
        except httpx.TimeoutException:
            return {"success": False, "error": f"Request timeout after {self.timeout:g} seconds", "data": None}
        except httpx.HTTPError as exc:
            return {"success": False, "error": f"Request failed: {exc}", "data": None}

        data = self._parse_body(response)
        if response.is_success:
            return {"success": True, "data": data, "status_code": response.status_code}
        return {
            "success": False,
            "error": f"HTTP {response.status_code}: {response.reason_phrase}",
            "data": data,
            "status_code": response.status_code,
        }

    async def send_whatsapp(self, phone_number: str, message: str, api_key: Optional[str]) -> Dict[str, Any]:
        """Send one WhatsApp message through the relay."""
        clean_phone = _NON_DIGITS.sub("", phone_number or "")
        logger.info(
            "Sending WhatsApp message to %s (api key %s)",
            mask_phone_number(clean_phone),
            "provided" if api_key else "missing",
        )

        params = {"phone": clean_phone, "text": message, "apikey": api_key or ""}

        result = await self._get(f"{self.base_url}/whatsapp.php", params)
        if result["success"]:
            logger.info("CallMeBot WhatsApp message sent to %s", mask_phone_number(clean_phone))
            return {
                "success": True,
                "message": "WhatsApp message sent successfully",
                "response": result["data"],
            }

        logger.warning("CallMeBot WhatsApp send failed: %s", result["error"])
        return {
            "success": False,
            "error": result["error"],
            "details": result["data"] if result["data"] is not None else "No response details",
        }

    async def send_telegram(self, message: str, chat_id: str, bot_token: str) -> Dict[str, Any]:
        """Send one message through the Telegram Bot API."""
        logger.info("Sending Telegram message to chat %s", chat_id)
        result = await self._get(
            f"{self.telegram_url}/bot{bot_token}/sendMessage",
            {"chat_id": chat_id, "text": message, "parse_mode": "HTML"},
        )
        if result["success"]:
            return {"success": True, "response": result["data"]}

        logger.warning("Telegram send failed: %s", result["error"])
        return {"success": False, "error": result["error"], "details": result["data"]}

    @staticmethod
    def validate_phone_number(phone_number: str) -> Dict[str, Any]:
        clean_phone = _NON_DIGITS.sub("", phone_number or "")
        if len(clean_phone) < MIN_PHONE_DIGITS:
            return {"valid": False, "error": "Phone number too short", "cleaned": clean_phone}
        if not clean_phone.isdigit():
            return {"valid": False, "error": "Phone number contains invalid characters", "cleaned": clean_phone}
        return {"valid": True, "cleaned": clean_phone, "formatted": f"+{clean_phone}"}

    @staticmethod
    def validate_message(message: str) -> Dict[str, Any]:
        """Check a message against the gateway's practical length limit."""
        if not message or not message.strip():
            return {"valid": False, "error": "Message cannot be empty"}
        if len(message) > MAX_MESSAGE_LENGTH:
            return {
                "valid": False,
                "error": f"Message too long ({len(message)} characters, max {MAX_MESSAGE_LENGTH})",
                "truncated": message[: MAX_MESSAGE_LENGTH - 100] + "... [truncated]",
            }
        return {
            "valid": True,
            "length": len(message),
            "preview": message[:100] + ("..." if len(message) > 100 else ""),
        }

    async def send_batch(self, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Send ``{phone_number, message, api_key}`` items one after another.

        A failed item is recorded and the batch carries on.
        """
        logger.info("Processing batch of %d WhatsApp messages", len(messages))
        results = []
        for index, item in enumerate(messages):
            result = await self.send_whatsapp(item["phone_number"], item["message"], item.get("api_key"))
            results.append(
                {
                    "index": index,
                    "phone_number": mask_phone_number(item["phone_number"]),
                    "success": result["success"],
                    "error": result.get("error"),
                    "message_preview": item["message"][:50] + "...",
                }
            )
            if index < len(messages) - 1 and self.batch_delay:
                await asyncio.sleep(self.batch_delay)

        successful = sum(1 for result in results if result["success"])
        failed = len(results) - successful
        logger.info("Batch completed: %d successful, %d failed", successful, failed)
        return {
            "success": failed == 0,
            "total": len(messages),
            "successful": successful,
            "failed": failed,
            "results": results,
        }

    async def check_service_status(self) -> Dict[str, Any]:
        result = await self._get(f"{self.base_url}/", {})
        return {
            "service": "CallMeBot",
            "status": "online" if result["success"] else "offline",
            "details": {key: value for key, value in result.items() if key != "data"},
        }


def get_callmebot_client() -> CallMeBotClient:
    """Build a client from settings."""
    return CallMeBotClient()
