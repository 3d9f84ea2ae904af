import httpx
import logging
from typing import Optional
from bot.config.settings import (
    WHATSAPP_API_URL,
    WHATSAPP_PHONE_ID,
    WHATSAPP_TOKEN,
    REQUEST_TIMEOUT
)

logger = logging.getLogger(__name__)


class WhatsAppNotifier:
    """Fire-and-forget text replies through the WhatsApp Cloud API.

    Delivery problems are logged and never raised: by the time a reply is sent
    the trade outcome is already decided.
    """

    def __init__(self, api_url: str = WHATSAPP_API_URL, phone_id: Optional[str] = WHATSAPP_PHONE_ID,
                 token: Optional[str] = WHATSAPP_TOKEN, timeout: float = REQUEST_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url.rstrip("/")
        self.phone_id = phone_id
        self.token = token
        self.timeout = timeout
        self.transport = transport

    @property
    def messages_url(self) -> str:
        return f"{self.api_url}/{self.phone_id}/messages"

    @staticmethod
    def build_payload(to: str, text: str) -> dict:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "text",
            "text": {"preview_url": False, "body": text}
        }

    async def send(self, to: str, text: str) -> None:
        if not self.token or not self.phone_id:
            logger.warning("WhatsApp is not configured, dropping reply")
            return

        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json"
        }
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(self.messages_url, headers=headers, json=self.build_payload(to, text))
        except httpx.TimeoutException:
            logger.error(f"WhatsApp request to {to} timed out")
            return
        except httpx.HTTPError as e:
            logger.error(f"Can't send WhatsApp message to {to}: {e}")
            return

        if response.status_code >= 300:
            logger.error(f"WhatsApp API error ({response.status_code}): {response.text}")
            return
        logger.info(f"WhatsApp reply delivered to {to}")
