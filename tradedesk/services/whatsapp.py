"""
whatsapp.py — WhatsApp Cloud API sender

Three payload kinds, one recipient per call:
  - text:     plain message body
  - template: pre-approved template with body text parameters
  - document: file uploaded to /media first, then sent by media id

Business Rules:
- Every payload carries messaging_product = "whatsapp"
- Numbers are sent as digits only (no +, spaces or dashes)
- Non-2xx responses and transport errors raise ChannelDeliveryError

Called by: services/notifications.py
Depends on: http_client, config
"""

import re
from functools import lru_cache
from typing import Protocol

import httpx
from loguru import logger

from ..config import settings
from ..exceptions import ChannelDeliveryError
from ..http_client import http


class MessageSender(Protocol):
    async def send_text(self, to: str, text: str) -> None: ...

    async def send_template(self, to: str, template: str, params: list[str]) -> None: ...

    async def send_document(self, to: str, filename: str, content: bytes, content_type: str) -> None: ...


def normalize_number(number: str) -> str:
    return re.sub(r"\D", "", number or "")


class WhatsAppSender:
    def __init__(
        self,
        phone_number_id: str,
        access_token: str,
        *,
        api_base: str = "https://graph.facebook.com/v19.0",
        language: str = "en",
        client: httpx.AsyncClient | None = None,
    ):
        self.phone_number_id = phone_number_id
        self.access_token = access_token
        self.api_base = api_base.rstrip("/")
        self.language = language
        self._client = client or http

    @property
    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _post(self, path: str, recipient: str, **kwargs) -> dict:
        url = f"{self.api_base}/{self.phone_number_id}/{path}"
        try:
            resp = await self._client.post(url, headers=self._headers, timeout=30, **kwargs)
        except httpx.HTTPError as e:
            raise ChannelDeliveryError(
                f"WhatsApp request failed: {e}", channel="message", recipient=recipient
            ) from e
        if resp.status_code >= 300:
            raise ChannelDeliveryError(
                f"WhatsApp {resp.status_code}: {resp.text[:300]}",
                channel="message",
                recipient=recipient,
            )
        return resp.json() if resp.content else {}

    async def _send(self, to: str, payload: dict) -> dict:
        number = normalize_number(to)
        if not number:
            raise ChannelDeliveryError("Empty WhatsApp number", channel="message", recipient=to)
        body = {"messaging_product": "whatsapp", "recipient_type": "individual", "to": number, **payload}
        result = await self._post("messages", to, json=body)
        logger.info("WhatsApp {} sent to {}", payload.get("type"), number)
        return result

    async def send_text(self, to: str, text: str) -> None:
        await self._send(to, {"type": "text", "text": {"preview_url": True, "body": text}})

    async def send_template(self, to: str, template: str, params: list[str]) -> None:
        await self._send(
            to,
            {
                "type": "template",
                "template": {
                    "name": template,
                    "language": {"code": self.language},
                    "components": [
                        {
                            "type": "body",
                            "parameters": [{"type": "text", "text": p} for p in params],
                        }
                    ],
                },
            },
        )

    async def upload_media(self, filename: str, content: bytes, content_type: str, recipient: str = "") -> str:
        result = await self._post(
            "media",
            recipient,
            data={"messaging_product": "whatsapp", "type": content_type},
            files={"file": (filename, content, content_type)},
        )
        media_id = result.get("id")
        if not media_id:
            raise ChannelDeliveryError(
                "WhatsApp media upload returned no id", channel="message", recipient=recipient
            )
        return media_id

    async def send_document(self, to: str, filename: str, content: bytes, content_type: str) -> None:
        media_id = await self.upload_media(filename, content, content_type, recipient=to)
        await self._send(to, {"type": "document", "document": {"id": media_id, "filename": filename}})


@lru_cache(maxsize=1)
def get_message_sender() -> MessageSender:
    return WhatsAppSender(
        settings.whatsapp_phone_number_id,
        settings.whatsapp_access_token,
        api_base=settings.whatsapp_api_base,
        language=settings.whatsapp_template_language,
    )
