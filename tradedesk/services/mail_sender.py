"""Outbound email through Microsoft Graph sendMail.

One message per call, sent from the shared MAIL_SENDER_ADDRESS mailbox with
app-only (client credentials) auth. Attachments are inlined as base64
fileAttachment objects. Any failure raises ChannelDeliveryError.
"""

import base64
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

from loguru import logger

from ..config import settings
from ..exceptions import ChannelDeliveryError
from ..utils.graph_client import GraphClient


@dataclass
class MailAttachment:
    filename: str
    content: bytes
    content_type: str


class MailSender(Protocol):
    async def send(
        self,
        to: list[str],
        subject: str,
        body: str,
        *,
        attachments: list[MailAttachment] | None = None,
        reply_to: list[str] | None = None,
    ) -> None: ...


def _recipients(addresses: list[str]) -> list[dict]:
    return [{"emailAddress": {"address": a}} for a in addresses]


def build_graph_message(
    to: list[str],
    subject: str,
    body: str,
    attachments: list[MailAttachment] | None = None,
    reply_to: list[str] | None = None,
) -> dict:
    message = {
        "subject": subject,
        "body": {"contentType": "Text", "content": body},
        "toRecipients": _recipients(to),
    }
    if reply_to:
        message["replyTo"] = _recipients(reply_to)
    if attachments:
        message["attachments"] = [
            {
                "@odata.type": "#microsoft.graph.fileAttachment",
                "name": a.filename,
                "contentType": a.content_type,
                "contentBytes": base64.b64encode(a.content).decode("ascii"),
            }
            for a in attachments
        ]
    return {"message": message, "saveToSentItems": True}


class GraphMailSender:
    def __init__(self, graph: GraphClient, mailbox: str):
        self.graph = graph
        self.mailbox = mailbox

    async def send(self, to, subject, body, *, attachments=None, reply_to=None) -> None:
        recipients = ", ".join(to)
        if not to:
            raise ChannelDeliveryError("No email recipients", channel="email", recipient="")
        if not self.mailbox:
            raise ChannelDeliveryError(
                "MAIL_SENDER_ADDRESS is not configured", channel="email", recipient=recipients
            )
        payload = build_graph_message(to, subject, body, attachments, reply_to)
        result = await self.graph.post_json(f"/users/{self.mailbox}/sendMail", payload)
        if "error" in result:
            raise ChannelDeliveryError(
                f"Graph sendMail failed: {result.get('error')} {result.get('detail', '')}".strip(),
                channel="email",
                recipient=recipients,
            )
        logger.info("Email sent: {!r} to {} recipient(s)", subject, len(to))


@lru_cache(maxsize=1)
def get_mail_sender() -> MailSender:
    graph = GraphClient(
        settings.azure_tenant_id, settings.azure_client_id, settings.azure_client_secret
    )
    return GraphMailSender(graph, settings.mail_sender_address)
