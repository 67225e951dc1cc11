"""
notifications.py — Email + WhatsApp fan-out for a dispatch batch

Turns one committed (or resent) batch into delivery jobs: a single email
carrying both artifacts, and one WhatsApp send per number. Jobs run
sequentially; a failed job is logged and recorded in notification_logs,
never raised.

Business Rules:
- Staff (the acting user + every line's representative) always receive
  both channels; reply-to is the staff address list
- Operator-provided external recipients are added only when the channel is
  live (EMAIL_ENVIRONMENT / WHATSAPP_ENVIRONMENT == "production")
- Duplicates are dropped, first occurrence wins
- Subject: [RE: ]<INQUIRY|OFFER> FROM <COMPANY>[ | name][ site pr,...] #<batch>
- A channel counts as sent when at least one of its jobs succeeded
- Each job gets NOTIFICATION_MAX_ATTEMPTS tries (default 1 = no retry)

Called by: services/dispatch_service.py
Depends on: services/mail_sender.py, services/whatsapp.py, models.NotificationLog
"""

import enum
from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import ChannelDeliveryError
from ..models import DispatchDirection, Inquiry, NotificationLog, User
from .directions import profile_for
from .document_service import GeneratedDocuments
from .mail_sender import MailAttachment, MailSender
from .whatsapp import MessageSender


class Channel(str, enum.Enum):
    EMAIL = "email"
    MESSAGE = "message"


SUPPLIER_LETTER = (
    "Dear Sir/Madam,\n\n"
    "I hope this email finds you well. I am writing this to inquire about specific items "
    "and have attached the inquiry excel file for your reference. We request you to "
    "provide us with your best offer in response.\n\n"
    "We value your attention to detail and would greatly appreciate if you could ensure "
    "that all the necessary information is included in your offer. Specifically, kindly "
    'provide the details mentioned in the "Green" coloured columns of the attached file. '
    "This information is crucial for our evaluation and further decision-making process.\n"
    "If you have any queries or require further clarification, please do not hesitate to "
    "reach out to our representative (FPR) as you can also find in the below attached file."
)
SUPPLIER_CLOSING = "\n\nThank You"

CUSTOMER_LETTER = (
    "Dear Sir/Madam,\n\n"
    "I hope this email finds you well.\n"
    "Please find the attached offer against your subjected inquiry along with the "
    "necessary technical details. Hope this meets your requirements."
)
CUSTOMER_CLOSING = (
    "\n\nDo let us know in case of you require any changes in technicals or have some query."
    "\n\nThank You"
)


@dataclass
class NotificationJob:
    channel: Channel
    recipient: str
    payload: dict
    attempts: int = 0
    succeeded: bool = False
    error: str | None = None

    @property
    def payload_kind(self) -> str:
        return self.payload["kind"]


@dataclass
class FanOutRequest:
    direction: DispatchDirection
    batch_id: int
    user: User
    inquiries: list[Inquiry]
    counterparty_name: str
    documents: GeneratedDocuments
    spreadsheet_url: str
    pdf_url: str
    email: bool = False
    message: bool = False
    external_emails: list[str] = field(default_factory=list)
    external_numbers: list[str] = field(default_factory=list)
    remarks: str | None = None
    resend: bool = False


@dataclass
class FanOutResult:
    email_sent: bool = False
    message_sent: bool = False
    jobs: list[NotificationJob] = field(default_factory=list)


# ── Recipients ──────────────────────────────────────────────────────


def dedupe(values) -> list[str]:
    return list(dict.fromkeys(v.strip() for v in values if v and v.strip()))


def staff_members(user: User, inquiries: list[Inquiry]) -> list[User]:
    seen, staff = set(), []
    for member in [user, *(inq.representative for inq in inquiries)]:
        if member is not None and member.id not in seen:
            seen.add(member.id)
            staff.append(member)
    return staff


def resolve_recipients(staff: list[str], external: list[str], live: bool) -> list[str]:
    return dedupe([*staff, *(external if live else [])])


# ── Subject & body ──────────────────────────────────────────────────


def site_pr_labels(inquiries: list[Inquiry]) -> list[str]:
    labels = []
    for inq in inquiries:
        parts = [inq.site.name if inq.site else None, inq.pr_number_and_name]
        label = " ".join(p.strip() for p in parts if p and p.strip())
        if label:
            labels.append(label)
    return dedupe(labels)


def build_subject(
    direction: DispatchDirection | str,
    batch_id: int,
    counterparty_name: str | None,
    labels: list[str],
    resend: bool = False,
) -> str:
    kind = profile_for(direction).subject_kind
    subject = f"{kind} FROM {settings.company_short_name}"
    if counterparty_name:
        subject += f" | {counterparty_name}"
    if labels:
        subject += f" {','.join(labels)}"
    subject += f" #{batch_id}"
    return f"RE: {subject}" if resend else subject


def build_body(direction: DispatchDirection | str, remarks: str | None = None) -> str:
    if DispatchDirection(direction) == DispatchDirection.TO_SUPPLIER:
        letter, closing = SUPPLIER_LETTER, SUPPLIER_CLOSING
    else:
        letter, closing = CUSTOMER_LETTER, CUSTOMER_CLOSING
    if remarks and remarks.strip():
        return f"{letter}\n\n{remarks.strip()}{closing}"
    return letter + closing


def template_for(direction: DispatchDirection | str) -> str:
    if DispatchDirection(direction) == DispatchDirection.TO_SUPPLIER:
        return settings.whatsapp_supplier_template
    return settings.whatsapp_customer_template


# ── Jobs ────────────────────────────────────────────────────────────


def build_jobs(req: FanOutRequest) -> list[NotificationJob]:
    staff = staff_members(req.user, req.inquiries)
    jobs: list[NotificationJob] = []

    if req.email:
        staff_emails = dedupe(m.email for m in staff)
        to = resolve_recipients(staff_emails, req.external_emails, settings.live_email)
        if to:
            jobs.append(
                NotificationJob(
                    channel=Channel.EMAIL,
                    recipient=", ".join(to),
                    payload={
                        "kind": "mail",
                        "to": to,
                        "reply_to": staff_emails,
                        "subject": build_subject(
                            req.direction,
                            req.batch_id,
                            req.counterparty_name,
                            site_pr_labels(req.inquiries),
                            resend=req.resend,
                        ),
                        "body": build_body(req.direction, None if req.resend else req.remarks),
                    },
                )
            )

    if req.message:
        staff_numbers = dedupe(m.whatsapp for m in staff)
        numbers = resolve_recipients(staff_numbers, req.external_numbers, settings.live_messages)
        document_mode = req.resend and DispatchDirection(req.direction) == DispatchDirection.TO_CUSTOMER
        for number in numbers:
            if document_mode:
                payload = {"kind": "document", "text": settings.whatsapp_customer_text}
            else:
                payload = {
                    "kind": "template",
                    "template": template_for(req.direction),
                    "params": [req.spreadsheet_url, req.pdf_url],
                }
            jobs.append(NotificationJob(channel=Channel.MESSAGE, recipient=number, payload=payload))

    return jobs


async def _deliver(
    job: NotificationJob,
    documents: GeneratedDocuments,
    mail_sender: MailSender,
    message_sender: MessageSender,
) -> None:
    p = job.payload
    if p["kind"] == "mail":
        await mail_sender.send(
            p["to"],
            p["subject"],
            p["body"],
            attachments=[
                MailAttachment(a.filename, a.content, a.content_type) for a in documents.artifacts
            ],
            reply_to=p["reply_to"] or None,
        )
    elif p["kind"] == "template":
        await message_sender.send_template(job.recipient, p["template"], p["params"])
    elif p["kind"] == "document":
        sheet = documents.spreadsheet
        await message_sender.send_document(job.recipient, sheet.filename, sheet.content, sheet.content_type)
        await message_sender.send_text(job.recipient, p["text"])
    else:
        raise ChannelDeliveryError(
            f"Unknown payload kind {p['kind']!r}", channel=job.channel.value, recipient=job.recipient
        )


async def run_job(
    job: NotificationJob,
    documents: GeneratedDocuments,
    mail_sender: MailSender,
    message_sender: MessageSender,
    max_attempts: int = 1,
) -> NotificationJob:
    """Try a job up to max_attempts times. Sender errors of any kind mark the job failed."""
    while job.attempts < max(1, max_attempts):
        job.attempts += 1
        try:
            await _deliver(job, documents, mail_sender, message_sender)
        except ChannelDeliveryError as e:
            job.error = e.message
            logger.warning(
                "{} job to {} failed (attempt {}/{}): {}",
                job.channel.value,
                job.recipient,
                job.attempts,
                max_attempts,
                e.message,
            )
            continue
        except Exception as e:
            job.error = f"{type(e).__name__}: {e}"[:1000]
            logger.opt(exception=e).error(
                "{} job to {} crashed (attempt {}/{})",
                job.channel.value,
                job.recipient,
                job.attempts,
                max_attempts,
            )
            continue
        job.succeeded = True
        job.error = None
        break
    return job


async def fan_out(
    db: Session,
    req: FanOutRequest,
    mail_sender: MailSender,
    message_sender: MessageSender,
) -> FanOutResult:
    result = FanOutResult(jobs=build_jobs(req))
    for job in result.jobs:
        await run_job(job, req.documents, mail_sender, message_sender, settings.notification_max_attempts)
        db.add(
            NotificationLog(
                batch_id=req.batch_id,
                channel=job.channel.value,
                recipient=job.recipient[:1000],
                payload_kind=job.payload_kind,
                succeeded=job.succeeded,
                attempts=job.attempts,
                error=job.error,
            )
        )
    db.commit()

    result.email_sent = any(j.succeeded for j in result.jobs if j.channel == Channel.EMAIL)
    result.message_sent = any(j.succeeded for j in result.jobs if j.channel == Channel.MESSAGE)
    logger.info(
        "Batch {} fan-out{}: email_sent={} message_sent={} ({} jobs)",
        req.batch_id,
        " (resend)" if req.resend else "",
        result.email_sent,
        result.message_sent,
        len(result.jobs),
    )
    return result
