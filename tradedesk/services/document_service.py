"""
document_service.py — Spreadsheet + PDF letter for a dispatch batch

Renders the two audit artifacts sent with every dispatch: an .xlsx sheet
(one row per inquiry) and a PDF cover letter. Everything is produced in
memory; uploading and registering Attachment rows is a separate step
(register_artifacts) so the caller decides when blobs become visible.

Business Rules:
- Header colours by column role: primary yellow, supplier_input green
  (the columns the supplier must fill in), auxiliary sky blue
- Inquiry images go into the IMAGE column at 100x100 px, row height 80
- Money: line total = round_money(price * quantity), never round first;
  aggregate = round_money(sum of line totals); ROUND_HALF_UP to 0.01
- Document dates use the caller's offset (local = UTC - offset minutes);
  the letter date is DD/MM/YYYY
- Filenames: Inquiries-<Supplier|Customer>-<name>-<epoch ms>.<ext>

Called by: services/dispatch_service.py
Depends on: openpyxl (+ Pillow for images), jinja2, weasyprint, services/storage.py
"""

import asyncio
import enum
import io
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from functools import partial
from pathlib import Path

from jinja2 import Environment, FileSystemLoader
from loguru import logger
from openpyxl import Workbook
from openpyxl.drawing.image import Image as XLImage
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from PIL import UnidentifiedImageError
from sqlalchemy.orm import Session

from ..exceptions import StorageError
from ..models import Attachment, DispatchDirection, Inquiry
from .directions import profile_for
from .storage import ObjectStorage

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_CONTENT_TYPE = "application/pdf"

MONEY_QUANTUM = Decimal("0.01")
IMAGE_SIZE_PX = 100
IMAGE_ROW_HEIGHT = 80
DEFAULT_CURRENCY_LABEL = "(INR)"

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "documents"


# ── Money ───────────────────────────────────────────────────────────


def round_money(value) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def line_total(price, quantity) -> Decimal | None:
    """price * quantity at full precision, then rounded once."""
    if price is None or quantity is None:
        return None
    return round_money(Decimal(str(price)) * Decimal(str(quantity)))


def aggregate_total(totals) -> Decimal:
    return round_money(sum((t for t in totals if t is not None), Decimal("0")))


def format_money(value) -> str:
    if value is None:
        return ""
    return f"{round_money(value):,.2f}"


# ── Dates ───────────────────────────────────────────────────────────


def local_time(offset_minutes: int, now: datetime | None = None) -> datetime:
    """Caller's wall-clock time as a naive datetime (JS getTimezoneOffset convention)."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    return now - timedelta(minutes=offset_minutes or 0)


# ── Column schemas ──────────────────────────────────────────────────


class ColumnRole(str, enum.Enum):
    PRIMARY = "primary"
    SUPPLIER_INPUT = "supplier_input"
    AUXILIARY = "auxiliary"


ROLE_FILLS = {
    ColumnRole.PRIMARY: "FFFFFF00",
    ColumnRole.SUPPLIER_INPUT: "FF00FF00",
    ColumnRole.AUXILIARY: "FF87CEEB",
}


@dataclass(frozen=True)
class ColumnSpec:
    key: str
    header: str
    width: int
    role: ColumnRole = ColumnRole.PRIMARY


IMAGE_KEY = "image"

SUPPLIER_COLUMNS = (
    ColumnSpec("item_code", "INQUIRY ITEM ID", 10),
    ColumnSpec("sr", "SR. NO.", 8),
    ColumnSpec("pr_number_and_name", "PR NUMBER & NAME", 25),
    ColumnSpec("sales_description", "GOODS DESCRIPTION (SALES DESCRIPTION)", 30),
    ColumnSpec("sales_unit", "UNIT", 8),
    ColumnSpec("quantity", "QTY", 8),
    ColumnSpec("size", "SIZE/SPECIFICATION", 20),
    ColumnSpec(IMAGE_KEY, "IMAGE", 15),
    ColumnSpec(
        "purchase_description",
        "GOODS DESCRIPTION SUPPLIER (PURCHASE DESCRIPTION)",
        30,
        ColumnRole.SUPPLIER_INPUT,
    ),
    ColumnSpec("purchase_unit", "UOM FROM SUPPLIER", 8, ColumnRole.SUPPLIER_INPUT),
    ColumnSpec("to_supplier_date", "INQUIRY SUBMISSION DATE TO SUPPLIER", 10),
    ColumnSpec("supplier_price", "SUPPLIER PRICE", 10, ColumnRole.SUPPLIER_INPUT),
    ColumnSpec("estimated_delivery_days", "ESTIMATED DELIVERY DAYS", 10, ColumnRole.AUXILIARY),
    ColumnSpec("gst_rate", "GST RATE", 8, ColumnRole.AUXILIARY),
    ColumnSpec("hsn_code", "HSN CODE", 12, ColumnRole.AUXILIARY),
    ColumnSpec("total_supplier_price", "TOTAL SUPPLIER PRICE", 10),
    ColumnSpec("fpr", "FPR", 12),
    ColumnSpec("fpr_email", "FPR Email", 12),
    ColumnSpec("fpr_mobile", "FPR Mobile", 12),
    ColumnSpec("inquiry_id", "INQUIRY ID", 10),
)

CUSTOMER_COLUMNS = (
    ColumnSpec("item_code", "INQUIRY ITEM ID", 10),
    ColumnSpec("sr", "SR. NO.", 8),
    ColumnSpec("sales_description", "GOODS DESCRIPTION (SALES DESCRIPTION)", 30),
    ColumnSpec("sales_unit", "UNIT", 8),
    ColumnSpec("quantity", "QTY", 8),
    ColumnSpec("size", "SIZE/SPECIFICATION", 20),
    ColumnSpec(IMAGE_KEY, "IMAGE", 15),
    ColumnSpec("purchase_description", "GOODS DESCRIPTION SUPPLIER (PURCHASE DESCRIPTION)", 30),
    ColumnSpec("purchase_unit", "UOM FROM SUPPLIER", 8),
    ColumnSpec("estimated_delivery_days", "ESTIMATED DELIVERY DAYS", 10),
    ColumnSpec("customer_price", "OFFER PRICE TO OUR BUYER/CUSTOMER", 10),
    ColumnSpec("total_customer_price", "TOTAL Customer Price", 10),
    ColumnSpec("offer_submission_date", "OFFER SUBMISSION DATE", 10),
)

COLUMNS = {
    DispatchDirection.TO_SUPPLIER: SUPPLIER_COLUMNS,
    DispatchDirection.TO_CUSTOMER: CUSTOMER_COLUMNS,
}


# ── Rows ────────────────────────────────────────────────────────────


@dataclass
class SupplierInquiryRow:
    inquiry_id: int
    item_code: str | None
    sr: int
    site: str | None
    pr_number_and_name: str | None
    sales_description: str | None
    sales_unit: str | None
    quantity: Decimal | None
    size: str | None
    to_supplier_date: datetime
    fpr: str | None
    fpr_email: str | None
    fpr_mobile: str | None
    image_key: str | None = None
    # Left blank for the supplier unless we already know them
    purchase_description: str | None = None
    purchase_unit: str | None = None
    supplier_price: Decimal | None = None
    estimated_delivery_days: int | None = None
    gst_rate: str | None = None
    hsn_code: str | None = None
    total_supplier_price: Decimal | None = None

    @property
    def line_total(self) -> Decimal | None:
        return self.total_supplier_price


@dataclass
class CustomerOfferRow:
    inquiry_id: int
    item_code: str | None
    sr: int
    site: str | None
    pr_number_and_name: str | None
    sales_description: str | None
    sales_unit: str | None
    quantity: Decimal | None
    size: str | None
    purchase_description: str | None
    purchase_unit: str | None
    estimated_delivery_days: int | None
    customer_price: Decimal | None
    total_customer_price: Decimal | None
    offer_submission_date: datetime
    fpr: str | None
    fpr_email: str | None
    fpr_mobile: str | None
    image_key: str | None = None

    @property
    def line_total(self) -> Decimal | None:
        return self.total_customer_price


def _unit_name(unit) -> str | None:
    return unit.name if unit else None


def build_rows(direction: DispatchDirection | str, inquiries: list[Inquiry], stamped_at: datetime) -> list:
    """Typed rows in the order given; SR. NO. is the 1-based position."""
    direction = DispatchDirection(direction)
    rows = []
    for sr, inq in enumerate(inquiries, start=1):
        rep = inq.representative
        common = dict(
            inquiry_id=inq.id,
            item_code=inq.item_code,
            sr=sr,
            site=inq.site.name if inq.site else None,
            pr_number_and_name=inq.pr_number_and_name,
            sales_description=inq.sales_description,
            sales_unit=_unit_name(inq.sales_unit),
            quantity=inq.quantity,
            size=inq.size,
            fpr=rep.name if rep else None,
            fpr_email=rep.email if rep else None,
            fpr_mobile=rep.mobile if rep else None,
            image_key=inq.image_key,
        )
        if direction == DispatchDirection.TO_SUPPLIER:
            rows.append(
                SupplierInquiryRow(
                    **common,
                    to_supplier_date=stamped_at,
                    total_supplier_price=line_total(inq.supplier_price, inq.quantity),
                )
            )
        else:
            rows.append(
                CustomerOfferRow(
                    **common,
                    purchase_description=inq.purchase_description,
                    purchase_unit=_unit_name(inq.purchase_unit),
                    estimated_delivery_days=inq.estimated_delivery_days,
                    customer_price=inq.customer_price,
                    total_customer_price=line_total(inq.customer_price, inq.quantity),
                    offer_submission_date=stamped_at,
                )
            )
    return rows


# ── Spreadsheet ─────────────────────────────────────────────────────

_THIN = Side(style="thin")
_HEADER_BORDER = Border(top=_THIN, bottom=_THIN, left=_THIN, right=_THIN)
_HEADER_ALIGN = Alignment(vertical="center", horizontal="center", wrap_text=True)


def _embed_image(ws, storage: ObjectStorage, key: str, anchor: str) -> bool:
    try:
        data = storage.get(key)
    except StorageError as e:
        logger.warning("Inquiry image {} not embedded: {}", key, e)
        return False
    try:
        img = XLImage(io.BytesIO(data))
    except (UnidentifiedImageError, OSError) as e:
        logger.warning("Inquiry image {} is not a readable image: {}", key, e)
        return False
    img.width = IMAGE_SIZE_PX
    img.height = IMAGE_SIZE_PX
    ws.add_image(img, anchor)
    return True


def build_workbook(columns, rows: list, storage: ObjectStorage | None = None) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Inquiries"

    for col_idx, col in enumerate(columns, start=1):
        cell = ws.cell(row=1, column=col_idx, value=col.header)
        cell.font = Font(bold=True)
        cell.fill = PatternFill(fill_type="solid", fgColor=ROLE_FILLS[col.role])
        cell.border = _HEADER_BORDER
        cell.alignment = _HEADER_ALIGN
        ws.column_dimensions[get_column_letter(col_idx)].width = col.width

    image_col = next((i for i, c in enumerate(columns, start=1) if c.key == IMAGE_KEY), None)

    for row_idx, row in enumerate(rows, start=2):
        for col_idx, col in enumerate(columns, start=1):
            if col.key == IMAGE_KEY:
                continue
            ws.cell(row=row_idx, column=col_idx, value=getattr(row, col.key, None))
        if image_col and row.image_key and storage is not None:
            anchor = f"{get_column_letter(image_col)}{row_idx}"
            if _embed_image(ws, storage, row.image_key, anchor):
                ws.row_dimensions[row_idx].height = IMAGE_ROW_HEIGHT

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ── PDF letter ──────────────────────────────────────────────────────

_jinja_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=True,
)
_jinja_env.filters["money"] = format_money


def html_to_pdf(html: str) -> bytes:
    from weasyprint import HTML

    return HTML(string=html).write_pdf()


def render_letter(template_name: str, **context) -> str:
    return _jinja_env.get_template(template_name).render(**context)


# ── Artifacts ───────────────────────────────────────────────────────


@dataclass
class Artifact:
    filename: str
    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class GeneratedDocuments:
    spreadsheet: Artifact
    pdf: Artifact
    rows: list = field(default_factory=list)
    total: Decimal = Decimal("0.00")

    @property
    def artifacts(self) -> list[Artifact]:
        return [self.spreadsheet, self.pdf]


def safe_name(name: str | None) -> str:
    return re.sub(r"[\\/]+", "_", (name or "").strip())


def artifact_filename(direction: DispatchDirection | str, counterparty_name: str | None, ext: str, epoch_ms: int) -> str:
    label = profile_for(direction).counterparty_label
    return f"Inquiries-{label}-{safe_name(counterparty_name)}-{epoch_ms}.{ext}"


def build_documents(
    direction: DispatchDirection | str,
    rows: list,
    *,
    counterparty_name: str,
    currency_symbol: str | None = None,
    letter_date: datetime,
    storage: ObjectStorage | None = None,
    epoch_ms: int | None = None,
) -> GeneratedDocuments:
    """Render both artifacts from prepared rows. Pure apart from image reads."""
    direction = DispatchDirection(direction)
    profile = profile_for(direction)
    if epoch_ms is None:
        epoch_ms = int(datetime.now(timezone.utc).timestamp() * 1000)

    total = aggregate_total(r.line_total for r in rows)
    first = rows[0] if rows else None

    xlsx = build_workbook(COLUMNS[direction], rows, storage)
    html = render_letter(
        profile.letter_template,
        counterparty=counterparty_name,
        site=first.site if first else "",
        pr_number_and_name=first.pr_number_and_name if first else "",
        rep_name=first.fpr if first else "",
        rep_email=first.fpr_email if first else "",
        rep_mobile=first.fpr_mobile if first else "",
        items=rows,
        total=total,
        currency=f"({currency_symbol})" if currency_symbol else DEFAULT_CURRENCY_LABEL,
        date=letter_date.strftime("%d/%m/%Y"),
    )
    pdf = html_to_pdf(html)

    logger.info(
        "Rendered {} documents for {}: {} rows, {} bytes xlsx, {} bytes pdf",
        direction.value,
        counterparty_name,
        len(rows),
        len(xlsx),
        len(pdf),
    )
    return GeneratedDocuments(
        spreadsheet=Artifact(
            artifact_filename(direction, counterparty_name, "xlsx", epoch_ms), xlsx, XLSX_CONTENT_TYPE
        ),
        pdf=Artifact(
            artifact_filename(direction, counterparty_name, "pdf", epoch_ms), pdf, PDF_CONTENT_TYPE
        ),
        rows=rows,
        total=total,
    )


async def generate_documents(
    direction: DispatchDirection | str,
    inquiries: list[Inquiry],
    *,
    counterparty_name: str,
    timezone_offset_minutes: int,
    storage: ObjectStorage | None = None,
    now: datetime | None = None,
) -> GeneratedDocuments:
    """Rows are built here (ORM access stays on the caller's thread); rendering runs in the executor."""
    now = now or datetime.now(timezone.utc)
    stamped_at = local_time(timezone_offset_minutes, now)
    rows = build_rows(direction, inquiries, stamped_at)
    currency = next((i.customer_currency_symbol for i in inquiries if i.customer_currency_symbol), None)
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None,
        partial(
            build_documents,
            direction,
            rows,
            counterparty_name=counterparty_name,
            currency_symbol=currency,
            letter_date=stamped_at,
            storage=storage,
            epoch_ms=int(now.timestamp() * 1000),
        ),
    )


def register_artifacts(
    db: Session,
    storage: ObjectStorage,
    documents: GeneratedDocuments,
    batch_id: int | None = None,
) -> tuple[str, str]:
    """Upload both artifacts and record an Attachment for each. Returns (spreadsheet_url, pdf_url)."""
    prefix = f"documents/{uuid.uuid4().hex[:12]}"
    urls = []
    for artifact in documents.artifacts:
        key = f"{prefix}/{artifact.filename}"
        url = storage.put(key, artifact.content, artifact.content_type)
        db.add(
            Attachment(
                filename=artifact.filename,
                storage_key=key,
                url=url,
                content_type=artifact.content_type,
                size_bytes=artifact.size,
                batch_id=batch_id,
            )
        )
        urls.append(url)
    db.commit()
    return urls[0], urls[1]
