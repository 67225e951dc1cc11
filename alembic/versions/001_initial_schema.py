"""initial schema - master data, inquiries, dispatch batches

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

Creates every table of the dispatch workflow and seeds the three inquiry
statuses the workflow resolves by name (Open, Submitted, Cancelled).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255)),
        sa.Column("mobile", sa.String(50)),
        sa.Column("whatsapp", sa.String(50)),
        sa.Column("role", sa.String(20)),
        sa.Column("is_active", sa.Boolean()),
        *_timestamps(),
    )
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("email2", sa.String(255)),
        sa.Column("email3", sa.String(255)),
        sa.Column("whatsapp", sa.String(50)),
        sa.Column("mobile", sa.String(50)),
        sa.Column("alternate_mobile", sa.String(50)),
        sa.Column("accounts_contact_mobile", sa.String(50)),
        sa.Column("logistic_contact_mobile", sa.String(50)),
        sa.Column("purchase_contact_mobile", sa.String(50)),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime()),
    )
    op.create_index("ix_suppliers_name", "suppliers", ["name"])
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact_email", sa.String(255)),
        sa.Column("contact_email2", sa.String(255)),
        sa.Column("contact_email3", sa.String(255)),
        sa.Column("contact_mobile", sa.String(50)),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime()),
    )
    op.create_index("ix_customers_name", "customers", ["name"])
    op.create_table(
        "sites",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
    )
    op.create_index("ix_sites_customer", "sites", ["customer_id"])
    op.create_table(
        "units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
    )
    statuses = op.create_table(
        "inquiry_statuses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
    )
    op.create_table(
        "inquiry_results",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
    )
    op.create_table(
        "inquiries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_code", sa.String(50)),
        sa.Column("status_id", sa.Integer(), sa.ForeignKey("inquiry_statuses.id"), nullable=False),
        sa.Column("result_id", sa.Integer(), sa.ForeignKey("inquiry_results.id")),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id")),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id")),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id")),
        sa.Column("pr_number_and_name", sa.String(255)),
        sa.Column("sales_description", sa.Text()),
        sa.Column("sales_unit_id", sa.Integer(), sa.ForeignKey("units.id")),
        sa.Column("quantity", sa.Numeric(12, 3)),
        sa.Column("size", sa.String(255)),
        sa.Column("purchase_description", sa.Text()),
        sa.Column("purchase_unit_id", sa.Integer(), sa.ForeignKey("units.id")),
        sa.Column("supplier_price", sa.Numeric(14, 4)),
        sa.Column("estimated_delivery_days", sa.Integer()),
        sa.Column("gst_rate", sa.String(20)),
        sa.Column("hsn_code", sa.String(8)),
        sa.Column("customer_price", sa.Numeric(14, 4)),
        sa.Column("margin", sa.Numeric(8, 4)),
        sa.Column("customer_currency_symbol", sa.String(10)),
        sa.Column("image_key", sa.String(500)),
        sa.Column("representative_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("to_supplier_date", sa.DateTime()),
        sa.Column("supplier_offer_date", sa.DateTime()),
        sa.Column("offer_submission_date", sa.DateTime()),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime()),
        sa.Column("updated_by_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("deleted_at", sa.DateTime()),
    )
    op.create_index("ix_inquiries_supplier_status", "inquiries", ["supplier_id", "status_id"])
    op.create_index("ix_inquiries_customer_status", "inquiries", ["customer_id", "status_id"])
    op.create_index("ix_inquiries_created", "inquiries", ["created_at"])
    op.create_index("ix_inquiries_representative", "inquiries", ["representative_id"])

    op.create_table(
        "dispatch_batches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("direction", sa.String(20), nullable=False),
        sa.Column("counterparty_id", sa.Integer(), nullable=False),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id")),
        sa.Column("pr_number_and_name", sa.String(255)),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("message_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_resend_at", sa.DateTime()),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("updated_by_id", sa.Integer(), sa.ForeignKey("users.id")),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime()),
    )
    op.create_index("ix_dispatch_batches_dir_party", "dispatch_batches", ["direction", "counterparty_id"])
    op.create_index("ix_dispatch_batches_created", "dispatch_batches", ["created_at"])
    op.create_index("ix_dispatch_batches_created_by", "dispatch_batches", ["created_by_id"])

    op.create_table(
        "batch_line_links",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "batch_id",
            sa.Integer(),
            sa.ForeignKey("dispatch_batches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("inquiry_id", sa.Integer(), sa.ForeignKey("inquiries.id"), nullable=False),
        sa.Column("direction", sa.String(20), nullable=False),
        sa.UniqueConstraint("inquiry_id", "direction", name="uq_batch_line_inquiry_direction"),
    )
    op.create_index("ix_batch_line_links_batch", "batch_line_links", ["batch_id"])

    op.create_table(
        "resend_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "batch_id",
            sa.Integer(),
            sa.ForeignKey("dispatch_batches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("message_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_resend_history_batch", "resend_history", ["batch_id", "created_at"])

    op.create_table(
        "dispatch_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(128), nullable=False, unique=True),
        sa.Column("operation", sa.String(20), nullable=False),
        sa.Column("response", sa.JSON(), nullable=False),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id")),
        *_timestamps(),
    )

    op.create_table(
        "attachments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("filename", sa.String(500), nullable=False),
        sa.Column("storage_key", sa.String(500), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("content_type", sa.String(100)),
        sa.Column("size_bytes", sa.Integer()),
        sa.Column("batch_id", sa.Integer(), sa.ForeignKey("dispatch_batches.id")),
        *_timestamps(),
    )
    op.create_index("ix_attachments_batch", "attachments", ["batch_id"])
    op.create_index("ix_attachments_created", "attachments", ["created_at"])

    op.create_table(
        "notification_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("batch_id", sa.Integer(), sa.ForeignKey("dispatch_batches.id")),
        sa.Column("channel", sa.String(20), nullable=False),
        sa.Column("recipient", sa.String(1000), nullable=False),
        sa.Column("payload_kind", sa.String(20), nullable=False),
        sa.Column("succeeded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("error", sa.Text()),
        *_timestamps(),
    )
    op.create_index("ix_notification_logs_batch", "notification_logs", ["batch_id", "channel"])

    op.bulk_insert(statuses, [{"name": "Open"}, {"name": "Submitted"}, {"name": "Cancelled"}])


def downgrade() -> None:
    """Drop all tables. DESTRUCTIVE — only for dev/test environments."""
    for table in (
        "notification_logs",
        "attachments",
        "dispatch_requests",
        "resend_history",
        "batch_line_links",
        "dispatch_batches",
        "inquiries",
        "inquiry_results",
        "inquiry_statuses",
        "units",
        "sites",
        "customers",
        "suppliers",
        "users",
    ):
        op.drop_table(table)
