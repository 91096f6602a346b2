"""Initial schema: parties, billing, collections, payments, internal tables.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    ]


def _tombstone() -> list[sa.Column]:
    return [
        sa.Column("is_deleted", sa.Boolean(), server_default="false", index=True),
        sa.Column("deleted_at", sa.DateTime()),
    ]


def upgrade() -> None:
    # ── Internal ─────────────────────────────────────────────

    op.create_table(
        "departments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("description", sa.Text()),
        *_tombstone(),
        *_timestamps(),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("OWNER", "MANAGER", "STAFF", name="userrole"),
            server_default="STAFF",
            index=True,
        ),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column(
            "department_id", sa.String(36),
            sa.ForeignKey("departments.id", ondelete="SET NULL"), index=True,
        ),
        *_timestamps(),
    )

    # ── Parties ──────────────────────────────────────────────

    op.create_table(
        "clients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("tax_id", sa.String(50)),
        sa.Column("business_style", sa.String(255)),
        sa.Column("billing_address", sa.Text()),
        sa.Column("status", sa.String(20), server_default="active", index=True),
        *_tombstone(),
        *_timestamps(),
    )

    op.create_table(
        "client_departments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "client_id", sa.String(36),
            sa.ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False, index=True,
        ),
        sa.Column("name", sa.String(255), nullable=False, index=True),
        sa.Column("address", sa.Text()),
        sa.Column("phone", sa.String(30)),
        sa.Column("email", sa.String(255)),
        sa.Column("status", sa.String(20), server_default="active"),
        *_tombstone(),
        *_timestamps(),
        sa.UniqueConstraint("client_id", "name", name="uq_client_departments_client_name"),
    )

    op.create_table(
        "client_branches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "client_id", sa.String(36),
            sa.ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False, index=True,
        ),
        sa.Column("name", sa.String(255), nullable=False, index=True),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("phone", sa.String(30)),
        sa.Column("email", sa.String(255)),
        sa.Column("status", sa.String(20), server_default="active"),
        *_tombstone(),
        *_timestamps(),
        sa.UniqueConstraint("client_id", "name", name="uq_client_branches_client_name"),
    )

    op.create_table(
        "machines",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("brand", sa.String(100), nullable=False, index=True),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("description", sa.String(255)),
        sa.Column("serial_number", sa.String(100), nullable=False, unique=True, index=True),
        sa.Column("status", sa.String(50), server_default="On Stock"),
        sa.Column(
            "client_department_id", sa.String(36),
            sa.ForeignKey("client_departments.id", ondelete="SET NULL"),
        ),
        *_tombstone(),
        *_timestamps(),
    )

    # ── Billing & collections ────────────────────────────────

    op.create_table(
        "billings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("invoice_number", sa.String(100), nullable=False, unique=True, index=True),
        sa.Column(
            "client_id", sa.String(36),
            sa.ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False, index=True,
        ),
        sa.Column(
            "department_id", sa.String(36),
            sa.ForeignKey("client_departments.id", ondelete="RESTRICT"),
            nullable=False, index=True,
        ),
        sa.Column(
            "branch_id", sa.String(36),
            sa.ForeignKey("client_branches.id", ondelete="RESTRICT"),
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("vat_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("month", sa.Integer(), nullable=False, index=True),
        sa.Column("year", sa.Integer(), nullable=False, index=True),
        sa.Column("billing_date", sa.Date(), nullable=False),
        sa.Column("billing_type", sa.String(50), nullable=False, index=True),
        sa.Column("remarks", sa.Text()),
        sa.Column("is_cancelled", sa.Boolean(), server_default="false", index=True),
        sa.Column("cancelled_at", sa.DateTime()),
        *_tombstone(),
        *_timestamps(),
    )

    op.create_table(
        "cancelled_invoices",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "billing_id", sa.String(36),
            sa.ForeignKey("billings.id", ondelete="SET NULL"), index=True,
        ),
        sa.Column("invoice_number", sa.String(100), nullable=False, index=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=False),
        sa.Column("cancelled_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "collections",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "billing_id", sa.String(36),
            sa.ForeignKey("billings.id", ondelete="CASCADE"), nullable=False, unique=True,
        ),
        sa.Column("invoice_number", sa.String(100), nullable=False, index=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), server_default="pending", index=True),
        sa.Column("collection_date", sa.Date(), nullable=False, index=True),
        sa.Column("remarks", sa.Text()),
        *_tombstone(),
        *_timestamps(),
    )

    # ── Payments ─────────────────────────────────────────────

    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "collection_id", sa.String(36),
            sa.ForeignKey("collections.id", ondelete="CASCADE"), nullable=False, index=True,
        ),
        sa.Column("invoice_number", sa.String(100), nullable=False, index=True),
        sa.Column("or_number", sa.String(100), nullable=False, index=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("has_withholding", sa.Boolean(), server_default="false"),
        sa.Column("withholding_amount", sa.Numeric(12, 2), server_default="0"),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("mode", sa.String(30), server_default="cash", index=True),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("posting_date", sa.Date()),
        sa.Column("collection_date", sa.Date()),
        sa.Column("invoice_date", sa.Date()),
        sa.Column("remarks", sa.Text()),
        sa.Column("is_cancelled", sa.Boolean(), server_default="false", index=True),
        sa.Column("cancelled_at", sa.DateTime()),
        *_timestamps(),
    )

    # OR numbers are unique among live payments; a cancelled receipt may be reused
    op.create_index(
        "uq_payments_or_number_live",
        "payments",
        ["or_number"],
        unique=True,
        postgresql_where=sa.text("is_cancelled = false"),
    )

    op.create_table(
        "payment_cheques",
        sa.Column(
            "id", sa.String(36),
            sa.ForeignKey("payments.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("cheque_number", sa.String(100), nullable=False),
        sa.Column("cheque_date", sa.Date(), nullable=False),
        sa.Column("bank_name", sa.String(255)),
        *_timestamps(),
    )

    op.create_table(
        "payment_online_transfers",
        sa.Column(
            "id", sa.String(36),
            sa.ForeignKey("payments.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("reference_number", sa.String(100), nullable=False),
        sa.Column("transfer_date", sa.Date(), nullable=False),
        sa.Column("bank_name", sa.String(255)),
        *_timestamps(),
    )

    op.create_table(
        "payment_pdcs",
        sa.Column(
            "id", sa.String(36),
            sa.ForeignKey("payments.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("pdc_number", sa.String(100), nullable=False),
        sa.Column("pdc_date", sa.Date(), nullable=False),
        sa.Column("deposit_date", sa.Date()),
        sa.Column("credit_date", sa.Date()),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("payment_pdcs")
    op.drop_table("payment_online_transfers")
    op.drop_table("payment_cheques")
    op.drop_index("uq_payments_or_number_live", table_name="payments")
    op.drop_table("payments")
    op.drop_table("collections")
    op.drop_table("cancelled_invoices")
    op.drop_table("billings")
    op.drop_table("machines")
    op.drop_table("client_branches")
    op.drop_table("client_departments")
    op.drop_table("clients")
    op.drop_table("users")
    op.drop_table("departments")
    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
