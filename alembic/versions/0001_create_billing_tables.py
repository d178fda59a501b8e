"""create billing tables

Revision ID: 0001_billing
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_billing"
down_revision = None
branch_labels = None
depends_on = None

BILL_STATUSES = ("pending", "partial", "paid", "overdue", "cancelled")
PAYMENT_METHODS = ("cash", "card", "upi", "netbanking", "cheque")


def upgrade() -> None:
    op.execute("CREATE TYPE bill_status AS ENUM ("
               "'pending', 'partial', 'paid', 'overdue', 'cancelled')")
    op.execute("CREATE TYPE payment_method AS ENUM ("
               "'cash', 'card', 'upi', 'netbanking', 'cheque')")

    op.create_table(
        "bills",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("tenant_id", sa.UUID(), nullable=False),
        sa.Column("bill_number", sa.String(32), nullable=False),
        sa.Column("patient_id", sa.UUID(), nullable=False),
        sa.Column("doctor_id", sa.UUID(), nullable=False),
        sa.Column("visit_id", sa.UUID(), nullable=False),
        sa.Column("bill_date", sa.DateTime(), nullable=False),
        sa.Column("due_date", sa.DateTime(), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", postgresql.ENUM(*BILL_STATUSES, name="bill_status", create_type=False),
                  nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("updated_by", sa.UUID(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "bill_number", name="uq_bills_tenant_bill_number"),
    )
    for column in ("id", "tenant_id", "bill_number", "patient_id", "doctor_id", "visit_id",
                   "bill_date", "due_date", "status"):
        op.create_index(op.f(f"ix_bills_{column}"), "bills", [column], unique=False)

    op.create_table(
        "bill_items",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("bill_id", sa.UUID(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(200), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bill_items_bill_id"), "bill_items", ["bill_id"], unique=False)

    op.create_table(
        "bill_payments",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("bill_id", sa.UUID(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("method", postgresql.ENUM(*PAYMENT_METHODS, name="payment_method", create_type=False),
                  nullable=False),
        sa.Column("transaction_ref", sa.String(100), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=False),
        sa.Column("applied_by", sa.UUID(), nullable=False),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bill_payments_bill_id"), "bill_payments", ["bill_id"], unique=False)
    op.create_index("ix_bill_payments_paid_at_method", "bill_payments", ["paid_at", "method"],
                    unique=False)

    op.create_table(
        "bill_number_sequences",
        sa.Column("tenant_id", sa.UUID(), nullable=False),
        sa.Column("sequence_date", sa.Date(), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("tenant_id", "sequence_date"),
    )


def downgrade() -> None:
    op.drop_table("bill_number_sequences")
    op.drop_index("ix_bill_payments_paid_at_method", table_name="bill_payments")
    op.drop_index(op.f("ix_bill_payments_bill_id"), table_name="bill_payments")
    op.drop_table("bill_payments")
    op.drop_index(op.f("ix_bill_items_bill_id"), table_name="bill_items")
    op.drop_table("bill_items")
    for column in ("status", "due_date", "bill_date", "visit_id", "doctor_id", "patient_id",
                   "bill_number", "tenant_id", "id"):
        op.drop_index(op.f(f"ix_bills_{column}"), table_name="bills")
    op.drop_table("bills")
    op.execute("DROP TYPE IF EXISTS payment_method")
    op.execute("DROP TYPE IF EXISTS bill_status")
