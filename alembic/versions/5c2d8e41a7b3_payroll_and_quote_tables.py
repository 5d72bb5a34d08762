"""payroll and quote tables

Revision ID: 5c2d8e41a7b3
Revises:
Create Date: 2026-10-19 09:30:00.000000

Creates payroll records/deductions, the deduction category registry,
quotes with their line items and attachments, and the per-month quote
number sequence. Tables already created by Base.metadata.create_all()
are skipped.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '5c2d8e41a7b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(table_name):
    """Check if a table exists."""
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    if not _table_exists("payroll_records"):
        op.create_table(
            "payroll_records",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("employee_id", sa.String(), nullable=False),
            sa.Column("employee_name", sa.String(), nullable=False),
            sa.Column("year", sa.Integer(), nullable=False),
            sa.Column("month", sa.Integer(), nullable=False),
            sa.Column("hourly_rate", sa.Float(), nullable=True),
            sa.Column("hours_worked", sa.Float(), nullable=True),
            sa.Column("bonus", sa.Float(), nullable=True),
            sa.Column("sick_leave_pay", sa.Float(), nullable=True),
            sa.Column("bank_transfer", sa.Float(), nullable=True),
            sa.Column("deductions", sa.Float(), nullable=True),
            sa.Column("cash_amount", sa.Float(), nullable=True),
            sa.Column("deductions_note", sa.Text(), nullable=True),
            sa.Column("paid", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("last_modified_at", sa.DateTime(), nullable=True),
            sa.UniqueConstraint("employee_id", "year", "month", name="uq_payroll_employee_period"),
        )

    if not _table_exists("payroll_deductions"):
        op.create_table(
            "payroll_deductions",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("payroll_record_id", sa.String(), sa.ForeignKey("payroll_records.id"), nullable=False),
            sa.Column("client_id", sa.String(), nullable=True),
            sa.Column("category", sa.String(), nullable=False),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("amount", sa.Float(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )

    if not _table_exists("deduction_categories"):
        op.create_table(
            "deduction_categories",
            sa.Column("name", sa.String(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )

    if not _table_exists("quote_number_sequences"):
        op.create_table(
            "quote_number_sequences",
            sa.Column("year", sa.Integer(), primary_key=True),
            sa.Column("month", sa.Integer(), primary_key=True),
            sa.Column("last_number", sa.Integer(), nullable=True),
        )

    if not _table_exists("quotes"):
        op.create_table(
            "quotes",
            sa.Column("uuid", sa.String(), primary_key=True),
            sa.Column("document_number", sa.String(), nullable=False, unique=True),
            sa.Column("contractor_code", sa.String(), nullable=True),
            sa.Column("contractor_name", sa.String(), nullable=True),
            sa.Column("product_code", sa.String(), nullable=True),
            sa.Column("product_name", sa.String(), nullable=True),
            sa.Column("min_quantity", sa.Float(), nullable=True),
            sa.Column("total_quantity", sa.Float(), nullable=True),
            sa.Column("total_price", sa.Float(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )

    if not _table_exists("quote_materials"):
        op.create_table(
            "quote_materials",
            sa.Column("uuid", sa.String(), primary_key=True),
            sa.Column("quote_uuid", sa.String(), sa.ForeignKey("quotes.uuid"), nullable=False),
            sa.Column("position", sa.Integer(), nullable=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("purchase_price", sa.Float(), nullable=True),
            sa.Column("margin_percent", sa.Float(), nullable=True),
            sa.Column("margin_pln", sa.Float(), nullable=True),
            sa.Column("quantity", sa.Float(), nullable=True),
            sa.Column("ignore_min_quantity", sa.Boolean(), nullable=True),
        )

    if not _table_exists("quote_production_activities"):
        op.create_table(
            "quote_production_activities",
            sa.Column("uuid", sa.String(), primary_key=True),
            sa.Column("quote_uuid", sa.String(), sa.ForeignKey("quotes.uuid"), nullable=False),
            sa.Column("position", sa.Integer(), nullable=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("work_time_hours", sa.Float(), nullable=True),
            sa.Column("work_time_minutes", sa.Integer(), nullable=True),
            sa.Column("price", sa.Float(), nullable=True),
            sa.Column("margin_percent", sa.Float(), nullable=True),
            sa.Column("margin_pln", sa.Float(), nullable=True),
            sa.Column("ignore_min_quantity", sa.Boolean(), nullable=True),
        )

    if not _table_exists("quote_attachments"):
        op.create_table(
            "quote_attachments",
            sa.Column("uuid", sa.String(), primary_key=True),
            sa.Column("quote_uuid", sa.String(), sa.ForeignKey("quotes.uuid"), nullable=False),
            sa.Column("file_name", sa.String(), nullable=False),
            sa.Column("content_type", sa.String(), nullable=False),
            sa.Column("size", sa.Integer(), nullable=True),
            sa.Column("storage_key", sa.String(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )


def downgrade() -> None:
    for table in (
        "quote_attachments",
        "quote_production_activities",
        "quote_materials",
        "quotes",
        "quote_number_sequences",
        "deduction_categories",
        "payroll_deductions",
        "payroll_records",
    ):
        if _table_exists(table):
            op.drop_table(table)
