from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Text, ForeignKey, Boolean, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# --- Payroll ---

class PayrollRecord(Base):
    """One employee, one (year, month) period."""
    __tablename__ = "payroll_records"
    __table_args__ = (
        UniqueConstraint("employee_id", "year", "month", name="uq_payroll_employee_period"),
    )

    id = Column(String, primary_key=True, default=_uuid)
    employee_id = Column(String, nullable=False, index=True)
    employee_name = Column(String, nullable=False)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)

    # Inputs
    hourly_rate = Column(Float, default=0.0)
    hours_worked = Column(Float, default=0.0)
    bonus = Column(Float, default=0.0)
    sick_leave_pay = Column(Float, default=0.0)
    bank_transfer = Column(Float, default=0.0)

    # Derived - written only through calculators.payroll_calculator.recompute
    deductions = Column(Float, default=0.0)
    cash_amount = Column(Float, default=0.0)

    deductions_note = Column(Text, nullable=True)
    paid = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_modified_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    payroll_deductions = relationship(
        "PayrollDeduction",
        back_populates="payroll_record",
        cascade="all, delete-orphan",
        order_by="PayrollDeduction.created_at",
    )


class PayrollDeduction(Base):
    """A named, amount-bearing reduction on one payroll record."""
    __tablename__ = "payroll_deductions"

    id = Column(String, primary_key=True, default=_uuid)
    payroll_record_id = Column(String, ForeignKey("payroll_records.id"), nullable=False)
    client_id = Column(String, nullable=True)  # "tmp-" id the deduction was first submitted with
    category = Column(String, nullable=False, index=True)  # Upper-case
    note = Column(Text, default="")
    amount = Column(Float, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow)

    payroll_record = relationship("PayrollRecord", back_populates="payroll_deductions")


class DeductionCategory(Base):
    """Registry of deduction category names offered for autocomplete."""
    __tablename__ = "deduction_categories"

    name = Column(String, primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# --- Quotes ---

class QuoteNumberSequence(Base):
    """Last issued quote sequence number per (year, month)."""
    __tablename__ = "quote_number_sequences"

    year = Column(Integer, primary_key=True)
    month = Column(Integer, primary_key=True)
    last_number = Column(Integer, default=0)


class Quote(Base):
    __tablename__ = "quotes"

    uuid = Column(String, primary_key=True, default=_uuid)
    document_number = Column(String, unique=True, nullable=False)
    contractor_code = Column(String, default="")
    contractor_name = Column(String, default="")
    product_code = Column(String, default="")
    product_name = Column(String, default="")
    min_quantity = Column(Float, default=1.0)
    total_quantity = Column(Float, default=1.0)
    # Derived from line items on every save
    total_price = Column(Float, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    materials = relationship(
        "QuoteMaterial", back_populates="quote",
        cascade="all, delete-orphan", order_by="QuoteMaterial.position",
    )
    production_activities = relationship(
        "QuoteProductionActivity", back_populates="quote",
        cascade="all, delete-orphan", order_by="QuoteProductionActivity.position",
    )
    attachments = relationship(
        "QuoteAttachment", back_populates="quote", cascade="all, delete-orphan",
    )


class QuoteMaterial(Base):
    __tablename__ = "quote_materials"

    uuid = Column(String, primary_key=True, default=_uuid)
    quote_uuid = Column(String, ForeignKey("quotes.uuid"), nullable=False)
    position = Column(Integer, default=0)
    name = Column(String, nullable=False)
    purchase_price = Column(Float, default=0.0)
    margin_percent = Column(Float, default=0.0)
    margin_pln = Column(Float, default=0.0)
    quantity = Column(Float, default=0.0)
    ignore_min_quantity = Column(Boolean, default=False)

    quote = relationship("Quote", back_populates="materials")


class QuoteProductionActivity(Base):
    __tablename__ = "quote_production_activities"

    uuid = Column(String, primary_key=True, default=_uuid)
    quote_uuid = Column(String, ForeignKey("quotes.uuid"), nullable=False)
    position = Column(Integer, default=0)
    name = Column(String, nullable=False)
    work_time_hours = Column(Float, default=0.0)
    work_time_minutes = Column(Integer, default=0)  # 0-59
    price = Column(Float, default=0.0)
    margin_percent = Column(Float, default=0.0)
    margin_pln = Column(Float, default=0.0)
    ignore_min_quantity = Column(Boolean, default=False)

    quote = relationship("Quote", back_populates="production_activities")


class QuoteAttachment(Base):
    __tablename__ = "quote_attachments"

    uuid = Column(String, primary_key=True, default=_uuid)
    quote_uuid = Column(String, ForeignKey("quotes.uuid"), nullable=False)
    file_name = Column(String, nullable=False)
    content_type = Column(String, nullable=False)
    size = Column(Integer, default=0)
    storage_key = Column(String, nullable=False)  # R2 key or local path
    created_at = Column(DateTime, default=datetime.utcnow)

    quote = relationship("Quote", back_populates="attachments")
