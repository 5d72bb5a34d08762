from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


# --- Payroll ---

class PayrollDeductionBase(BaseModel):
    category: str
    note: Optional[str] = ""
    amount: float = 0.0


class PayrollDeductionIn(PayrollDeductionBase):
    id: Optional[str] = None  # Temporary "tmp-" ids are replaced on save


class PayrollDeductionCreate(PayrollDeductionBase):
    payroll_record_id: str


class PayrollDeductionUpdate(BaseModel):
    category: Optional[str] = None
    note: Optional[str] = None
    amount: Optional[float] = None


class PayrollDeduction(PayrollDeductionBase):
    id: str
    client_id: Optional[str] = None
    payroll_record_id: Optional[str] = None
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True


class PayrollRecordIn(BaseModel):
    employee_id: str
    employee_name: str
    hourly_rate: float = 0.0
    hours_worked: float = 0.0
    bonus: float = 0.0
    sick_leave_pay: float = 0.0
    bank_transfer: float = 0.0
    deductions_note: Optional[str] = None
    paid: bool = False
    payroll_deductions: List[PayrollDeductionIn] = []


class PayrollRecord(BaseModel):
    payroll_record_id: Optional[str] = None
    employee_id: str
    employee_name: str
    hourly_rate: float
    hours_worked: float
    bonus: float
    sick_leave_pay: float
    bank_transfer: float
    deductions: float
    cash_amount: float
    deductions_note: Optional[str] = None
    paid: bool = False
    payroll_deductions: List[PayrollDeduction] = []
    has_calculation_discrepancy: bool = False
    saved_cash_amount: Optional[float] = None
    calculated_cash_amount: Optional[float] = None
    last_modified_at: Optional[datetime] = None


class EmployeeWorkingHours(BaseModel):
    employee_name: str
    year: int
    month: int
    total_hours: float
    formatted: str  # "H:MM"


# --- Quotes ---

class QuoteMaterialIn(BaseModel):
    uuid: Optional[str] = None
    name: str
    purchase_price: float = Field(0.0, ge=0)
    margin_percent: float = 0.0
    margin_pln: float = 0.0
    quantity: float = Field(0.0, ge=0)
    ignore_min_quantity: bool = False


class QuoteProductionActivityIn(BaseModel):
    uuid: Optional[str] = None
    name: str
    work_time_hours: float = Field(0.0, ge=0)
    work_time_minutes: int = Field(0, ge=0, le=59)
    price: float = Field(0.0, ge=0)
    margin_percent: float = 0.0
    margin_pln: float = 0.0
    ignore_min_quantity: bool = False


class QuoteBase(BaseModel):
    document_number: Optional[str] = None  # Issued from the sequence when omitted
    contractor_code: str = ""
    contractor_name: str = ""
    product_code: str = ""
    product_name: str = ""
    min_quantity: float = Field(1.0, ge=1)
    total_quantity: float = Field(1.0, ge=1)
    materials: List[QuoteMaterialIn] = []
    production_activities: List[QuoteProductionActivityIn] = []


class QuoteCreate(QuoteBase):
    draft_id: Optional[str] = None  # Queued draft attachments are flushed to the new quote


class QuoteUpdate(QuoteBase):
    uuid: Optional[str] = None


class NextQuoteNumber(BaseModel):
    next_quote_number: str
    sequence_number: int
    month: int
    year: int


class QuoteAttachment(BaseModel):
    uuid: str
    quote_uuid: str
    file_name: str
    content_type: str
    size: int
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True
