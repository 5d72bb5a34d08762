"""
Payroll persistence - ORM rows to and from the plain dicts the payroll calculator works on.

Derived fields (`deductions`, `cash_amount`) are copied from dicts that have
been through `recompute()`; nothing here does payroll arithmetic.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from . import models
from .calculators.payroll_calculator import is_temporary_id, normalize_category

INPUT_FIELDS = (
    "employee_name",
    "hourly_rate",
    "hours_worked",
    "bonus",
    "sick_leave_pay",
    "bank_transfer",
    "deductions_note",
    "paid",
)


def deduction_to_dict(d: models.PayrollDeduction) -> Dict:
    return {
        "id": d.id,
        "client_id": d.client_id,
        "payroll_record_id": d.payroll_record_id,
        "category": d.category,
        "note": d.note or "",
        "amount": d.amount or 0.0,
        "created_at": d.created_at,
    }


def record_to_dict(r: models.PayrollRecord) -> Dict:
    return {
        "payroll_record_id": r.id,
        "employee_id": r.employee_id,
        "employee_name": r.employee_name,
        "year": r.year,
        "month": r.month,
        "hourly_rate": r.hourly_rate or 0.0,
        "hours_worked": r.hours_worked or 0.0,
        "bonus": r.bonus or 0.0,
        "sick_leave_pay": r.sick_leave_pay or 0.0,
        "bank_transfer": r.bank_transfer or 0.0,
        "deductions": r.deductions or 0.0,
        "cash_amount": r.cash_amount or 0.0,
        "deductions_note": r.deductions_note,
        "paid": bool(r.paid),
        "last_modified_at": r.last_modified_at,
        "payroll_deductions": [deduction_to_dict(d) for d in r.payroll_deductions],
    }


def load_period(db: Session, year: int, month: int) -> List[Dict]:
    rows = db.query(models.PayrollRecord).filter(
        models.PayrollRecord.year == year,
        models.PayrollRecord.month == month,
    ).order_by(models.PayrollRecord.employee_name).all()
    return [record_to_dict(r) for r in rows]


def get_record(db: Session, record_id: str) -> Optional[models.PayrollRecord]:
    return db.query(models.PayrollRecord).filter(models.PayrollRecord.id == record_id).first()


def ensure_category(db: Session, category: str) -> None:
    name = normalize_category(category)
    if not name:
        return
    exists = db.query(models.DeductionCategory).filter(models.DeductionCategory.name == name).first()
    if not exists:
        db.add(models.DeductionCategory(name=name))
        db.flush()


def list_categories(db: Session) -> List[str]:
    """Registered categories plus any category still in use on a deduction."""
    names = {c.name for c in db.query(models.DeductionCategory).all()}
    names.update(
        row[0] for row in db.query(models.PayrollDeduction.category).distinct().all() if row[0]
    )
    return sorted(names)


def periods_with_category(db: Session, category: str) -> List[tuple]:
    rows = db.query(models.PayrollRecord.year, models.PayrollRecord.month).join(
        models.PayrollDeduction,
    ).filter(
        models.PayrollDeduction.category == normalize_category(category),
    ).distinct().all()
    return sorted((year, month) for year, month in rows)


def _sync_deductions(db: Session, row: models.PayrollRecord, deductions: List[Dict]) -> None:
    existing = {d.id: d for d in row.payroll_deductions}
    by_client_id = {d.client_id: d for d in row.payroll_deductions if d.client_id}
    keep = set()
    for entry in deductions:
        deduction_id = entry.get("id")
        db_deduction = existing.get(deduction_id) or by_client_id.get(deduction_id)
        if db_deduction is None:
            db_deduction = models.PayrollDeduction(created_at=datetime.utcnow())
            if is_temporary_id(deduction_id):
                db_deduction.client_id = deduction_id
                by_client_id[deduction_id] = db_deduction
            row.payroll_deductions.append(db_deduction)
        db_deduction.category = normalize_category(entry.get("category"))
        db_deduction.note = entry.get("note") or ""
        db_deduction.amount = entry.get("amount") or 0.0
        ensure_category(db, db_deduction.category)
        keep.add(id(db_deduction))

    for db_deduction in existing.values():
        if id(db_deduction) not in keep:
            row.payroll_deductions.remove(db_deduction)


def persist_period(db: Session, year: int, month: int, records: List[Dict]) -> None:
    """
    Write recomputed record dicts for one period. Upsert by employee_id;
    each record's deduction list is stored exactly as given. Caller commits.
    """
    rows = {
        r.employee_id: r
        for r in db.query(models.PayrollRecord).filter(
            models.PayrollRecord.year == year,
            models.PayrollRecord.month == month,
        ).all()
    }
    for record in records:
        employee_id = str(record["employee_id"])
        row = rows.get(employee_id)
        if row is None:
            row = models.PayrollRecord(employee_id=employee_id, year=year, month=month)
            db.add(row)
            rows[employee_id] = row
        for field in INPUT_FIELDS:
            if field in record:
                setattr(row, field, record[field])
        row.deductions = record["deductions"]
        row.cash_amount = record["cash_amount"]
        row.last_modified_at = datetime.utcnow()
        _sync_deductions(db, row, record.get("payroll_deductions") or [])
    db.flush()
