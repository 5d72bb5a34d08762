"""
Payroll deduction endpoints. Every change goes through the period queue and
recomputes the owning record.

POST   /api/payroll-deductions                       - add a deduction to a record
PUT    /api/payroll-deductions/{id}                  - edit category, note or amount
DELETE /api/payroll-deductions/{id}                  - remove a deduction
GET    /api/payroll-deductions/employee/{id}?category= - one employee's deductions
GET    /api/payroll-deductions/categories            - deduction categories
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import models, schemas
from ..calculators.payroll_calculator import (
    add_deduction,
    normalize_category,
    remove_deduction,
    update_deduction,
)
from ..database import get_db
from ..payroll_queue import period_queue
from ..payroll_store import deduction_to_dict, get_record, list_categories

router = APIRouter(prefix="/payroll-deductions", tags=["payroll-deductions"])


def _apply_to_record(db: Session, record: models.PayrollRecord, change, label: str) -> dict:
    """Run `change(record_dict)` on one record through the period queue."""
    employee_id = record.employee_id

    def mutation(records):
        return [change(r) if r["employee_id"] == employee_id else r for r in records]

    saved = period_queue.run(db, record.year, record.month, mutation, label=label)
    return next(r for r in saved if r["employee_id"] == employee_id)


def _get_deduction(db: Session, deduction_id: str) -> models.PayrollDeduction:
    deduction = db.query(models.PayrollDeduction).filter(
        models.PayrollDeduction.id == deduction_id,
    ).first()
    if not deduction:
        raise HTTPException(status_code=404, detail="Deduction not found")
    return deduction


@router.post("", response_model=schemas.PayrollDeduction)
def create_deduction(deduction: schemas.PayrollDeductionCreate, db: Session = Depends(get_db)):
    record = get_record(db, deduction.payroll_record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Payroll record not found")
    if not normalize_category(deduction.category):
        raise HTTPException(status_code=400, detail="category is required")

    before = {d.id for d in record.payroll_deductions}
    saved = _apply_to_record(
        db, record,
        lambda r: add_deduction(r, {
            "category": deduction.category,
            "note": deduction.note,
            "amount": deduction.amount,
        }),
        label="deduction add",
    )
    created = [d for d in saved["payroll_deductions"] if d["id"] not in before]
    return created[-1]


@router.put("/{deduction_id}", response_model=schemas.PayrollDeduction)
def edit_deduction(deduction_id: str, update: schemas.PayrollDeductionUpdate, db: Session = Depends(get_db)):
    deduction = _get_deduction(db, deduction_id)
    changes = update.model_dump(exclude_unset=True)
    saved = _apply_to_record(
        db, deduction.payroll_record,
        lambda r: update_deduction(r, deduction_id, **changes),
        label="deduction edit",
    )
    return next(d for d in saved["payroll_deductions"] if d["id"] == deduction_id)


@router.delete("/{deduction_id}")
def delete_deduction(deduction_id: str, db: Session = Depends(get_db)):
    deduction = _get_deduction(db, deduction_id)
    saved = _apply_to_record(
        db, deduction.payroll_record,
        lambda r: remove_deduction(r, deduction_id),
        label="deduction delete",
    )
    return {
        "ok": True,
        "payroll_record_id": saved["payroll_record_id"],
        "deductions": saved["deductions"],
        "cash_amount": saved["cash_amount"],
    }


@router.get("/employee/{employee_id}", response_model=List[schemas.PayrollDeduction])
def get_employee_deductions(employee_id: str, category: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(models.PayrollDeduction).join(models.PayrollRecord).filter(
        models.PayrollRecord.employee_id == employee_id,
    )
    if category:
        query = query.filter(models.PayrollDeduction.category == normalize_category(category))
    return [deduction_to_dict(d) for d in query.order_by(models.PayrollDeduction.created_at.desc()).all()]


@router.get("/categories", response_model=List[str])
def get_categories(db: Session = Depends(get_db)):
    return list_categories(db)
