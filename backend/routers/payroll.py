"""
Payroll API - monthly payroll sheet.

GET    /api/payroll/{year}/{month}            - records, recomputed, hours backfilled from analytics
POST   /api/payroll/{year}/{month}            - save the sheet (upsert by employee_id)
GET    /api/payroll/{year}/{month}/breakdown  - per-employee salary breakdown + period cash total
GET    /api/payroll/categories                - deduction categories
DELETE /api/payroll/categories/{name}         - delete a category and every deduction using it
GET    /api/payroll/employees/{id}/deductions - all deductions of one employee
GET    /api/payroll/employee-hours/{name}/{year}/{month} - analytics hours for one employee
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import hours_client, models, schemas
from ..calculators.numbers import to_number
from ..calculators.payroll_calculator import (
    EDITABLE_FIELDS,
    backfill_hours,
    cascade_category_delete,
    has_calculation_discrepancy,
    merge_deductions,
    normalize_category,
    period_cash_total,
    recompute,
    salary_breakdown,
)
from ..calculators.time_parser import format_decimal_to_time
from ..database import get_db
from ..payroll_queue import period_queue
from ..payroll_store import (
    deduction_to_dict,
    list_categories,
    load_period,
    periods_with_category,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payroll", tags=["payroll"])


def check_period(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail=f"month must be 1-12, got {month}")
    if year < 2000 or year > 2100:
        raise HTTPException(status_code=400, detail=f"year out of range: {year}")


def _with_backfilled_hours(records: List[dict], year: int, month: int) -> List[dict]:
    missing = [r for r in records if to_number(r.get("hours_worked")) <= 0]
    if not missing:
        return records
    entries = hours_client.get_employee_hours(
        [r["employee_name"] for r in missing],
        year,
        month,
        employee_ids=[r["employee_id"] for r in missing],
    )
    return backfill_hours(records, entries)


def _present(record: dict, saved_cash_amount: float) -> dict:
    fresh = recompute(record)
    fresh["saved_cash_amount"] = saved_cash_amount
    fresh["calculated_cash_amount"] = fresh["cash_amount"]
    fresh["has_calculation_discrepancy"] = has_calculation_discrepancy(saved_cash_amount, fresh)
    return fresh


# --- Categories ---

@router.get("/categories", response_model=List[str])
def get_categories(db: Session = Depends(get_db)):
    return list_categories(db)


@router.delete("/categories/{name}")
def delete_category(name: str, db: Session = Depends(get_db)):
    """
    Delete a category everywhere: every deduction carrying it is removed
    from every record, and each affected record is recomputed.

    Each period commits on its own. If one fails, the periods already
    cascaded are reported and the category stays registered, so repeating
    the request finishes the remaining periods.
    """
    category = normalize_category(name)
    affected_total = 0
    completed = []
    for year, month in periods_with_category(db, category):
        affected = []

        def mutation(records, affected=affected):
            updated, ids = cascade_category_delete(records, category)
            affected.extend(ids)
            return updated

        try:
            period_queue.run(db, year, month, mutation, label=f"category delete {category}")
        except Exception:
            logger.error("Category %s delete stopped at %d/%d; completed periods: %s",
                         category, month, year, completed)
            raise HTTPException(status_code=500, detail={
                "message": f"Deleting category {category} failed for {month}/{year}; retry to finish",
                "category": category,
                "completed_periods": completed,
                "failed_period": [year, month],
            })
        completed.append([year, month])
        affected_total += len(affected)

    registered = db.query(models.DeductionCategory).filter(
        models.DeductionCategory.name == category,
    ).first()
    if registered:
        db.delete(registered)
        db.commit()
    elif affected_total == 0:
        raise HTTPException(status_code=404, detail="Category not found")

    logger.info("Deleted deduction category %s (%d records recomputed)", category, affected_total)
    return {"ok": True, "category": category, "affected_records": affected_total}


# --- Per-employee lookups ---

@router.get("/employees/{employee_id}/deductions", response_model=List[schemas.PayrollDeduction])
def get_employee_deductions(employee_id: str, db: Session = Depends(get_db)):
    rows = db.query(models.PayrollDeduction).join(models.PayrollRecord).filter(
        models.PayrollRecord.employee_id == employee_id,
    ).order_by(models.PayrollDeduction.created_at.desc()).all()
    return [deduction_to_dict(d) for d in rows]


@router.get("/employee-hours/{employee_name}/{year}/{month}", response_model=schemas.EmployeeWorkingHours)
def get_employee_working_hours(employee_name: str, year: int, month: int):
    check_period(year, month)
    hours = hours_client.get_hours_for_employee(employee_name, year, month)
    return {
        "employee_name": employee_name,
        "year": year,
        "month": month,
        "total_hours": hours,
        "formatted": format_decimal_to_time(hours),
    }


# --- Period sheet ---

@router.get("/{year}/{month}", response_model=List[schemas.PayrollRecord])
def get_payroll_records(year: int, month: int, db: Session = Depends(get_db)):
    check_period(year, month)
    records = load_period(db, year, month)
    saved_cash = {r["employee_id"]: r["cash_amount"] for r in records}
    records = _with_backfilled_hours(records, year, month)
    return [_present(r, saved_cash[r["employee_id"]]) for r in records]


@router.post("/{year}/{month}", response_model=List[schemas.PayrollRecord])
def save_payroll_records(
    year: int,
    month: int,
    records: List[schemas.PayrollRecordIn],
    db: Session = Depends(get_db),
):
    """
    Save the sheet. Submitted inputs overwrite stored ones; submitted
    deductions are merged (deleting a deduction has its own endpoint).
    Derived fields are always recomputed server-side.
    """
    check_period(year, month)
    incoming = [r.model_dump() for r in records]

    def mutation(current):
        by_employee = {r["employee_id"]: r for r in current}
        for submitted in incoming:
            existing = by_employee.get(submitted["employee_id"], {})
            merged = dict(existing)
            merged.update({k: v for k, v in submitted.items() if k != "payroll_deductions"})
            for field in EDITABLE_FIELDS:
                merged[field] = max(0.0, to_number(merged.get(field)))
            merged["payroll_deductions"] = merge_deductions(
                existing.get("payroll_deductions"), submitted["payroll_deductions"],
            )
            by_employee[submitted["employee_id"]] = merged
        return list(by_employee.values())

    saved = period_queue.run(db, year, month, mutation, label="sheet save")
    return [_present(r, r["cash_amount"]) for r in saved]


@router.get("/{year}/{month}/breakdown")
def get_payroll_breakdown(year: int, month: int, db: Session = Depends(get_db)):
    check_period(year, month)
    records = [recompute(r) for r in load_period(db, year, month)]
    return {
        "year": year,
        "month": month,
        "employees": [
            {"employee_id": r["employee_id"], "employee_name": r["employee_name"], **salary_breakdown(r)}
            for r in records
        ],
        "total_cash": period_cash_total(records),
    }
