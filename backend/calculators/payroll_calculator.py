"""
Payroll Calculator - cash payout for one employee and one period.

Pure math on plain dicts. No storage, no HTTP.

    gross       = hours_worked × hourly_rate + bonus + sick_leave_pay
    deductions  = Σ payroll_deductions[].amount
    cash_amount = max(0, gross − deductions − bank_transfer)

`deductions` and `cash_amount` are derived fields stored on the record.
They are only ever written by `recompute()`, and always together. Every
mutation helper below ends in `recompute()`. Stored values are exact;
rounding to cents happens only in `salary_breakdown` and period totals.
"""

import copy
import logging
import uuid
from typing import Dict, List, Optional, Tuple

from .numbers import to_number
from .time_parser import parse_time_to_decimal

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "hourly_rate",
    "hours_worked",
    "bonus",
    "sick_leave_pay",
    "bank_transfer",
)

TEMP_ID_PREFIX = "tmp-"

# Saved vs. recomputed cash amounts closer than this are the same payout
DISCREPANCY_TOLERANCE = 0.01


def normalize_category(category) -> str:
    """Deduction categories are free text, stored upper-case."""
    return str(category or "").strip().upper()


def is_temporary_id(deduction_id) -> bool:
    return str(deduction_id or "").startswith(TEMP_ID_PREFIX)


def compute_deductions_total(deductions: Optional[List[Dict]]) -> float:
    """Sum of deduction amounts. None or [] → 0."""
    if not deductions:
        return 0.0
    return sum(max(0.0, to_number(d.get("amount"))) for d in deductions)


def compute_gross_amount(record: Dict) -> float:
    """Earnings before deductions and bank transfer."""
    hours = to_number(record.get("hours_worked"))
    rate = to_number(record.get("hourly_rate"))
    bonus = to_number(record.get("bonus"))
    sick = to_number(record.get("sick_leave_pay"))
    return hours * rate + bonus + sick


def compute_cash_amount(record: Dict) -> float:
    """Cash still owed to the employee. Never negative."""
    deductions_total = compute_deductions_total(record.get("payroll_deductions"))
    bank_transfer = to_number(record.get("bank_transfer"))
    total = compute_gross_amount(record) - deductions_total - bank_transfer
    return max(0.0, total)


def recompute(record: Dict) -> Dict:
    """
    Returns a copy of the record with `deductions` and `cash_amount`
    refreshed from the inputs. The only writer of the derived fields.
    """
    updated = copy.deepcopy(record)
    updated.setdefault("payroll_deductions", [])
    if updated["payroll_deductions"] is None:
        updated["payroll_deductions"] = []
    updated["deductions"] = compute_deductions_total(updated["payroll_deductions"])
    updated["cash_amount"] = compute_cash_amount(updated)
    return updated


def update_record_field(record: Dict, field: str, value) -> Dict:
    """
    Set one editable input and recompute.

    hours_worked accepts "H:M" text as typed on the sheet.
    """
    if field not in EDITABLE_FIELDS:
        raise ValueError(f"Field '{field}' is not editable. Editable: {list(EDITABLE_FIELDS)}")
    if field == "hours_worked" and isinstance(value, str):
        number = parse_time_to_decimal(value)
    else:
        number = to_number(value)
    updated = dict(record)
    updated[field] = max(0.0, number)
    return recompute(updated)


# --- Deductions ---

def new_deduction(category, amount, note: Optional[str] = None) -> Dict:
    """A deduction not yet persisted - carries a temporary client id."""
    return {
        "id": f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:12]}",
        "category": normalize_category(category),
        "note": note or "",
        "amount": max(0.0, to_number(amount)),
    }


def add_deduction(record: Dict, deduction: Dict) -> Dict:
    entry = dict(deduction)
    entry["category"] = normalize_category(entry.get("category"))
    entry["amount"] = max(0.0, to_number(entry.get("amount")))
    if not entry.get("id"):
        entry["id"] = f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:12]}"

    updated = dict(record)
    updated["payroll_deductions"] = list(record.get("payroll_deductions") or []) + [entry]
    return recompute(updated)


def update_deduction(record: Dict, deduction_id, category=None, note=None, amount=None) -> Dict:
    """Edit one deduction in place. Unknown id → record unchanged (but recomputed)."""
    entries = []
    for d in record.get("payroll_deductions") or []:
        entry = dict(d)
        if str(entry.get("id")) == str(deduction_id):
            if category is not None:
                entry["category"] = normalize_category(category)
            if note is not None:
                entry["note"] = note
            if amount is not None:
                entry["amount"] = max(0.0, to_number(amount))
        entries.append(entry)
    updated = dict(record)
    updated["payroll_deductions"] = entries
    return recompute(updated)


def remove_deduction(record: Dict, deduction_id) -> Dict:
    updated = dict(record)
    updated["payroll_deductions"] = [
        d for d in record.get("payroll_deductions") or []
        if str(d.get("id")) != str(deduction_id)
    ]
    return recompute(updated)


def merge_deductions(existing: Optional[List[Dict]], incoming: Optional[List[Dict]]) -> List[Dict]:
    """
    Overlay a submitted deduction list on the stored one.

    Submitted entries are matched by stored id, or by the temporary id the
    client sent when the deduction was first saved (`client_id`), so the
    same sheet saved twice does not add its new deductions twice.

    Stored deductions missing from the submission are kept, and submitted
    entries whose real id is no longer stored are dropped: removal goes
    through `remove_deduction` only, so a stale sheet can neither drop a
    deduction added elsewhere nor bring back one deleted elsewhere.
    """
    merged = [dict(d) for d in existing or []]
    by_id = {str(d["id"]): d for d in merged if d.get("id")}
    by_client_id = {str(d["client_id"]): d for d in merged if d.get("client_id")}
    for d in incoming or []:
        entry = dict(d)
        entry["category"] = normalize_category(entry.get("category"))
        entry["amount"] = max(0.0, to_number(entry.get("amount")))
        key = str(entry.get("id") or "")
        stored = (by_id.get(key) or by_client_id.get(key)) if key else None
        if stored is not None:
            stored.update({k: v for k, v in entry.items() if k not in ("id", "client_id")})
        elif key and not is_temporary_id(key):
            logger.info("Dropping submitted deduction %s: no longer stored", key)
        else:
            if not key:
                entry["id"] = f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:12]}"
            merged.append(entry)
            by_client_id[str(entry["id"])] = entry
    return merged


def cascade_category_delete(records: List[Dict], category) -> Tuple[List[Dict], List]:
    """
    Drop every deduction of `category` from every record.

    Returns (records, affected_employee_ids). Affected records are
    recomputed; untouched records are returned as-is.
    """
    target = normalize_category(category)
    result = []
    affected = []
    for record in records:
        deductions = record.get("payroll_deductions") or []
        kept = [d for d in deductions if normalize_category(d.get("category")) != target]
        if len(kept) == len(deductions):
            result.append(record)
            continue
        updated = dict(record)
        updated["payroll_deductions"] = kept
        result.append(recompute(updated))
        affected.append(record.get("employee_id"))
    return result, affected


# --- Hours backfill ---

def backfill_hours(records: List[Dict], hours_entries: List[Dict]) -> List[Dict]:
    """
    Fill zero/unset hours_worked from analytics entries.

    Entries are matched by employee_id when the analytics service supplies
    one. Matching by employee_name is a compatibility shim: a name that
    appears on more than one entry is ambiguous and yields no hours.
    """
    by_id = {}
    by_name = {}
    name_counts = {}
    for entry in hours_entries or []:
        hours = max(0.0, to_number(entry.get("hours")))
        if entry.get("employee_id") is not None:
            by_id[str(entry["employee_id"])] = hours
        name = str(entry.get("employee_name") or "").strip()
        if name:
            name_counts[name] = name_counts.get(name, 0) + 1
            by_name[name] = hours

    result = []
    for record in records:
        if to_number(record.get("hours_worked")) > 0:
            result.append(record)
            continue

        employee_id = record.get("employee_id")
        name = str(record.get("employee_name") or "").strip()
        hours = 0.0
        if employee_id is not None and str(employee_id) in by_id:
            hours = by_id[str(employee_id)]
        elif name in by_name:
            if name_counts[name] > 1:
                logger.warning("Ambiguous employee name '%s' in analytics hours - leaving 0", name)
            else:
                hours = by_name[name]

        updated = dict(record)
        updated["hours_worked"] = hours
        result.append(recompute(updated))
    return result


# --- Reporting ---

def salary_breakdown(record: Dict) -> Dict:
    """Line-by-line view of how the cash amount was reached."""
    hours = to_number(record.get("hours_worked"))
    rate = to_number(record.get("hourly_rate"))
    worked_total = round(hours * rate, 2)
    deductions_total = round(compute_deductions_total(record.get("payroll_deductions")), 2)
    gross = round(compute_gross_amount(record), 2)
    return {
        "hours_worked": hours,
        "hourly_rate": rate,
        "worked_total": worked_total,
        "sick_leave_pay": round(to_number(record.get("sick_leave_pay")), 2),
        "bonus": round(to_number(record.get("bonus")), 2),
        "deductions_total": deductions_total,
        "gross_total": gross,
        "total_after_deductions": round(gross - deductions_total, 2),
        "bank_transfer": round(to_number(record.get("bank_transfer")), 2),
        "cash_amount": round(compute_cash_amount(record), 2),
    }


def has_calculation_discrepancy(saved_cash_amount, record: Dict) -> bool:
    """True when a stored cash amount no longer matches its inputs."""
    if saved_cash_amount is None:
        return False
    return abs(to_number(saved_cash_amount) - compute_cash_amount(record)) > DISCREPANCY_TOLERANCE


def period_cash_total(records: List[Dict]) -> float:
    return round(sum(to_number(r.get("cash_amount")) for r in records), 2)
