"""
Payroll calculator tests - cash payout math and deduction bookkeeping.

Tests:
1-3.   Cash amount examples (positive, clamped to zero, missing inputs)
4-6.   recompute() keeps derived fields consistent and does not mutate input
7-10.  Deduction add/update/remove
11-12. Merging a submitted deduction list
13.    Category cascade delete
14-17. Hours backfill (by id, by name, ambiguous name, existing hours kept)
18-20. Editable fields, breakdown, discrepancy detection
21-22. Exact deduction totals; cash floor of zero
23-24. Resubmitted temporary ids and stale deleted ids
"""

import pytest

from backend.calculators.payroll_calculator import (
    add_deduction,
    backfill_hours,
    cascade_category_delete,
    compute_cash_amount,
    compute_deductions_total,
    has_calculation_discrepancy,
    is_temporary_id,
    merge_deductions,
    new_deduction,
    period_cash_total,
    recompute,
    remove_deduction,
    salary_breakdown,
    update_deduction,
    update_record_field,
)


# --- Test fixtures ---

def _sample_record(**overrides):
    record = {
        "employee_id": "E1",
        "employee_name": "Anna Nowak",
        "hours_worked": 10,
        "hourly_rate": 20,
        "bonus": 50,
        "sick_leave_pay": 0,
        "bank_transfer": 30,
        "payroll_deductions": [{"id": "d1", "category": "ADVANCE", "note": "", "amount": 40}],
    }
    record.update(overrides)
    return record


# --- Cash amount ---

def test_cash_amount_example():
    record = recompute(_sample_record())
    assert record["deductions"] == 40
    assert record["cash_amount"] == 180


def test_cash_amount_clamped_to_zero():
    record = recompute(_sample_record(bank_transfer=300))
    assert record["cash_amount"] == 0


def test_missing_inputs_count_as_zero():
    record = recompute({"employee_id": "E2", "hours_worked": None, "hourly_rate": "abc"})
    assert record["deductions"] == 0
    assert record["cash_amount"] == 0
    assert record["payroll_deductions"] == []


# --- recompute ---

def test_recompute_does_not_mutate_input():
    original = _sample_record()
    recompute(original)
    assert "cash_amount" not in original


def test_recompute_overwrites_stale_derived_fields():
    stale = _sample_record(deductions=999, cash_amount=-5)
    record = recompute(stale)
    assert record["deductions"] == 40
    assert record["cash_amount"] == 180


def test_deductions_total_ignores_negative_amounts():
    assert compute_deductions_total(None) == 0
    assert compute_deductions_total([]) == 0
    assert compute_deductions_total([{"amount": 10.5}, {"amount": -3}, {"amount": "4,5"}]) == 15.0


# --- Deductions ---

def test_add_deduction_recomputes():
    before = recompute(_sample_record())
    after = add_deduction(before, new_deduction("meal", 25))
    assert after["deductions"] == 65
    assert after["cash_amount"] == before["cash_amount"] - 25
    added = after["payroll_deductions"][-1]
    assert added["category"] == "MEAL"
    assert is_temporary_id(added["id"])


def test_add_then_remove_restores_cash_amount():
    before = recompute(_sample_record())
    deduction = new_deduction("TOOLS", 12.5, note="drill")
    after = remove_deduction(add_deduction(before, deduction), deduction["id"])
    assert after["cash_amount"] == before["cash_amount"]
    assert after["deductions"] == before["deductions"]


def test_update_deduction_amount():
    record = update_deduction(recompute(_sample_record()), "d1", amount=100, note="second advance")
    assert record["deductions"] == 100
    assert record["cash_amount"] == 120
    assert record["payroll_deductions"][0]["note"] == "second advance"


def test_remove_unknown_deduction_is_noop():
    before = recompute(_sample_record())
    after = remove_deduction(before, "missing")
    assert after["payroll_deductions"] == before["payroll_deductions"]
    assert after["cash_amount"] == before["cash_amount"]


# --- merge ---

def test_merge_updates_known_and_appends_new():
    existing = [{"id": "d1", "category": "ADVANCE", "amount": 40}]
    incoming = [
        {"id": "d1", "category": "advance", "amount": 60},
        {"id": "tmp-abc", "category": "meal", "amount": 5},
        {"category": "fuel", "amount": 7},
    ]
    merged = merge_deductions(existing, incoming)
    assert [d["amount"] for d in merged] == [60, 5, 7]
    assert merged[1]["category"] == "MEAL"
    assert merged[2]["id"]


def test_merge_keeps_deductions_missing_from_submission():
    existing = [
        {"id": "d1", "category": "ADVANCE", "amount": 40},
        {"id": "d2", "category": "MEAL", "amount": 10},
    ]
    merged = merge_deductions(existing, [{"id": "d1", "category": "ADVANCE", "amount": 40}])
    assert {d["id"] for d in merged} == {"d1", "d2"}


# --- Category cascade ---

def test_cascade_category_delete():
    records = [
        recompute(_sample_record()),
        recompute(_sample_record(employee_id="E2", payroll_deductions=[
            {"id": "d2", "category": "MEAL", "amount": 10},
        ])),
    ]
    result, affected = cascade_category_delete(records, "advance")
    assert affected == ["E1"]
    assert result[0]["payroll_deductions"] == []
    assert result[0]["cash_amount"] == 220
    assert result[1] is records[1]


# --- Hours backfill ---

def test_backfill_matches_employee_id():
    records = [recompute(_sample_record(hours_worked=0))]
    entries = [{"employee_id": "E1", "employee_name": "Someone Else", "hours": 12}]
    result = backfill_hours(records, entries)
    assert result[0]["hours_worked"] == 12
    assert result[0]["cash_amount"] == 12 * 20 + 50 - 40 - 30


def test_backfill_falls_back_to_name():
    records = [recompute(_sample_record(hours_worked=0, employee_id="E9"))]
    result = backfill_hours(records, [{"employee_name": "Anna Nowak", "hours": 8}])
    assert result[0]["hours_worked"] == 8


def test_backfill_ambiguous_name_yields_zero():
    records = [recompute(_sample_record(hours_worked=0, employee_id="E9"))]
    entries = [
        {"employee_name": "Anna Nowak", "hours": 8},
        {"employee_name": "Anna Nowak", "hours": 100},
    ]
    result = backfill_hours(records, entries)
    assert result[0]["hours_worked"] == 0


def test_backfill_keeps_entered_hours():
    records = [recompute(_sample_record(hours_worked=5))]
    result = backfill_hours(records, [{"employee_id": "E1", "hours": 99}])
    assert result[0]["hours_worked"] == 5


# --- Fields, breakdown, discrepancy ---

def test_update_record_field_parses_hours_text():
    record = update_record_field(recompute(_sample_record()), "hours_worked", "7:30")
    assert record["hours_worked"] == 7.5
    assert record["cash_amount"] == 7.5 * 20 + 50 - 40 - 30

    with pytest.raises(ValueError):
        update_record_field(record, "cash_amount", 1000)


def test_salary_breakdown():
    breakdown = salary_breakdown(_sample_record(sick_leave_pay=15))
    assert breakdown["worked_total"] == 200
    assert breakdown["gross_total"] == 265
    assert breakdown["deductions_total"] == 40
    assert breakdown["total_after_deductions"] == 225
    assert breakdown["cash_amount"] == 195


def test_discrepancy_detection():
    record = _sample_record()
    assert not has_calculation_discrepancy(180, record)
    assert not has_calculation_discrepancy(180.004, record)
    assert has_calculation_discrepancy(150, record)
    assert not has_calculation_discrepancy(None, record)
    assert compute_cash_amount(record) == 180
    assert period_cash_total([{"cash_amount": 180}, {"cash_amount": 20.5}]) == 200.5


# --- Exact derived fields ---

def test_adding_deduction_raises_total_by_exact_amount():
    before = recompute(_sample_record(hours_worked=1 / 3, hourly_rate=10, bonus=0, bank_transfer=0, payroll_deductions=[]))
    after = add_deduction(before, new_deduction("FEE", 0.004))
    assert after["deductions"] - before["deductions"] == pytest.approx(0.004)
    assert before["cash_amount"] - after["cash_amount"] == pytest.approx(0.004)
    assert after["cash_amount"] == pytest.approx(10 / 3 - 0.004)


def test_deduction_beyond_remaining_cash_stops_at_zero():
    before = recompute(_sample_record(bank_transfer=200))
    assert before["cash_amount"] == 10

    after = add_deduction(before, new_deduction("ADVANCE", 25))
    assert after["deductions"] == before["deductions"] + 25
    assert after["cash_amount"] == 0


# --- Merge: repeated and stale submissions ---

def test_merge_matches_resubmitted_temporary_id():
    existing = [{"id": "real-1", "client_id": "tmp-abc", "category": "MEAL", "amount": 5}]
    merged = merge_deductions(existing, [{"id": "tmp-abc", "category": "meal", "amount": 6}])
    assert len(merged) == 1
    assert merged[0]["id"] == "real-1"
    assert merged[0]["amount"] == 6


def test_merge_drops_deductions_deleted_elsewhere():
    existing = [{"id": "d1", "category": "ADVANCE", "amount": 40}]
    incoming = [
        {"id": "d1", "category": "ADVANCE", "amount": 40},
        {"id": "d-removed", "category": "MEAL", "amount": 10},
    ]
    merged = merge_deductions(existing, incoming)
    assert [d["id"] for d in merged] == ["d1"]
