"""
Payroll API tests - sheet save/load, deductions, categories, analytics hours.

Tests:
1-4.   Sheet save recomputes derived fields server-side
5-6.   Discrepancy flag on stored cash amounts
7-10.  Deduction endpoints (create, edit, delete, per-employee listing)
11.    A stale sheet save does not drop deductions added elsewhere
12-14. Category listing and cascade delete
15-17. Hours backfill from analytics and the employee-hours endpoint
18-19. Breakdown endpoint and period validation
20-21. Repeated saves and stale sheets after a delete
22.    Category delete that fails part-way
"""

from unittest.mock import patch

from backend import models
from backend.payroll_queue import period_queue


PERIOD = "/api/payroll/2026/10"


# --- Test fixtures ---

def _sample_record(**overrides):
    record = {
        "employee_id": "E1",
        "employee_name": "Anna Nowak",
        "hourly_rate": 20,
        "hours_worked": 10,
        "bonus": 50,
        "sick_leave_pay": 0,
        "bank_transfer": 30,
        "payroll_deductions": [{"id": "tmp-1", "category": "advance", "note": "", "amount": 40}],
    }
    record.update(overrides)
    return record


def _save(client, *records):
    response = client.post(PERIOD, json=list(records))
    assert response.status_code == 200, response.text
    return response.json()


def _by_employee(rows):
    return {r["employee_id"]: r for r in rows}


# --- Sheet save ---

def test_save_computes_cash_amount(client):
    rows = _save(client, _sample_record())
    assert len(rows) == 1
    assert rows[0]["deductions"] == 40
    assert rows[0]["cash_amount"] == 180


def test_save_ignores_client_derived_fields(client):
    record = _sample_record()
    record["cash_amount"] = 5000
    record["deductions"] = 0
    rows = _save(client, record)
    assert rows[0]["cash_amount"] == 180


def test_temporary_deduction_ids_replaced(client):
    rows = _save(client, _sample_record())
    deduction = rows[0]["payroll_deductions"][0]
    assert not deduction["id"].startswith("tmp-")
    assert deduction["category"] == "ADVANCE"


def test_save_upserts_by_employee(client):
    _save(client, _sample_record())
    rows = _save(client, _sample_record(bank_transfer=300), _sample_record(employee_id="E2", employee_name="Jan Kowalski", payroll_deductions=[]))
    by_id = _by_employee(rows)
    assert by_id["E1"]["cash_amount"] == 0
    assert by_id["E2"]["cash_amount"] == 220

    listed = client.get(PERIOD).json()
    assert len(listed) == 2


def test_stored_values_have_no_discrepancy(client):
    _save(client, _sample_record())
    row = client.get(PERIOD).json()[0]
    assert row["has_calculation_discrepancy"] is False
    assert row["saved_cash_amount"] == 180
    assert row["calculated_cash_amount"] == 180


def test_tampered_cash_amount_flagged(client, db):
    _save(client, _sample_record())
    stored = db.query(models.PayrollRecord).filter(models.PayrollRecord.employee_id == "E1").first()
    stored.cash_amount = 999
    db.commit()

    row = client.get(PERIOD).json()[0]
    assert row["has_calculation_discrepancy"] is True
    assert row["saved_cash_amount"] == 999
    assert row["cash_amount"] == 180


# --- Deductions ---

def test_create_deduction(client):
    record_id = _save(client, _sample_record())[0]["payroll_record_id"]
    response = client.post("/api/payroll-deductions", json={
        "payroll_record_id": record_id,
        "category": "meal",
        "note": "canteen",
        "amount": 25,
    })
    assert response.status_code == 200, response.text
    created = response.json()
    assert created["category"] == "MEAL"
    assert created["amount"] == 25

    row = client.get(PERIOD).json()[0]
    assert row["deductions"] == 65
    assert row["cash_amount"] == 155


def test_create_deduction_validation(client):
    record_id = _save(client, _sample_record())[0]["payroll_record_id"]
    missing = client.post("/api/payroll-deductions", json={
        "payroll_record_id": "nope", "category": "MEAL", "amount": 1,
    })
    assert missing.status_code == 404
    blank = client.post("/api/payroll-deductions", json={
        "payroll_record_id": record_id, "category": "  ", "amount": 1,
    })
    assert blank.status_code == 400


def test_edit_and_delete_deduction(client):
    row = _save(client, _sample_record())[0]
    deduction_id = row["payroll_deductions"][0]["id"]

    edited = client.put(f"/api/payroll-deductions/{deduction_id}", json={"amount": 100})
    assert edited.status_code == 200
    assert edited.json()["amount"] == 100
    assert client.get(PERIOD).json()[0]["cash_amount"] == 120

    deleted = client.delete(f"/api/payroll-deductions/{deduction_id}")
    assert deleted.status_code == 200
    body = deleted.json()
    assert body["deductions"] == 0
    assert body["cash_amount"] == 220
    assert client.delete(f"/api/payroll-deductions/{deduction_id}").status_code == 404


def test_employee_deduction_history(client):
    _save(client, _sample_record())
    client.post("/api/payroll/2026/11", json=[_sample_record(payroll_deductions=[
        {"category": "meal", "amount": 10},
    ])])

    all_rows = client.get("/api/payroll-deductions/employee/E1").json()
    assert len(all_rows) == 2
    meals = client.get("/api/payroll-deductions/employee/E1?category=meal").json()
    assert [d["category"] for d in meals] == ["MEAL"]
    assert len(client.get("/api/payroll/employees/E1/deductions").json()) == 2


def test_stale_sheet_keeps_concurrent_deduction(client):
    sheet = _save(client, _sample_record())
    record_id = sheet[0]["payroll_record_id"]
    client.post("/api/payroll-deductions", json={
        "payroll_record_id": record_id, "category": "TOOLS", "amount": 15,
    })

    # Resubmit the sheet as it looked before the deduction was added
    stale = sheet[0]
    rows = _save(client, _sample_record(payroll_deductions=stale["payroll_deductions"]))
    categories = sorted(d["category"] for d in rows[0]["payroll_deductions"])
    assert categories == ["ADVANCE", "TOOLS"]
    assert rows[0]["deductions"] == 55


# --- Categories ---

def test_categories_listed(client):
    _save(client, _sample_record())
    assert "ADVANCE" in client.get("/api/payroll/categories").json()
    assert "ADVANCE" in client.get("/api/payroll-deductions/categories").json()


def test_category_delete_cascades(client):
    _save(client, _sample_record(), _sample_record(employee_id="E2", employee_name="Jan Kowalski", payroll_deductions=[
        {"category": "meal", "amount": 10},
    ]))
    response = client.delete("/api/payroll/categories/advance")
    assert response.status_code == 200
    assert response.json()["affected_records"] == 1

    by_id = _by_employee(client.get(PERIOD).json())
    assert by_id["E1"]["payroll_deductions"] == []
    assert by_id["E1"]["cash_amount"] == 220
    assert by_id["E2"]["deductions"] == 10
    assert "ADVANCE" not in client.get("/api/payroll/categories").json()


def test_delete_unknown_category(client):
    assert client.delete("/api/payroll/categories/nothing").status_code == 404


# --- Analytics hours ---

def test_missing_hours_backfilled_from_analytics(client):
    _save(client, _sample_record(hours_worked=0))
    entries = [{"employee_id": "E1", "employee_name": "Anna Nowak", "hours": 10}]
    with patch("backend.hours_client.get_employee_hours", return_value=entries) as mock_hours:
        row = client.get(PERIOD).json()[0]
    mock_hours.assert_called_once()
    assert row["hours_worked"] == 10
    assert row["cash_amount"] == 180


def test_analytics_unconfigured_leaves_zero_hours(client):
    _save(client, _sample_record(hours_worked=0, bank_transfer=0, payroll_deductions=[]))
    row = client.get(PERIOD).json()[0]
    assert row["hours_worked"] == 0
    assert row["cash_amount"] == 50


def test_employee_hours_endpoint(client):
    entries = [{"employee_name": "Anna Nowak", "hours": 7.5}]
    with patch("backend.hours_client.get_employee_hours", return_value=entries):
        response = client.get("/api/payroll/employee-hours/Anna Nowak/2026/10")
    assert response.status_code == 200
    body = response.json()
    assert body["total_hours"] == 7.5
    assert body["formatted"] == "7:30"


# --- Breakdown / validation ---

def test_breakdown(client):
    _save(client, _sample_record(), _sample_record(employee_id="E2", employee_name="Jan Kowalski", payroll_deductions=[]))
    body = client.get(f"{PERIOD}/breakdown").json()
    assert body["total_cash"] == 400
    first = _by_employee(body["employees"])["E1"]
    assert first["worked_total"] == 200
    assert first["gross_total"] == 250


def test_invalid_period_rejected(client):
    assert client.get("/api/payroll/2026/13").status_code == 400
    assert client.post("/api/payroll/2026/0", json=[]).status_code == 400
    assert client.get("/api/payroll/1999/5").status_code == 400


# --- Repeated and stale saves ---

def test_saving_same_sheet_twice_is_idempotent(client):
    payload = _sample_record()
    first = _save(client, payload)[0]
    second = _save(client, payload)[0]
    assert first["deductions"] == 40
    assert second["deductions"] == 40
    assert second["cash_amount"] == 180
    assert len(second["payroll_deductions"]) == 1
    assert second["payroll_deductions"][0]["id"] == first["payroll_deductions"][0]["id"]


def test_stale_sheet_does_not_restore_deleted_deduction(client):
    sheet = _save(client, _sample_record())[0]
    deduction_id = sheet["payroll_deductions"][0]["id"]
    assert client.delete(f"/api/payroll-deductions/{deduction_id}").status_code == 200

    rows = _save(client, _sample_record(payroll_deductions=sheet["payroll_deductions"]))
    assert rows[0]["payroll_deductions"] == []
    assert rows[0]["deductions"] == 0
    assert rows[0]["cash_amount"] == 220


def test_category_delete_reports_partial_failure(client):
    _save(client, _sample_record())
    client.post("/api/payroll/2026/11", json=[_sample_record()])
    real_run = period_queue.run
    calls = []

    def failing_second_period(db, year, month, mutation, label="mutation"):
        calls.append((year, month))
        if len(calls) > 1:
            raise RuntimeError("storage unavailable")
        return real_run(db, year, month, mutation, label=label)

    with patch.object(period_queue, "run", side_effect=failing_second_period):
        response = client.delete("/api/payroll/categories/advance")
    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail["completed_periods"] == [[2026, 10]]
    assert detail["failed_period"] == [2026, 11]
    assert "ADVANCE" in client.get("/api/payroll/categories").json()

    retry = client.delete("/api/payroll/categories/advance")
    assert retry.status_code == 200
    assert retry.json()["affected_records"] == 1
    assert "ADVANCE" not in client.get("/api/payroll/categories").json()
