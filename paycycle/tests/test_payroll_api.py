from decimal import Decimal

from fastapi.testclient import TestClient

from paycycle.main import app

client = TestClient(app)

WEEKLY = {
    "name": "Weekly crew",
    "cycle_type": "Weekly",
    "from_date": "2024-01-01",
    "to_date": "2024-01-07",
    "check_date": "2024-01-05",
    "actual_check_date": "2024-01-07",
}


def _auth_headers(company_id: int = 1, role=None) -> dict:
    body = {"user_id": "payroll-mgr", "company_id": company_id}
    if role is not None:
        body["role"] = role
    resp = client.post("/auth/token", json=body)
    assert resp.status_code == 200, resp.text
    return {"X-Company-Id": str(company_id), "Authorization": f"Bearer {resp.json()['access_token']}"}


def _setup_drafted_period(headers: dict):
    setting = client.post("/payroll/settings", headers=headers, json=WEEKLY)
    assert setting.status_code == 200, setting.text
    settings_id = setting.json()["id"]

    employee = client.post(
        "/employees",
        headers=headers,
        json={"name": "Alice", "payroll_settings_id": settings_id},
    )
    assert employee.status_code == 200, employee.text
    employee_id = employee.json()["id"]

    period = client.post(f"/payroll/settings/{settings_id}/generate", headers=headers)
    assert period.status_code == 200, period.text
    assert period.json()["status"] == "Drafted"
    period_id = period.json()["id"]

    item = client.post(
        f"/payroll/periods/{period_id}/items",
        headers=headers,
        json={"employee_id": employee_id, "gross_pay_cents": 10000, "hours": "8", "rate_cents": 1250},
    )
    assert item.status_code == 200, item.text
    return settings_id, employee_id, period_id


def test_settings_create_and_fetch():
    headers = _auth_headers()
    created = client.post("/payroll/settings", headers=headers, json=WEEKLY)
    assert created.status_code == 200, created.text
    body = created.json()
    assert body["cycle_type"] == "Weekly"
    assert body["created_by"] == "payroll-mgr"

    fetched = client.get(f"/payroll/settings/{body['id']}", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Weekly crew"

    periods = client.get(f"/payroll/settings/{body['id']}/periods", headers=headers).json()
    assert [(p["from_date"], p["status"]) for p in periods] == [("2024-01-01", "YetToGenerate")]

    hidden = client.get(f"/payroll/settings/{body['id']}", headers=_auth_headers(company_id=2))
    assert hidden.status_code == 404


def test_settings_validation_errors_carry_codes():
    headers = _auth_headers()

    bad_type = client.post("/payroll/settings", headers=headers, json=dict(WEEKLY, cycle_type="Fortnightly"))
    assert bad_type.status_code == 422
    assert bad_type.json()["code"] == "invalid_cycle_type"

    early_check = client.post(
        "/payroll/settings",
        headers=headers,
        json=dict(WEEKLY, actual_check_date="2024-01-06"),
    )
    assert early_check.status_code == 422
    assert early_check.json()["code"] == "date_order_error"


def test_full_payroll_cycle_over_http():
    headers = _auth_headers()
    settings_id, employee_id, period_id = _setup_drafted_period(headers)

    blocked = client.put(
        f"/payroll/periods/{period_id}/payments/{employee_id}",
        headers=headers,
        json={"amount_paid_cents": 500, "is_draft": False, "is_finalize": False},
    )
    assert blocked.status_code == 409
    assert blocked.json()["code"] == "finalize_required_for_payment"

    drafted = client.put(
        f"/payroll/periods/{period_id}/payments/{employee_id}",
        headers=headers,
        json={"amount_paid_cents": 6000, "is_draft": True},
    )
    assert drafted.status_code == 200, drafted.text
    assert drafted.json()["balance_delta_cents"] == 0

    pending = client.post(f"/payroll/periods/{period_id}/submit", headers=headers)
    assert pending.status_code == 409
    assert pending.json()["code"] == "finalize_pending"

    paid = client.put(
        f"/payroll/periods/{period_id}/payments/{employee_id}",
        headers=headers,
        json={"amount_paid_cents": 6000, "is_draft": False, "is_finalize": True, "comments": "check #1001"},
    )
    assert paid.status_code == 200, paid.text
    payment = paid.json()
    assert payment["is_finalize"] is True
    assert payment["balance_delta_cents"] == 4000
    assert Decimal(str(payment["worked_hours"])) == Decimal("8")
    assert payment["updated_by"] == "payroll-mgr"

    again = client.put(
        f"/payroll/periods/{period_id}/payments/{employee_id}",
        headers=headers,
        json={"amount_paid_cents": 0, "is_draft": True},
    )
    assert again.status_code == 409
    assert again.json()["code"] == "already_finalized"

    submitted = client.post(f"/payroll/periods/{period_id}/submit", headers=headers)
    assert submitted.status_code == 200, submitted.text
    assert submitted.json()["status"] == "Submitted"
    assert submitted.json()["resolved_by"] == "payroll-mgr"

    twice = client.post(f"/payroll/periods/{period_id}/skip", headers=headers)
    assert twice.status_code == 409
    assert twice.json()["code"] == "already_resolved"

    employee = client.get(f"/employees/{employee_id}", headers=headers).json()
    assert employee["balance_cents"] == 4000

    audit = client.get(f"/employees/{employee_id}/balance-audit", headers=headers).json()
    assert audit["rows"][0]["information"] == (
        "Balance amount updated from 0.00 to 40.00 and Hours updated from 0 to 8"
    )
    assert audit["rows"][0]["remarks"] == "Payroll 2024-01-01 to 2024-01-07"

    summary = client.get(f"/employees/{employee_id}/balance-summary", headers=headers).json()
    assert len(summary["groups"]) == 1
    group = summary["groups"][0]
    assert group["employee_id"] == employee_id
    assert (group["billed_cents"], group["paid_cents"], group["balance_cents"]) == (10000, 6000, 4000)
    assert Decimal(group["hours"]) == Decimal("8")

    following = client.post(f"/payroll/settings/{settings_id}/generate", headers=headers)
    assert following.status_code == 200, following.text
    assert following.json()["from_date"] == "2024-01-08"
    assert following.json()["check_date"] == "2024-01-12"


def test_pending_timesheet_blocks_payment_amounts():
    headers = _auth_headers()
    _, employee_id, period_id = _setup_drafted_period(headers)

    flagged = client.put(
        f"/payroll/periods/{period_id}/items/{employee_id}/approval",
        headers=headers,
        json={"pending": True},
    )
    assert flagged.status_code == 200
    assert flagged.json() == {"updated": 1}

    blocked = client.put(
        f"/payroll/periods/{period_id}/payments/{employee_id}",
        headers=headers,
        json={"amount_paid_cents": 50, "is_draft": True},
    )
    assert blocked.status_code == 409
    assert blocked.json()["code"] == "non_zero_amount_blocked"

    payments = client.get(f"/payroll/periods/{period_id}/payments", headers=headers).json()
    finalize = client.post(
        f"/payroll/periods/{period_id}/finalize",
        headers=headers,
        json={"payment_ids": [p["id"] for p in payments]},
    )
    assert finalize.status_code == 409
    assert finalize.json()["code"] == "finalize_not_allowed"

    client.put(
        f"/payroll/periods/{period_id}/items/{employee_id}/approval",
        headers=headers,
        json={"pending": False},
    )
    finalize = client.post(
        f"/payroll/periods/{period_id}/finalize",
        headers=headers,
        json={"payment_ids": [p["id"] for p in payments]},
    )
    assert finalize.status_code == 200, finalize.text
    assert [p["is_finalize"] for p in finalize.json()] == [True]


def test_out_of_order_submit_is_rejected():
    headers = _auth_headers()
    settings_id, _, first_id = _setup_drafted_period(headers)

    scheduled = client.post(
        f"/payroll/settings/{settings_id}/schedule",
        headers=headers,
        json={"through": "2024-01-21"},
    )
    assert scheduled.status_code == 200, scheduled.text
    later = scheduled.json()
    assert [p["from_date"] for p in later] == ["2024-01-08", "2024-01-15"]

    out_of_order = client.post(f"/payroll/periods/{later[0]['id']}/skip", headers=headers)
    assert out_of_order.status_code == 409
    assert out_of_order.json()["code"] == "order_violation"

    skipped = client.post(f"/payroll/periods/{first_id}/skip", headers=headers)
    assert skipped.status_code == 200
    assert skipped.json()["status"] == "Skipped"


def test_unknown_period_is_404():
    resp = client.get("/payroll/periods/no-such-period", headers=_auth_headers())
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_check_dates_are_fixed_once_period_is_resolved():
    headers = _auth_headers()
    _, _, period_id = _setup_drafted_period(headers)

    moved = client.put(
        f"/payroll/periods/{period_id}/check-dates",
        headers=headers,
        json={"check_date": "2024-01-12", "actual_check_date": "2024-01-13"},
    )
    assert moved.status_code == 200, moved.text
    assert (moved.json()["check_date"], moved.json()["actual_check_date"]) == ("2024-01-12", "2024-01-13")

    skipped = client.post(f"/payroll/periods/{period_id}/skip", headers=headers)
    assert skipped.status_code == 200, skipped.text

    fixed = client.put(
        f"/payroll/periods/{period_id}/check-dates",
        headers=headers,
        json={"check_date": "2024-01-08", "actual_check_date": "2024-01-08"},
    )
    assert fixed.status_code == 409
    assert fixed.json()["code"] == "already_resolved"


def test_items_after_finalized_payment_are_rejected_over_http():
    headers = _auth_headers()
    _, employee_id, period_id = _setup_drafted_period(headers)

    paid = client.put(
        f"/payroll/periods/{period_id}/payments/{employee_id}",
        headers=headers,
        json={"amount_paid_cents": 10000, "is_draft": False, "is_finalize": True},
    )
    assert paid.status_code == 200, paid.text

    late = client.post(
        f"/payroll/periods/{period_id}/items",
        headers=headers,
        json={"employee_id": employee_id, "gross_pay_cents": 5000, "hours": "4"},
    )
    assert late.status_code == 409
    assert late.json()["code"] == "already_finalized"

    flagged = client.put(
        f"/payroll/periods/{period_id}/items/{employee_id}/approval",
        headers=headers,
        json={"pending": True},
    )
    assert flagged.status_code == 409
    assert flagged.json()["code"] == "already_finalized"

    employee = client.get(f"/employees/{employee_id}", headers=headers).json()
    assert employee["balance_cents"] == 0
