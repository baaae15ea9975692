from fastapi.testclient import TestClient

from paycycle.main import app

client = TestClient(app)


def _auth_headers(company_id: int, role=None) -> dict:
    body = {"user_id": "test", "company_id": company_id}
    if role is not None:
        body["role"] = role
    resp = client.post("/auth/token", json=body)
    assert resp.status_code == 200, f"token request failed: {resp.status_code} {resp.text}"
    data = resp.json()
    assert isinstance(data, dict), f"token response not a JSON object: {data}"
    assert "access_token" in data, f"token response missing access_token: {data}"
    return {"X-Company-Id": str(company_id), "Authorization": f"Bearer {data['access_token']}"}


def test_employees_create_list_get_and_cross_company_isolation():
    company_1 = 11001
    company_2 = 11002

    create = client.post(
        "/employees",
        headers=_auth_headers(company_1),
        json={"name": "Alice", "standard_pay_cents": 120000},
    )
    assert create.status_code == 200
    created = create.json()
    employee_id = created["id"]
    assert created["company_id"] == company_1
    assert created["name"] == "Alice"
    assert created["is_active"] is True
    assert created["balance_cents"] == 0
    assert created["standard_pay_cents"] == 120000

    listing = client.get("/employees", headers=_auth_headers(company_1))
    assert listing.status_code == 200
    rows = listing.json()
    assert any(row["id"] == employee_id for row in rows)

    get_own = client.get(f"/employees/{employee_id}", headers=_auth_headers(company_1))
    assert get_own.status_code == 200
    assert get_own.json()["id"] == employee_id

    get_other = client.get(f"/employees/{employee_id}", headers=_auth_headers(company_2))
    assert get_other.status_code == 404


def test_employee_role_cannot_create_employees():
    resp = client.post("/employees", headers=_auth_headers(11001, role="EMPLOYEE"), json={"name": "Bob"})
    assert resp.status_code == 403


def test_create_employee_rejects_unknown_cycle_setting():
    resp = client.post(
        "/employees",
        headers=_auth_headers(11001),
        json={"name": "Carol", "payroll_settings_id": 424242},
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_pay_profile_update_and_audit_trail_pagination():
    admin = _auth_headers(11001, role="ADMIN")
    employee_id = client.post("/employees", headers=admin, json={"name": "Dana"}).json()["id"]

    for cents in (100, 200, 300):
        resp = client.put(
            f"/employees/{employee_id}/pay-profile",
            headers=admin,
            json={"balance_cents": cents, "remarks": "correction"},
        )
        assert resp.status_code == 200, resp.text
    assert resp.json()["balance_cents"] == 300

    page = client.get(f"/employees/{employee_id}/balance-audit?limit=2", headers=admin)
    assert page.status_code == 200
    body = page.json()
    assert len(body["rows"]) == 2
    assert body["rows"][0]["information"] == "Balance amount updated from 0.00 to 1.00"
    assert body["rows"][0]["created_by"] == "test"
    assert body["next_after_id"] == body["rows"][-1]["id"]

    rest = client.get(
        f"/employees/{employee_id}/balance-audit?limit=2&after_id={body['next_after_id']}",
        headers=admin,
    ).json()
    assert [r["information"] for r in rest["rows"]] == ["Balance amount updated from 2.00 to 3.00"]
    assert rest["next_after_id"] is None
