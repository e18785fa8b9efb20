from datetime import date

from conftest import treasury_balance


def hire(client, headers, name, salary, company_id=None):
    payload = {"name": name, "job_title": "Sales", "base_salary": salary}
    if company_id is not None:
        payload["company_id"] = company_id
    response = client.post("/api/payroll/employees", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_employee_belongs_to_caller_company(client, seed, headers):
    employee = hire(client, headers("accountant"), "Omar", 3000)
    assert employee["company_id"] == seed["parent_id"]
    assert employee["is_active"] is True

    response = client.get(f"/api/payroll/employees/{employee['id']}", headers=headers("branch_accountant"))
    assert response.status_code == 403


def test_payroll_requires_permission(client, seed, headers):
    assert client.get("/api/payroll/employees", headers=headers("branch_sales")).status_code == 403


def test_pay_salary_withdraws_from_treasury(client, db, seed, headers):
    h = headers("accountant")
    employee = hire(client, h, "Omar", 3000)

    response = client.post("/api/payroll/salaries", headers=h, json={
        "employee_id": employee["id"], "month": 1, "year": 2026, "treasury_id": seed["parent_treasury_id"],
    })
    assert response.status_code == 201, response.text
    payment = response.json()["data"]
    assert payment["amount"] == 3000
    assert payment["receipt_number"].startswith("SAL-")
    assert treasury_balance(db, seed["parent_treasury_id"]) == 7000

    again = client.post("/api/payroll/salaries", headers=h, json={
        "employee_id": employee["id"], "month": 1, "year": 2026, "treasury_id": seed["parent_treasury_id"],
    })
    assert again.status_code == 409
    assert treasury_balance(db, seed["parent_treasury_id"]) == 7000

    history = client.get(f"/api/payroll/employees/{employee['id']}/salaries", headers=h).json()["data"]
    assert len(history) == 1

    by_month = client.get("/api/payroll/salaries", headers=h, params={"month": 1, "year": 2026}).json()["data"]
    assert [p["employee_id"] for p in by_month] == [employee["id"]]


def test_salary_refused_when_treasury_is_short(client, db, seed, headers):
    h = headers("branch_accountant")
    employee = hire(client, h, "Sara", 2500)
    response = client.post("/api/payroll/salaries", headers=h, json={
        "employee_id": employee["id"], "month": 2, "year": 2026, "treasury_id": seed["branch_treasury_id"],
    })
    assert response.status_code == 400
    assert response.json()["data"]["required"] == 2500

    history = client.get(f"/api/payroll/employees/{employee['id']}/salaries", headers=h).json()["data"]
    assert history == []


def test_batch_payroll_reports_failures(client, db, seed, headers):
    h = headers("accountant")
    first = hire(client, h, "Omar", 3000)
    second = hire(client, h, "Huda", 2000)

    client.post("/api/payroll/salaries", headers=h, json={
        "employee_id": first["id"], "month": 3, "year": 2026, "treasury_id": seed["parent_treasury_id"],
    })

    response = client.post("/api/payroll/salaries/batch", headers=h, json={
        "employee_ids": [first["id"], second["id"], 999],
        "month": 3, "year": 2026, "treasury_id": seed["parent_treasury_id"],
    })
    assert response.status_code == 200, response.text
    result = response.json()["data"]
    assert [p["employee_id"] for p in result["payments"]] == [second["id"]]
    failed = {e["employee_id"] for e in result["errors"]}
    assert failed == {first["id"], 999}
    assert treasury_balance(db, seed["parent_treasury_id"]) == 5000


def test_batch_payroll_checks_total_first(client, db, seed, headers):
    h = headers("branch_accountant")
    employee = hire(client, h, "Sara", 2500)
    response = client.post("/api/payroll/salaries/batch", headers=h, json={
        "employee_ids": [employee["id"]], "month": 4, "year": 2026, "treasury_id": seed["branch_treasury_id"],
    })
    assert response.status_code == 400


def test_raise_bonus_increases_base_salary(client, db, seed, headers):
    h = headers("accountant")
    employee = hire(client, h, "Omar", 3000)

    response = client.post("/api/payroll/bonuses", headers=h, json={
        "employee_id": employee["id"], "type": "RAISE", "amount": 500,
        "reason": "Annual review", "treasury_id": seed["parent_treasury_id"],
    })
    assert response.status_code == 201, response.text
    assert response.json()["data"]["receipt_number"].startswith("BON-")

    client.post("/api/payroll/bonuses", headers=h, json={
        "employee_id": employee["id"], "type": "BONUS", "amount": 200, "treasury_id": seed["parent_treasury_id"],
    })

    current = client.get(f"/api/payroll/employees/{employee['id']}", headers=h).json()["data"]
    assert current["base_salary"] == 3500
    assert treasury_balance(db, seed["parent_treasury_id"]) == 9300

    bonuses = client.get("/api/payroll/bonuses", headers=h, params={"employee_id": employee["id"]}).json()["data"]
    assert len(bonuses) == 2


def test_delete_employee_with_history_deactivates(client, seed, headers):
    h = headers("accountant")
    paid = hire(client, h, "Omar", 3000)
    fresh = hire(client, h, "Huda", 2000)
    client.post("/api/payroll/salaries", headers=h, json={
        "employee_id": paid["id"], "month": 5, "year": 2026, "treasury_id": seed["parent_treasury_id"],
    })

    response = client.delete(f"/api/payroll/employees/{paid['id']}", headers=h)
    assert response.json()["data"]["deleted"] is False
    current = client.get(f"/api/payroll/employees/{paid['id']}", headers=h).json()["data"]
    assert current["is_active"] is False

    response = client.delete(f"/api/payroll/employees/{fresh['id']}", headers=h)
    assert response.json()["data"]["deleted"] is True
    assert client.get(f"/api/payroll/employees/{fresh['id']}", headers=h).status_code == 404

    # Inactive employees cannot be paid
    response = client.post("/api/payroll/salaries", headers=h, json={
        "employee_id": paid["id"], "month": 6, "year": 2026, "treasury_id": seed["parent_treasury_id"],
    })
    assert response.status_code == 400


def test_stats(client, seed, headers):
    h = headers("accountant")
    today = date.today()
    employee = hire(client, h, "Omar", 3000)
    hire(client, h, "Huda", 2000)
    client.post("/api/payroll/salaries", headers=h, json={
        "employee_id": employee["id"], "month": today.month, "year": today.year,
        "treasury_id": seed["parent_treasury_id"],
    })

    stats = client.get("/api/payroll/stats", headers=h).json()["data"]
    assert stats["active_employees"] == 2
    assert stats["monthly_payroll"] == 5000
    assert stats["paid_this_month_count"] == 1
    assert stats["paid_this_month"] == 3000
