import pytest

from conftest import stock_of, treasury_balance
from ceramisys.core.exceptions import ConflictError, InsufficientStockError
from ceramisys.models import Purchase, Sale, SaleStatus, User
from ceramisys.schemas.sales import SaleApprove, SaleCreate
from ceramisys.services import sales as sales_service
from ceramisys.services import stock as stock_service


def create_sale(client, headers, lines, customer_id=None, company_id=None):
    payload = {"customer_id": customer_id, "lines": lines}
    if company_id is not None:
        payload["company_id"] = company_id
    response = client.post("/api/sales/", headers=headers, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def parent_line(seed, qty=10, unit_price=50, **extra):
    line = {"product_id": seed["parent_product_id"], "qty": qty, "unit_price": unit_price}
    line.update(extra)
    return line


def test_draft_sale_leaves_stock_untouched(client, db, seed, headers):
    sale = create_sale(client, headers("accountant"), [parent_line(seed)], seed["customer_id"])

    assert sale["status"] == "DRAFT"
    assert sale["sale_type"] == "CREDIT"
    assert sale["invoice_number"] == "000001"
    assert sale["total"] == 500
    assert sale["remaining_amount"] == 500
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 100


def test_invoice_numbers_are_sequential_per_company(client, seed, headers):
    first = create_sale(client, headers("accountant"), [parent_line(seed, qty=1)])
    second = create_sale(client, headers("accountant"), [parent_line(seed, qty=1)])
    assert first["invoice_number"] == "000001"
    assert second["invoice_number"] == "000002"


def test_discount_above_group_maximum_is_rejected(client, seed, headers):
    response = client.post("/api/sales/", headers=headers("accountant"), json={
        "lines": [parent_line(seed, discount_percentage=15)],
    })
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_discount_percentage_reduces_sub_total(client, seed, headers):
    sale = create_sale(client, headers("accountant"), [parent_line(seed, discount_percentage=10)])
    line = sale["lines"][0]
    assert line["discount_amount"] == 50
    assert line["sub_total"] == 450
    assert sale["total"] == 450


def test_approve_cash_sale(client, db, seed, headers):
    sale = create_sale(client, headers("accountant"), [parent_line(seed)], seed["customer_id"])

    response = client.post(f"/api/sales/{sale['id']}/approve", headers=headers("accountant"), json={"sale_type": "CASH"})
    assert response.status_code == 200, response.text
    approved = response.json()["data"]

    assert approved["status"] == "APPROVED"
    assert approved["payment_method"] == "CASH"
    assert approved["paid_amount"] == 500
    assert approved["remaining_amount"] == 0
    assert approved["is_fully_paid"] is True
    assert approved["receipt_issued"] is True
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 90
    assert treasury_balance(db, seed["parent_treasury_id"]) == 10500


def test_approve_bank_sale_deposits_into_bank(client, db, seed, headers):
    sale = create_sale(client, headers("accountant"), [parent_line(seed)])
    response = client.post(f"/api/sales/{sale['id']}/approve", headers=headers("accountant"), json={
        "sale_type": "CASH", "payment_method": "BANK", "bank_account_id": seed["bank_id"],
    })
    assert response.status_code == 200
    assert treasury_balance(db, seed["bank_id"]) == 500
    assert treasury_balance(db, seed["parent_treasury_id"]) == 10000


def test_approve_credit_sale_writes_one_ledger_entry(client, seed, headers):
    sale = create_sale(client, headers("accountant"), [parent_line(seed)], seed["customer_id"])
    client.post(f"/api/sales/{sale['id']}/approve", headers=headers("accountant"), json={"sale_type": "CREDIT"})

    account = client.get(f"/api/customers/{seed['customer_id']}/account", headers=headers("accountant")).json()["data"]
    assert len(account["entries"]) == 1
    assert account["entries"][0]["transaction_type"] == "DEBIT"
    assert account["current_balance"] == 500
    assert account["total_debit"] == 500


def test_approving_twice_decrements_stock_once(client, db, seed, headers):
    sale = create_sale(client, headers("accountant"), [parent_line(seed)])
    url = f"/api/sales/{sale['id']}/approve"
    assert client.post(url, headers=headers("accountant"), json={"sale_type": "CASH"}).status_code == 200

    response = client.post(url, headers=headers("accountant"), json={"sale_type": "CASH"})
    assert response.status_code == 400
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 90


def test_losing_the_approval_race_is_a_conflict(db, seed, monkeypatch):
    user = db.query(User).filter(User.username == "admin").one()
    data = SaleCreate(lines=[{"product_id": seed["parent_product_id"], "qty": 2, "unit_price": 50}])
    sale = sales_service.create_sale(db, data, user)

    original = stock_service.ensure_available

    def approve_elsewhere(session, *args, **kwargs):
        original(session, *args, **kwargs)
        # Another request wins between the checks and the conditional update
        session.query(Sale).filter(Sale.id == sale.id).update(
            {Sale.status: SaleStatus.APPROVED}, synchronize_session=False
        )

    monkeypatch.setattr(stock_service, "ensure_available", approve_elsewhere)

    with pytest.raises(ConflictError):
        sales_service.approve_sale(db, sale.id, SaleApprove(sale_type="CASH"), user)


def test_insufficient_stock_blocks_approval(client, db, seed, headers):
    sale = create_sale(client, headers("accountant"), [parent_line(seed, qty=150)])
    response = client.post(f"/api/sales/{sale['id']}/approve", headers=headers("accountant"), json={"sale_type": "CASH"})

    assert response.status_code == 400
    body = response.json()
    assert body["data"]["available"] == 100
    assert body["data"]["required"] == 150

    current = client.get(f"/api/sales/{sale['id']}", headers=headers("accountant")).json()["data"]
    assert current["status"] == "DRAFT"
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 100


def test_sales_role_cannot_approve(client, seed, headers):
    sale = create_sale(client, headers("branch_sales"), [
        {"product_id": seed["branch_product_id"], "qty": 1, "unit_price": 30},
    ])
    response = client.post(f"/api/sales/{sale['id']}/approve", headers=headers("branch_sales"), json={"sale_type": "CASH"})
    assert response.status_code == 403


def test_branch_sale_of_parent_stock_creates_mirrors(client, db, seed, headers):
    h = headers("branch_accountant")
    sale = create_sale(client, h, [
        parent_line(seed, qty=5, unit_price=60, is_from_parent_company=True, parent_unit_price=45),
        {"product_id": seed["branch_product_id"], "qty": 2, "unit_price": 30},
    ], seed["customer_id"])
    assert sale["total"] == 360

    response = client.post(f"/api/sales/{sale['id']}/approve", headers=h, json={"sale_type": "CASH"})
    assert response.status_code == 200, response.text
    approved = response.json()["data"]

    # Parent boxes come out of the parent, branch boxes out of the branch
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 95
    assert stock_of(db, seed["branch_id"], seed["branch_product_id"]) == 18
    assert stock_of(db, seed["branch_id"], seed["parent_product_id"]) == 0

    assert approved["related_parent_sale_id"] is not None
    assert approved["related_branch_purchase_id"] is not None

    db.expire_all()
    parent_sale = db.query(Sale).filter(Sale.id == approved["related_parent_sale_id"]).one()
    assert parent_sale.company_id == seed["parent_id"]
    assert parent_sale.is_auto_generated is True
    assert parent_sale.status == SaleStatus.APPROVED
    assert float(parent_sale.total) == 225
    assert parent_sale.customer.phone == f"BRANCH-{seed['branch_id']}"
    assert parent_sale.invoice_number == f"AUTO-{seed['parent_id']}-{sale['id']}"

    purchase = db.query(Purchase).filter(Purchase.id == approved["related_branch_purchase_id"]).one()
    assert purchase.company_id == seed["branch_id"]
    assert purchase.affects_inventory is False
    assert float(purchase.total) == 225
    assert purchase.supplier.phone == f"PARENT-{seed['parent_id']}"
    assert len(purchase.lines) == 1

    assert db.query(Sale).filter(Sale.is_auto_generated == True).count() == 1
    assert treasury_balance(db, seed["branch_treasury_id"]) == 360


def test_auto_generated_sales_cannot_be_approved_or_deleted(client, seed, headers):
    h = headers("branch_accountant")
    sale = create_sale(client, h, [parent_line(seed, qty=1, is_from_parent_company=True, parent_unit_price=40)])
    approved = client.post(f"/api/sales/{sale['id']}/approve", headers=h, json={"sale_type": "CREDIT"}).json()["data"]

    admin = headers("admin")
    mirror_id = approved["related_parent_sale_id"]
    assert client.post(f"/api/sales/{mirror_id}/approve", headers=admin, json={"sale_type": "CASH"}).status_code == 400
    assert client.delete(f"/api/sales/{mirror_id}", headers=admin).status_code == 400


def test_deleting_approved_sale_restores_stock_and_removes_mirrors(client, db, seed, headers):
    h = headers("branch_accountant")
    sale = create_sale(client, h, [parent_line(seed, qty=5, is_from_parent_company=True, parent_unit_price=45)])
    approved = client.post(f"/api/sales/{sale['id']}/approve", headers=h, json={"sale_type": "CASH"}).json()["data"]
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 95

    response = client.delete(f"/api/sales/{sale['id']}", headers=h)
    assert response.status_code == 200, response.text

    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 100
    db.expire_all()
    assert db.query(Sale).filter(Sale.id == approved["related_parent_sale_id"]).first() is None
    assert db.query(Purchase).filter(Purchase.id == approved["related_branch_purchase_id"]).first() is None


def test_parent_line_requires_parent_price(client, seed, headers):
    response = client.post("/api/sales/", headers=headers("branch_accountant"), json={
        "lines": [parent_line(seed, is_from_parent_company=True)],
    })
    assert response.status_code == 400


def test_parent_company_cannot_sell_parent_lines(client, seed, headers):
    response = client.post("/api/sales/", headers=headers("accountant"), json={
        "lines": [parent_line(seed, is_from_parent_company=True, parent_unit_price=40)],
    })
    assert response.status_code == 400


def test_branch_cannot_use_parent_product_as_own(client, seed, headers):
    response = client.post("/api/sales/", headers=headers("branch_accountant"), json={
        "lines": [parent_line(seed)],
    })
    assert response.status_code == 404


def test_update_draft_recomputes_total(client, seed, headers):
    h = headers("accountant")
    sale = create_sale(client, h, [parent_line(seed)])
    response = client.put(f"/api/sales/{sale['id']}", headers=h, json={"lines": [parent_line(seed, qty=3)]})
    assert response.status_code == 200
    assert response.json()["data"]["total"] == 150

    client.post(f"/api/sales/{sale['id']}/approve", headers=h, json={"sale_type": "CASH"})
    response = client.put(f"/api/sales/{sale['id']}", headers=h, json={"notes": "late"})
    assert response.status_code == 400


def test_payments_on_credit_sale(client, db, seed, headers):
    h = headers("accountant")
    sale = create_sale(client, h, [parent_line(seed)], seed["customer_id"])
    client.post(f"/api/sales/{sale['id']}/approve", headers=h, json={"sale_type": "CREDIT"})

    url = f"/api/sales/{sale['id']}/payments"
    assert client.post(url, headers=h, json={"amount": 600}).status_code == 400

    first = client.post(url, headers=h, json={"amount": 200})
    assert first.status_code == 201
    assert first.json()["data"]["receipt_number"].startswith("RCP-")
    assert first.json()["data"]["receipt_number"].endswith("-0001")

    current = client.get(f"/api/sales/{sale['id']}", headers=h).json()["data"]
    assert current["paid_amount"] == 200
    assert current["remaining_amount"] == 300
    assert current["is_fully_paid"] is False

    assert client.post(url, headers=h, json={"amount": 300}).status_code == 201
    current = client.get(f"/api/sales/{sale['id']}", headers=h).json()["data"]
    assert current["is_fully_paid"] is True

    account = client.get(f"/api/customers/{seed['customer_id']}/account", headers=h).json()["data"]
    assert account["current_balance"] == 0
    assert treasury_balance(db, seed["parent_treasury_id"]) == 10500

    payments = client.get(url, headers=h).json()["data"]
    assert len(payments) == 2

    receipt = client.post(f"/api/sales/{sale['id']}/issue-receipt", headers=h)
    assert receipt.status_code == 200
    assert receipt.json()["data"]["receipt_issued"] is True


def test_receipt_refused_while_unpaid(client, seed, headers):
    h = headers("accountant")
    sale = create_sale(client, h, [parent_line(seed)], seed["customer_id"])
    client.post(f"/api/sales/{sale['id']}/approve", headers=h, json={"sale_type": "CREDIT"})
    assert client.post(f"/api/sales/{sale['id']}/issue-receipt", headers=h).status_code == 400


def test_list_filters_and_scoping(client, seed, headers):
    create_sale(client, headers("accountant"), [parent_line(seed, qty=1)], seed["customer_id"])
    create_sale(client, headers("branch_sales"), [{"product_id": seed["branch_product_id"], "qty": 1, "unit_price": 30}])

    branch_list = client.get("/api/sales/", headers=headers("branch_sales")).json()["data"]
    assert branch_list["pagination"]["total"] == 1

    admin_list = client.get("/api/sales/", headers=headers("admin")).json()["data"]
    assert admin_list["pagination"]["total"] == 2

    found = client.get("/api/sales/", headers=headers("admin"), params={"search": "Ahmed"}).json()["data"]
    assert found["pagination"]["total"] == 1

    response = client.get("/api/sales/", headers=headers("branch_sales"), params={"company_id": seed["parent_id"]})
    assert response.status_code == 403


def test_stats_and_daily_chart(client, seed, headers):
    h = headers("accountant")
    cash = create_sale(client, h, [parent_line(seed, qty=2)])
    credit = create_sale(client, h, [parent_line(seed, qty=4)], seed["customer_id"])
    create_sale(client, h, [parent_line(seed, qty=1)])
    client.post(f"/api/sales/{cash['id']}/approve", headers=h, json={"sale_type": "CASH"})
    client.post(f"/api/sales/{credit['id']}/approve", headers=h, json={"sale_type": "CREDIT"})

    stats = client.get("/api/sales/stats", headers=h).json()["data"]
    assert stats["total_sales"] == 3
    assert stats["draft_sales"] == 1
    assert stats["approved_sales"] == 2
    assert stats["cash_amount"] == 100
    assert stats["credit_amount"] == 200
    assert stats["today_amount"] == 300

    chart = client.get("/api/sales/daily-chart", headers=h, params={"days": 7}).json()["data"]
    assert len(chart) == 7
    assert chart[-1]["total"] == 300


def test_repeated_product_lines_are_checked_together(client, db, seed, headers):
    h = headers("accountant")
    sale = create_sale(client, h, [parent_line(seed, qty=60), parent_line(seed, qty=60)])

    response = client.post(f"/api/sales/{sale['id']}/approve", headers=h, json={"sale_type": "CASH"})
    assert response.status_code == 400
    assert response.json()["data"]["required"] == 120
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 100

    current = client.get(f"/api/sales/{sale['id']}", headers=h).json()["data"]
    assert current["status"] == "DRAFT"


def test_discount_amount_cannot_be_sent_directly(client, seed, headers):
    response = client.post("/api/sales/", headers=headers("accountant"), json={
        "lines": [parent_line(seed, discount_amount=400)],
    })
    assert response.status_code == 400


def test_stock_decrement_never_goes_negative(db, seed):
    with pytest.raises(InsufficientStockError):
        stock_service.decrement(db, seed["parent_id"], seed["parent_product_id"], 101)
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 100


def test_receipt_numbers_survive_a_deleted_sale(client, seed, headers):
    h = headers("accountant")
    first = create_sale(client, h, [parent_line(seed, qty=1)], seed["customer_id"])
    client.post(f"/api/sales/{first['id']}/approve", headers=h, json={"sale_type": "CREDIT"})
    paid = client.post(f"/api/sales/{first['id']}/payments", headers=h, json={"amount": 10}).json()["data"]
    assert paid["receipt_number"].endswith("-0001")
    assert client.delete(f"/api/sales/{first['id']}", headers=h).status_code == 200

    second = create_sale(client, h, [parent_line(seed, qty=1)], seed["customer_id"])
    client.post(f"/api/sales/{second['id']}/approve", headers=h, json={"sale_type": "CREDIT"})
    paid = client.post(f"/api/sales/{second['id']}/payments", headers=h, json={"amount": 10}).json()["data"]
    assert paid["receipt_number"].endswith("-0002")
