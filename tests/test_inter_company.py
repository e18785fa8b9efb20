from conftest import stock_of, treasury_balance
from ceramisys.models import Customer, Purchase, Sale


def complex_payload(seed, qty=4, parent_unit_price=40, **extra):
    payload = {
        "parent_company_id": seed["parent_id"],
        "branch_company_id": seed["branch_id"],
        "customer_id": seed["customer_id"],
        "lines": [{"product_id": seed["parent_product_id"], "qty": qty, "parent_unit_price": parent_unit_price}],
    }
    payload.update(extra)
    return payload


def test_complex_sale_books_three_records(client, db, seed, headers):
    response = client.post("/api/complex-sales/", headers=headers("accountant"), json=complex_payload(seed, profit_margin=25))
    assert response.status_code == 201, response.text
    sale = response.json()["data"]

    assert sale["company_id"] == seed["branch_id"]
    assert sale["status"] == "APPROVED"
    assert sale["total"] == 200
    assert sale["lines"][0]["branch_unit_price"] == 50
    assert sale["lines"][0]["is_from_parent_company"] is True

    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 96
    assert treasury_balance(db, seed["branch_treasury_id"]) == 200

    parent_sale = db.query(Sale).filter(Sale.id == sale["related_parent_sale_id"]).one()
    assert parent_sale.company_id == seed["parent_id"]
    assert float(parent_sale.total) == 160
    assert float(parent_sale.remaining_amount) == 160

    purchase = db.query(Purchase).filter(Purchase.id == sale["related_branch_purchase_id"]).one()
    assert float(purchase.total) == 160
    assert purchase.affects_inventory is False


def test_explicit_branch_price_wins_over_margin(client, seed, headers):
    payload = complex_payload(seed, profit_margin=50)
    payload["lines"][0]["branch_unit_price"] = 45
    sale = client.post("/api/complex-sales/", headers=headers("accountant"), json=payload).json()["data"]
    assert sale["total"] == 180


def test_complex_sale_checks_stock_before_writing(client, db, seed, headers):
    response = client.post("/api/complex-sales/", headers=headers("accountant"), json=complex_payload(seed, qty=500))
    assert response.status_code == 400
    db.expire_all()
    assert db.query(Sale).count() == 0
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 100


def test_complex_sale_requires_real_branch(client, seed, headers):
    payload = complex_payload(seed)
    payload["branch_company_id"] = seed["parent_id"]
    response = client.post("/api/complex-sales/", headers=headers("admin"), json=payload)
    assert response.status_code == 400


def test_complex_sale_needs_approver(client, seed, headers):
    response = client.post("/api/complex-sales/", headers=headers("branch_sales"), json=complex_payload(seed))
    assert response.status_code == 403


def test_branch_customer_is_reused(client, db, seed, headers):
    h = headers("accountant")
    client.post("/api/complex-sales/", headers=h, json=complex_payload(seed, qty=1))
    client.post("/api/complex-sales/", headers=h, json=complex_payload(seed, qty=2))
    db.expire_all()
    assert db.query(Customer).filter(Customer.phone == f"BRANCH-{seed['branch_id']}").count() == 1


def test_stats_and_settlement(client, db, seed, headers):
    h = headers("accountant")
    sale = client.post("/api/complex-sales/", headers=h, json=complex_payload(seed)).json()["data"]
    parent_sale_id = sale["related_parent_sale_id"]

    stats = client.get("/api/complex-sales/stats", headers=headers("admin")).json()["data"]
    assert stats["complex_sales"] == 1
    assert stats["complex_sales_total"] == 160
    assert stats["parent_invoices"] == 1
    assert stats["parent_invoices_outstanding"] == 160

    response = client.post(f"/api/complex-sales/parent-sales/{parent_sale_id}/settle", headers=h, json={"amount": 100})
    assert response.status_code == 200, response.text
    assert response.json()["data"]["amount"] == 100

    assert treasury_balance(db, seed["parent_treasury_id"]) == 10100
    db.expire_all()
    parent_sale = db.query(Sale).filter(Sale.id == parent_sale_id).one()
    assert float(parent_sale.remaining_amount) == 60

    over = client.post(f"/api/complex-sales/parent-sales/{parent_sale_id}/settle", headers=h, json={"amount": 61})
    assert over.status_code == 400

    stats = client.get("/api/complex-sales/stats", headers=headers("admin")).json()["data"]
    assert stats["parent_invoices_outstanding"] == 60


def test_only_auto_generated_sales_can_be_settled(client, seed, headers):
    h = headers("accountant")
    sale = client.post("/api/complex-sales/", headers=h, json=complex_payload(seed)).json()["data"]
    response = client.post(f"/api/complex-sales/parent-sales/{sale['id']}/settle", headers=headers("admin"), json={"amount": 10})
    assert response.status_code == 400


def test_list_complex_sales(client, seed, headers):
    client.post("/api/complex-sales/", headers=headers("accountant"), json=complex_payload(seed))
    listing = client.get("/api/complex-sales/", headers=headers("admin")).json()["data"]
    assert listing["pagination"]["total"] == 1

    branch_listing = client.get("/api/complex-sales/", headers=headers("branch_sales")).json()["data"]
    assert branch_listing["pagination"]["total"] == 1


def test_complex_sale_adds_up_repeated_products(client, db, seed, headers):
    payload = complex_payload(seed, qty=60)
    payload["lines"].append(dict(payload["lines"][0]))

    response = client.post("/api/complex-sales/", headers=headers("accountant"), json=payload)
    assert response.status_code == 400
    assert response.json()["data"]["required"] == 120
    db.expire_all()
    assert db.query(Sale).count() == 0
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 100
