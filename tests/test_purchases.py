from conftest import stock_of, treasury_balance


def make_supplier(client, headers, name="Tiles Co"):
    response = client.post("/api/suppliers/", headers=headers, json={"name": name, "phone": "0511111111"})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def purchase_payload(seed, qty=10, unit_price=8, **extra):
    payload = {"lines": [{"product_id": seed["parent_product_id"], "qty": qty, "unit_price": unit_price}]}
    payload.update(extra)
    return payload


def test_cash_purchase_adds_stock(client, db, seed, headers):
    h = headers("purchaser")
    response = client.post("/api/purchases/", headers=h, json=purchase_payload(seed, invoice_number="P-1"))
    assert response.status_code == 201, response.text
    purchase = response.json()["data"]

    assert purchase["total"] == 80
    assert purchase["is_fully_paid"] is True
    assert purchase["remaining_amount"] == 0
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 110


def test_purchase_without_inventory_effect(client, db, seed, headers):
    client.post("/api/purchases/", headers=headers("purchaser"), json=purchase_payload(seed, affects_inventory=False))
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 100


def test_credit_purchase_requires_supplier(client, seed, headers):
    response = client.post("/api/purchases/", headers=headers("purchaser"), json=purchase_payload(seed, purchase_type="CREDIT"))
    assert response.status_code == 400


def test_credit_purchase_and_payments(client, db, seed, headers):
    h = headers("purchaser")
    supplier = make_supplier(client, h)
    purchase = client.post("/api/purchases/", headers=h, json=purchase_payload(
        seed, purchase_type="CREDIT", supplier_id=supplier["id"],
    )).json()["data"]
    assert purchase["remaining_amount"] == 80

    account = client.get(f"/api/suppliers/{supplier['id']}/account", headers=h).json()["data"]
    assert account["current_balance"] == 80

    url = f"/api/purchases/{purchase['id']}/payments"
    assert client.post(url, headers=h, json={"amount": 100}).status_code == 400

    paid = client.post(url, headers=h, json={"amount": 30, "treasury_id": seed["parent_treasury_id"]})
    assert paid.status_code == 201, paid.text
    assert paid.json()["data"]["receipt_number"].startswith("PAY-")
    assert treasury_balance(db, seed["parent_treasury_id"]) == 9970

    # Without a treasury the payment only touches the ledger
    assert client.post(url, headers=h, json={"amount": 50}).status_code == 201
    assert treasury_balance(db, seed["parent_treasury_id"]) == 9970

    current = client.get(f"/api/purchases/{purchase['id']}", headers=h).json()["data"]
    assert current["is_fully_paid"] is True
    assert len(current["payments"]) == 2

    account = client.get(f"/api/suppliers/{supplier['id']}/account", headers=h).json()["data"]
    assert account["current_balance"] == 0
    assert client.post(url, headers=h, json={"amount": 1}).status_code == 400


def test_payment_refused_when_treasury_is_short(client, seed, headers):
    h = headers("purchaser")
    supplier = make_supplier(client, h)
    purchase = client.post("/api/purchases/", headers=h, json=purchase_payload(
        seed, purchase_type="CREDIT", supplier_id=supplier["id"],
    )).json()["data"]

    response = client.post(f"/api/purchases/{purchase['id']}/payments", headers=h, json={
        "amount": 50, "treasury_id": seed["branch_treasury_id"],
    })
    assert response.status_code == 400

    current = client.get(f"/api/purchases/{purchase['id']}", headers=h).json()["data"]
    assert current["paid_amount"] == 0


def test_update_lines_moves_stock_difference(client, db, seed, headers):
    h = headers("purchaser")
    purchase = client.post("/api/purchases/", headers=h, json=purchase_payload(seed)).json()["data"]
    response = client.put(f"/api/purchases/{purchase['id']}", headers=h, json={
        "lines": [{"product_id": seed["parent_product_id"], "qty": 4, "unit_price": 8}],
    })
    assert response.status_code == 200
    assert response.json()["data"]["total"] == 32
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 104


def test_delete_requires_manager_and_reverses_stock(client, db, seed, headers):
    purchase = client.post("/api/purchases/", headers=headers("purchaser"), json=purchase_payload(seed)).json()["data"]

    assert client.delete(f"/api/purchases/{purchase['id']}", headers=headers("purchaser")).status_code == 403
    assert client.delete(f"/api/purchases/{purchase['id']}", headers=headers("admin")).status_code == 200
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 100


def test_mirror_purchase_cannot_be_deleted(client, seed, headers):
    h = headers("branch_accountant")
    sale = client.post("/api/sales/", headers=h, json={"lines": [{
        "product_id": seed["parent_product_id"], "qty": 1, "unit_price": 60,
        "is_from_parent_company": True, "parent_unit_price": 45,
    }]}).json()["data"]
    approved = client.post(f"/api/sales/{sale['id']}/approve", headers=h, json={"sale_type": "CASH"}).json()["data"]

    response = client.delete(f"/api/purchases/{approved['related_branch_purchase_id']}", headers=headers("admin"))
    assert response.status_code == 400


def test_read_roles(client, seed, headers):
    assert client.get("/api/purchases/", headers=headers("viewer")).status_code == 200
    assert client.get("/api/purchases/", headers=headers("branch_sales")).status_code == 403
    assert client.post("/api/purchases/", headers=headers("accountant"), json=purchase_payload(seed)).status_code == 403


def test_stats(client, seed, headers):
    h = headers("purchaser")
    supplier = make_supplier(client, h)
    client.post("/api/purchases/", headers=h, json=purchase_payload(seed))
    client.post("/api/purchases/", headers=h, json=purchase_payload(
        seed, qty=5, purchase_type="CREDIT", supplier_id=supplier["id"],
    ))

    stats = client.get("/api/purchases/stats", headers=h).json()["data"]
    assert stats["total_purchases"] == 2
    assert stats["cash_amount"] == 80
    assert stats["credit_amount"] == 40
    assert stats["outstanding_amount"] == 40


def test_supplier_with_purchases_cannot_be_deleted(client, seed, headers):
    supplier = make_supplier(client, headers("purchaser"))
    client.post("/api/purchases/", headers=headers("purchaser"), json=purchase_payload(seed, supplier_id=supplier["id"]))
    assert client.delete(f"/api/suppliers/{supplier['id']}", headers=headers("admin")).status_code == 400

    other = make_supplier(client, headers("purchaser"), name="Unused")
    assert client.delete(f"/api/suppliers/{other['id']}", headers=headers("admin")).status_code == 200


def _sell_off(client, headers, seed, boxes):
    response = client.post(f"/api/products/{seed['parent_product_id']}/stock", headers=headers("storekeeper"),
                           json={"boxes": -boxes, "notes": "Sold"})
    assert response.status_code == 200, response.text


def test_delete_refused_when_bought_stock_is_gone(client, db, seed, headers):
    purchase = client.post("/api/purchases/", headers=headers("purchaser"), json=purchase_payload(seed)).json()["data"]
    _sell_off(client, headers, seed, 105)

    response = client.delete(f"/api/purchases/{purchase['id']}", headers=headers("admin"))
    assert response.status_code == 400
    assert response.json()["data"]["available"] == 5
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 5
    assert client.get(f"/api/purchases/{purchase['id']}", headers=headers("admin")).status_code == 200


def test_update_only_checks_the_boxes_it_takes_back(client, db, seed, headers):
    h = headers("purchaser")
    purchase = client.post("/api/purchases/", headers=h, json=purchase_payload(seed)).json()["data"]
    _sell_off(client, headers, seed, 105)
    url = f"/api/purchases/{purchase['id']}"

    too_few = client.put(url, headers=h, json={"lines": [{"product_id": seed["parent_product_id"], "qty": 4, "unit_price": 8}]})
    assert too_few.status_code == 400
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 5

    # Split over two lines the product still nets to 6 boxes, 4 fewer than bought
    response = client.put(url, headers=h, json={"lines": [
        {"product_id": seed["parent_product_id"], "qty": 2, "unit_price": 8},
        {"product_id": seed["parent_product_id"], "qty": 4, "unit_price": 8},
    ]})
    assert response.status_code == 200, response.text
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 1

    grown = client.put(url, headers=h, json={"lines": [{"product_id": seed["parent_product_id"], "qty": 20, "unit_price": 8}]})
    assert grown.status_code == 200
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 15


def test_purchase_records_cost_history(client, seed, headers):
    h = headers("purchaser")
    client.post("/api/purchases/", headers=h, json=purchase_payload(seed, unit_price=8))
    client.post("/api/purchases/", headers=h, json=purchase_payload(seed, unit_price=9))

    history = client.get(f"/api/products/{seed['parent_product_id']}/cost-history", headers=h).json()["data"]
    assert [row["purchase_price"] for row in history] == [9, 8]
    assert history[0]["expense_per_unit"] == 0
    assert history[0]["total_cost_per_unit"] == 9
