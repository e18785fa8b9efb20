from test_purchases import make_supplier, purchase_payload


def make_category(client, headers, name="Freight", supplier_ids=()):
    response = client.post("/api/expense-categories/", headers=headers, json={
        "name": name, "supplier_ids": list(supplier_ids),
    })
    assert response.status_code == 201, response.text
    return response.json()["data"]


def supplier_balance(client, headers, supplier_id):
    return client.get(f"/api/suppliers/{supplier_id}/account", headers=headers).json()["data"]["current_balance"]


def test_category_crud(client, seed, headers):
    h = headers("purchaser")
    carrier = make_supplier(client, h, name="Carrier")
    category = make_category(client, h, supplier_ids=[carrier["id"]])
    assert [s["name"] for s in category["suppliers"]] == ["Carrier"]

    assert client.post("/api/expense-categories/", headers=h, json={"name": "Freight"}).status_code == 409
    assert client.post("/api/expense-categories/", headers=h, json={"name": "Customs", "supplier_ids": [999]}).status_code == 404

    updated = client.put(f"/api/expense-categories/{category['id']}", headers=h, json={"is_active": False, "supplier_ids": []})
    assert updated.status_code == 200
    assert updated.json()["data"]["suppliers"] == []

    assert client.get("/api/expense-categories/", headers=h).json()["data"] == []
    assert len(client.get("/api/expense-categories/?include_inactive=true", headers=h).json()["data"]) == 1

    assert client.delete(f"/api/expense-categories/{category['id']}", headers=h).status_code == 403
    assert client.delete(f"/api/expense-categories/{category['id']}", headers=headers("admin")).status_code == 200


def test_expenses_raise_landed_cost(client, seed, headers):
    h = headers("purchaser")
    carrier = make_supplier(client, h, name="Carrier")
    freight = make_category(client, h, supplier_ids=[carrier["id"]])
    customs = make_category(client, h, name="Customs")
    purchase = client.post("/api/purchases/", headers=h, json=purchase_payload(seed)).json()["data"]

    response = client.post(f"/api/purchases/{purchase['id']}/expenses", headers=h, json={"expenses": [
        {"category_id": freight["id"], "supplier_id": carrier["id"], "amount": 20},
        {"category_id": customs["id"], "amount": 10, "currency": "USD", "exchange_rate": 5},
    ]})
    assert response.status_code == 201, response.text
    updated = response.json()["data"]
    assert updated["total"] == 80
    assert updated["total_expenses"] == 70
    assert updated["final_total"] == 150

    expenses = client.get(f"/api/purchases/{purchase['id']}/expenses", headers=h).json()["data"]
    assert expenses[1]["amount"] == 50
    assert expenses[1]["amount_foreign"] == 10

    history = client.get(f"/api/products/{seed['parent_product_id']}/cost-history", headers=h).json()["data"]
    assert history[0]["expense_per_unit"] == 7
    assert history[0]["total_cost_per_unit"] == 15

    # Only the expense with a supplier opens a receipt
    assert supplier_balance(client, h, carrier["id"]) == 20
    receipts = client.get(f"/api/payment-receipts/?purchase_id={purchase['id']}", headers=h).json()["data"]["items"]
    assert len(receipts) == 1
    assert receipts[0]["type"] == "EXPENSE"
    assert receipts[0]["receipt_number"].startswith("SPR-")
    assert receipts[0]["category_name"] == "Freight"


def test_expense_rules(client, seed, headers):
    h = headers("purchaser")
    carrier = make_supplier(client, h, name="Carrier")
    other = make_supplier(client, h, name="Other")
    freight = make_category(client, h, supplier_ids=[carrier["id"]])
    purchase = client.post("/api/purchases/", headers=h, json=purchase_payload(seed)).json()["data"]
    url = f"/api/purchases/{purchase['id']}/expenses"

    wrong_supplier = {"category_id": freight["id"], "supplier_id": other["id"], "amount": 5}
    assert client.post(url, headers=h, json={"expenses": [wrong_supplier]}).status_code == 400

    no_rate = {"category_id": freight["id"], "amount": 5, "currency": "EUR"}
    assert client.post(url, headers=h, json={"expenses": [no_rate]}).status_code == 400
    assert client.post(url, headers=h, json={"expenses": []}).status_code == 400

    client.put(f"/api/expense-categories/{freight['id']}", headers=h, json={"is_active": False})
    assert client.post(url, headers=h, json={"expenses": [{"category_id": freight["id"], "amount": 5}]}).status_code == 400

    current = client.get(f"/api/purchases/{purchase['id']}", headers=h).json()["data"]
    assert current["total_expenses"] == 0


def test_mirror_purchase_takes_no_expenses(client, seed, headers):
    h = headers("branch_accountant")
    sale = client.post("/api/sales/", headers=h, json={"lines": [{
        "product_id": seed["parent_product_id"], "qty": 1, "unit_price": 60,
        "is_from_parent_company": True, "parent_unit_price": 45,
    }]}).json()["data"]
    approved = client.post(f"/api/sales/{sale['id']}/approve", headers=h, json={"sale_type": "CASH"}).json()["data"]

    category = make_category(client, headers("purchaser"))
    response = client.post(
        f"/api/purchases/{approved['related_branch_purchase_id']}/expenses", headers=headers("admin"),
        json={"expenses": [{"category_id": category["id"], "amount": 5}]},
    )
    assert response.status_code == 400


def test_delete_expense_reverses_its_receipt(client, seed, headers):
    h = headers("purchaser")
    carrier = make_supplier(client, h, name="Carrier")
    freight = make_category(client, h)
    purchase = client.post("/api/purchases/", headers=h, json=purchase_payload(seed)).json()["data"]
    client.post(f"/api/purchases/{purchase['id']}/expenses", headers=h, json={"expenses": [
        {"category_id": freight["id"], "supplier_id": carrier["id"], "amount": 20},
        {"category_id": freight["id"], "supplier_id": carrier["id"], "amount": 30},
    ]})
    expenses = client.get(f"/api/purchases/{purchase['id']}/expenses", headers=h).json()["data"]
    receipts = client.get(f"/api/payment-receipts/?purchase_id={purchase['id']}", headers=h).json()["data"]["items"]
    paid_receipt = next(r for r in receipts if r["expense_id"] == expenses[1]["id"])

    # A receipt with an installment pins its expense
    installment = client.post(f"/api/payment-receipts/{paid_receipt['id']}/installments",
                              headers=headers("accountant"), json={"amount": 10})
    assert installment.status_code == 201, installment.text
    assert client.delete(f"/api/purchases/expenses/{expenses[1]['id']}", headers=h).status_code == 400

    assert client.delete(f"/api/purchases/expenses/{expenses[0]['id']}", headers=h).status_code == 200
    assert supplier_balance(client, h, carrier["id"]) == 20

    current = client.get(f"/api/purchases/{purchase['id']}", headers=h).json()["data"]
    assert current["total_expenses"] == 30
    history = client.get(f"/api/products/{seed['parent_product_id']}/cost-history", headers=h).json()["data"]
    assert history[0]["expense_per_unit"] == 3

    # Nor can the purchase go while a receipt on it has been paid into
    assert client.delete(f"/api/purchases/{purchase['id']}", headers=headers("admin")).status_code == 400


def test_deleting_purchase_settles_open_receipts(client, db, seed, headers):
    h = headers("purchaser")
    carrier = make_supplier(client, h, name="Carrier")
    freight = make_category(client, h)
    purchase = client.post("/api/purchases/", headers=h, json=purchase_payload(seed)).json()["data"]
    client.post(f"/api/purchases/{purchase['id']}/expenses", headers=h, json={"expenses": [
        {"category_id": freight["id"], "supplier_id": carrier["id"], "amount": 20},
    ]})
    assert supplier_balance(client, h, carrier["id"]) == 20

    assert client.delete(f"/api/purchases/{purchase['id']}", headers=headers("admin")).status_code == 200
    assert supplier_balance(client, h, carrier["id"]) == 0
    assert client.get("/api/payment-receipts/", headers=h).json()["data"]["items"] == []
    assert client.get(f"/api/products/{seed['parent_product_id']}/cost-history", headers=h).json()["data"] == []

    # The used category can now be removed
    assert client.delete(f"/api/expense-categories/{freight['id']}", headers=headers("admin")).status_code == 200
