from conftest import stock_of, treasury_balance


def paid_sale(client, seed, headers, sale_type="CASH"):
    h = headers("accountant")
    sale = client.post("/api/sales/", headers=h, json={
        "customer_id": seed["customer_id"],
        "lines": [{
            "product_id": seed["parent_product_id"], "qty": 10, "unit_price": 50, "discount_percentage": 10,
        }],
    }).json()["data"]
    client.post(f"/api/sales/{sale['id']}/approve", headers=h, json={"sale_type": sale_type})
    return sale


def request_return(client, headers, sale_id, product_id, qty, username="accountant"):
    return client.post("/api/sale-returns/", headers=headers(username), json={
        "sale_id": sale_id, "reason": "Broken tiles",
        "lines": [{"product_id": product_id, "qty": qty}],
    })


def test_validate_sale(client, seed, headers):
    cash = paid_sale(client, seed, headers)
    credit = paid_sale(client, seed, headers, sale_type="CREDIT")
    h = headers("accountant")

    response = client.get(f"/api/sale-returns/validate-sale/{cash['id']}", headers=h)
    assert response.status_code == 200
    assert response.json()["data"]["id"] == cash["id"]

    assert client.get(f"/api/sale-returns/validate-sale/{credit['id']}", headers=h).status_code == 400
    assert client.get("/api/sale-returns/validate-sale/999", headers=h).status_code == 404


def test_return_defaults_to_net_sold_price(client, seed, headers):
    sale = paid_sale(client, seed, headers)
    response = request_return(client, headers, sale["id"], seed["parent_product_id"], 4)
    assert response.status_code == 201, response.text
    created = response.json()["data"]
    assert created["status"] == "PENDING"
    assert created["lines"][0]["unit_price"] == 45
    assert created["total"] == 180
    assert created["customer_id"] == seed["customer_id"]


def test_returned_quantity_is_capped_by_sold_quantity(client, seed, headers):
    sale = paid_sale(client, seed, headers)
    assert request_return(client, headers, sale["id"], seed["parent_product_id"], 11).status_code == 400

    first = request_return(client, headers, sale["id"], seed["parent_product_id"], 6).json()["data"]
    assert request_return(client, headers, sale["id"], seed["parent_product_id"], 5).status_code == 400

    # Rejected returns free their quantity again
    client.put(f"/api/sale-returns/{first['id']}/status", headers=headers("accountant"), json={"status": "REJECTED"})
    assert request_return(client, headers, sale["id"], seed["parent_product_id"], 10).status_code == 201


def test_product_must_be_on_the_sale(client, seed, headers):
    sale = paid_sale(client, seed, headers)
    response = request_return(client, headers, sale["id"], seed["branch_product_id"], 1)
    assert response.status_code == 400


def test_approval_processes_the_return(client, db, seed, headers):
    sale = paid_sale(client, seed, headers)
    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 90

    created = request_return(client, headers, sale["id"], seed["parent_product_id"], 4).json()["data"]
    response = client.put(
        f"/api/sale-returns/{created['id']}/status", headers=headers("accountant"), json={"status": "APPROVED"},
    )
    assert response.status_code == 200, response.text
    processed = response.json()["data"]
    assert processed["status"] == "PROCESSED"
    assert processed["processed_at"] is not None

    assert stock_of(db, seed["parent_id"], seed["parent_product_id"]) == 94

    account = client.get(f"/api/customers/{seed['customer_id']}/account", headers=headers("accountant")).json()["data"]
    assert account["current_balance"] == -180
    assert account["entries"][0]["reference_type"] == "RETURN"

    # Final statuses cannot change
    again = client.put(
        f"/api/sale-returns/{created['id']}/status", headers=headers("accountant"), json={"status": "REJECTED"},
    )
    assert again.status_code == 400
    assert client.post(f"/api/sale-returns/{created['id']}/process", headers=headers("accountant")).status_code == 400


def test_pending_return_cannot_be_processed(client, seed, headers):
    sale = paid_sale(client, seed, headers)
    created = request_return(client, headers, sale["id"], seed["parent_product_id"], 1).json()["data"]
    response = client.post(f"/api/sale-returns/{created['id']}/process", headers=headers("accountant"))
    assert response.status_code == 400


def test_sales_role_requests_but_cannot_approve(client, seed, headers):
    h = headers("branch_sales")
    sale = client.post("/api/sales/", headers=h, json={
        "lines": [{"product_id": seed["branch_product_id"], "qty": 2, "unit_price": 30}],
    }).json()["data"]
    client.post(f"/api/sales/{sale['id']}/approve", headers=headers("branch_accountant"), json={"sale_type": "CASH"})

    created = request_return(client, headers, sale["id"], seed["branch_product_id"], 1, username="branch_sales")
    assert created.status_code == 201
    return_id = created.json()["data"]["id"]

    response = client.put(f"/api/sale-returns/{return_id}/status", headers=h, json={"status": "APPROVED"})
    assert response.status_code == 403


def test_delete_only_pending(client, seed, headers):
    sale = paid_sale(client, seed, headers)
    h = headers("accountant")
    pending = request_return(client, headers, sale["id"], seed["parent_product_id"], 1).json()["data"]
    rejected = request_return(client, headers, sale["id"], seed["parent_product_id"], 1).json()["data"]
    client.put(f"/api/sale-returns/{rejected['id']}/status", headers=h, json={"status": "REJECTED"})

    assert client.delete(f"/api/sale-returns/{rejected['id']}", headers=h).status_code == 400
    assert client.delete(f"/api/sale-returns/{pending['id']}", headers=h).status_code == 200


def test_sale_with_returns_cannot_be_deleted(client, seed, headers):
    sale = paid_sale(client, seed, headers)
    request_return(client, headers, sale["id"], seed["parent_product_id"], 1)
    assert client.delete(f"/api/sales/{sale['id']}", headers=headers("accountant")).status_code == 400


def test_list_and_stats(client, seed, headers):
    sale = paid_sale(client, seed, headers)
    h = headers("accountant")
    first = request_return(client, headers, sale["id"], seed["parent_product_id"], 2).json()["data"]
    request_return(client, headers, sale["id"], seed["parent_product_id"], 1)
    client.put(f"/api/sale-returns/{first['id']}/status", headers=h, json={"status": "APPROVED"})

    listing = client.get("/api/sale-returns/", headers=h, params={"status": "PENDING"}).json()["data"]
    assert listing["pagination"]["total"] == 1

    stats = client.get("/api/sale-returns/stats", headers=h).json()["data"]
    assert stats["pending"] == 1
    assert stats["processed"] == 1
    assert stats["total"] == 2
    assert stats["processed_amount"] == 90


def test_cash_refund_leaves_the_treasury(client, db, seed, headers):
    sale = paid_sale(client, seed, headers)
    assert treasury_balance(db, seed["parent_treasury_id"]) == 10450
    h = headers("accountant")

    created = client.post("/api/sale-returns/", headers=h, json={
        "sale_id": sale["id"], "refund_method": "CASH",
        "lines": [{"product_id": seed["parent_product_id"], "qty": 4}],
    }).json()["data"]
    response = client.put(f"/api/sale-returns/{created['id']}/status", headers=h, json={"status": "APPROVED"})
    assert response.status_code == 200, response.text

    assert treasury_balance(db, seed["parent_treasury_id"]) == 10270
    transactions = client.get(f"/api/treasuries/{seed['parent_treasury_id']}/transactions", headers=h).json()["data"]
    assert transactions["items"][0]["source"] == "RETURN"
    assert transactions["items"][0]["amount"] == -180

    account = client.get(f"/api/customers/{seed['customer_id']}/account", headers=h).json()["data"]
    assert account["current_balance"] == 0


def test_bank_refund_needs_an_account(client, seed, headers):
    sale = paid_sale(client, seed, headers)
    response = client.post("/api/sale-returns/", headers=headers("accountant"), json={
        "sale_id": sale["id"], "refund_method": "BANK",
        "lines": [{"product_id": seed["parent_product_id"], "qty": 1}],
    })
    assert response.status_code == 400
