def test_list_counts_products(client, seed, headers):
    h = headers("purchaser")
    client.post("/api/product-groups/", headers=h, json={"name": "Wall tiles", "max_discount_percentage": 5})

    groups = client.get("/api/product-groups/", headers=h).json()["data"]
    counts = {g["name"]: g["product_count"] for g in groups}
    assert counts == {"Floor tiles": 1, "Wall tiles": 0}


def test_group_names_are_unique(client, seed, headers):
    h = headers("purchaser")
    assert client.post("/api/product-groups/", headers=h, json={"name": "Floor tiles"}).status_code == 409

    other = client.post("/api/product-groups/", headers=h, json={"name": "Wall tiles"}).json()["data"]
    response = client.put(f"/api/product-groups/{other['id']}", headers=h, json={"name": "Floor tiles"})
    assert response.status_code == 409


def test_discount_cap_is_bounded(client, seed, headers):
    response = client.post("/api/product-groups/", headers=headers("purchaser"), json={
        "name": "Outlet", "max_discount_percentage": 120,
    })
    assert response.status_code == 400


def test_group_write_permission(client, seed, headers):
    assert client.post("/api/product-groups/", headers=headers("viewer"), json={"name": "X"}).status_code == 403


def test_assign_and_remove_products(client, seed, headers):
    h = headers("purchaser")
    group = client.post("/api/product-groups/", headers=h, json={"name": "Wall tiles", "max_discount_percentage": 5}).json()["data"]
    url = f"/api/product-groups/{group['id']}"

    assigned = client.post(f"{url}/assign-products", headers=h, json={"product_ids": [seed["branch_product_id"]]})
    assert assigned.status_code == 200
    assert [p["id"] for p in assigned.json()["data"]["products"]] == [seed["branch_product_id"]]

    flags = {p["id"]: p["is_in_group"] for p in client.get(f"{url}/products", headers=h).json()["data"]}
    assert flags == {seed["parent_product_id"]: False, seed["branch_product_id"]: True}

    missing = client.post(f"{url}/assign-products", headers=h, json={"product_ids": [999]})
    assert missing.status_code == 404

    removed = client.post(f"{url}/remove-products", headers=h, json={"product_ids": [seed["branch_product_id"]]})
    assert removed.json()["data"]["products"] == []


def test_group_cap_applies_after_assignment(client, seed, headers):
    h = headers("purchaser")
    group = client.post("/api/product-groups/", headers=h, json={"name": "Wall tiles", "max_discount_percentage": 5}).json()["data"]
    client.post(f"/api/product-groups/{group['id']}/assign-products", headers=h, json={"product_ids": [seed["branch_product_id"]]})

    response = client.post("/api/sales/", headers=headers("branch_sales"), json={
        "lines": [{"product_id": seed["branch_product_id"], "qty": 1, "unit_price": 30, "discount_percentage": 6}],
    })
    assert response.status_code == 400


def test_delete_group_with_products_is_refused(client, seed, headers):
    h = headers("purchaser")
    url = f"/api/product-groups/{seed['group_id']}"
    assert client.delete(url, headers=h).status_code == 400

    client.post(f"{url}/remove-products", headers=h, json={"product_ids": [seed["parent_product_id"]]})
    assert client.delete(url, headers=h).status_code == 200
    assert client.get(url, headers=h).status_code == 404


def test_update_group(client, seed, headers):
    response = client.put(
        f"/api/product-groups/{seed['group_id']}", headers=headers("purchaser"), json={"max_discount_percentage": 15},
    )
    assert response.status_code == 200
    assert response.json()["data"]["max_discount_percentage"] == 15
    assert response.json()["data"]["name"] == "Floor tiles"
