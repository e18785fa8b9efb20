from conftest import treasury_balance


def test_list_includes_shared_treasuries(client, seed, headers):
    names = {t["name"] for t in client.get("/api/treasuries/", headers=headers("branch_accountant")).json()["data"]}
    assert names == {"Branch cash", "Bank"}

    everything = client.get("/api/treasuries/", headers=headers("admin")).json()["data"]
    assert len(everything) == 3


def test_create_with_opening_balance(client, db, seed, headers):
    response = client.post("/api/treasuries/", headers=headers("branch_accountant"), json={
        "name": "Branch safe", "opening_balance": 250,
    })
    assert response.status_code == 201, response.text
    treasury = response.json()["data"]
    assert treasury["company_id"] == seed["branch_id"]
    assert treasury["balance"] == 250

    transactions = client.get(
        f"/api/treasuries/{treasury['id']}/transactions", headers=headers("branch_accountant"),
    ).json()["data"]
    assert transactions["pagination"]["total"] == 1
    assert transactions["items"][0]["source"] == "MANUAL"


def test_manual_movements(client, db, seed, headers):
    h = headers("accountant")
    url = f"/api/treasuries/{seed['parent_treasury_id']}"

    deposit = client.post(f"{url}/deposit", headers=h, json={"amount": 500, "description": "Owner top-up"})
    assert deposit.status_code == 200
    assert deposit.json()["data"]["balance_before"] == 10000
    assert deposit.json()["data"]["balance_after"] == 10500

    withdraw = client.post(f"{url}/withdraw", headers=h, json={"amount": 1500})
    assert withdraw.status_code == 200
    assert withdraw.json()["data"]["type"] == "WITHDRAWAL"
    assert treasury_balance(db, seed["parent_treasury_id"]) == 9000

    too_much = client.post(f"{url}/withdraw", headers=h, json={"amount": 9001})
    assert too_much.status_code == 400
    assert treasury_balance(db, seed["parent_treasury_id"]) == 9000


def test_other_company_treasury_is_forbidden(client, seed, headers):
    response = client.get(f"/api/treasuries/{seed['parent_treasury_id']}", headers=headers("branch_accountant"))
    assert response.status_code == 403
    assert client.get(f"/api/treasuries/{seed['bank_id']}", headers=headers("branch_accountant")).status_code == 200


def test_manual_movements_need_permission(client, seed, headers):
    response = client.post(
        f"/api/treasuries/{seed['parent_treasury_id']}/deposit", headers=headers("viewer"), json={"amount": 1},
    )
    assert response.status_code == 403
