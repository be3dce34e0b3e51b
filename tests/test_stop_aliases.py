def test_create_and_list_stop_aliases(client_with_db):
    response = client_with_db.post(
        "/stop-aliases/", json={"canonical_name": "Bus Stand", "pattern": "Bus Terminus"}
    )
    assert response.status_code == 201
    data = response.json()
    assert data["canonical_name"] == "bus stand"
    assert data["pattern"] == "bus terminus"

    duplicate = client_with_db.post(
        "/stop-aliases/", json={"canonical_name": "bus stand", "pattern": "bus terminus"}
    )
    assert duplicate.status_code == 409

    aliases = client_with_db.get("/stop-aliases/").json()
    assert len(aliases) == 1


def test_blank_alias_rejected(client_with_db):
    response = client_with_db.post(
        "/stop-aliases/", json={"canonical_name": " ", "pattern": "x"}
    )
    assert response.status_code == 400


def test_delete_stop_alias(client_with_db):
    alias_id = client_with_db.post(
        "/stop-aliases/", json={"canonical_name": "market", "pattern": "bazaar"}
    ).json()["alias_id"]

    assert client_with_db.delete(f"/stop-aliases/{alias_id}").status_code == 204
    assert client_with_db.delete(f"/stop-aliases/{alias_id}").status_code == 404


def test_alias_changes_optimization_matching(client_with_db, factory, trip_date):
    quiet = factory.route("Quiet", stops=["Old Bazaar"])
    busy = factory.route("Busy", stops=["Market Street"])
    factory.booking(quiet, "Old Bazaar")
    factory.fill(busy, 40, "Market Street")
    body = {"date": trip_date.isoformat(), "admin_id": "admin-1"}

    plan = client_with_db.post("/route-optimization/", json=body).json()["plan"]
    assert plan["routes"][0]["transfer_type"] == "no_transfer"

    client_with_db.post(
        "/stop-aliases/", json={"canonical_name": "market", "pattern": "bazaar"}
    )

    plan = client_with_db.post("/route-optimization/", json=body).json()["plan"]
    assert plan["routes"][0]["transfer_type"] == "full_transfer"
    assert plan["routes"][0]["passengers"][0]["target"]["route_name"] == "Busy"
