# tests/api/v1/test_rfqs_api.py

from fastapi.testclient import TestClient

from tests.utils.auth import get_user_authentication_headers
from tests.utils.factories import create_supplier

BUYER = get_user_authentication_headers("user_buyer", "buyer")
SUPPLIER_A = get_user_authentication_headers("user_a", "supplier")
SUPPLIER_B = get_user_authentication_headers("user_b", "supplier")


def _create_rfq(client: TestClient, supplier_ids, **extra):
    payload = {
        "title": "Slab pour",
        "line_items": [{"description": "Ready-mix concrete", "quantity": 6, "unit": "m3"}],
        "supplier_ids": supplier_ids,
        **extra,
    }
    return client.post("/api/v1/rfqs", json=payload, headers=BUYER)


def _submit(client: TestClient, rfq_id, headers, unit_price, **extra):
    payload = {"line_prices": [{"line_index": 0, "unit_price": unit_price}], **extra}
    return client.post(f"/api/v1/rfqs/{rfq_id}/offers", json=payload, headers=headers)


def test_create_rfq(db_session, notifier, test_client: TestClient):
    a = create_supplier(db_session, "user_a")
    b = create_supplier(db_session, "user_b")

    response = _create_rfq(test_client, [a.id, b.id])

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "active"
    assert body["data"]["offer_count"] == 0
    assert {r["supplier_id"] for r in body["data"]["recipients"]} == {a.id, b.id}
    assert len(notifier.of("rfq:created")) == 2


def test_create_rfq_requires_token(test_client: TestClient):
    response = test_client.post("/api/v1/rfqs", json={})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "unauthorized"


def test_create_rfq_is_buyer_only(db_session, test_client: TestClient):
    a = create_supplier(db_session, "user_a")

    response = test_client.post(
        "/api/v1/rfqs",
        json={"title": "x", "line_items": [{"description": "y", "quantity": 1}],
              "supplier_ids": [a.id]},
        headers=SUPPLIER_A,
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "forbidden"


def test_create_rfq_validation_envelope(test_client: TestClient):
    response = test_client.post(
        "/api/v1/rfqs",
        json={"title": "", "line_items": [], "supplier_ids": ["sup_1"]},
        headers=BUYER,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "validation_error"
    fields = {e["field"] for e in body["error"]["details"]["errors"]}
    assert {"title", "line_items"} <= fields


def test_create_rfq_with_too_many_suppliers(db_session, test_client: TestClient):
    ids = [create_supplier(db_session, f"user_{i}").id for i in range(6)]

    response = _create_rfq(test_client, ids)

    assert response.status_code == 400


def test_list_and_filter_rfqs(db_session, test_client: TestClient):
    a = create_supplier(db_session, "user_a")
    first = _create_rfq(test_client, [a.id]).json()["data"]
    _create_rfq(test_client, [a.id])
    test_client.post(f"/api/v1/rfqs/{first['id']}/close", headers=BUYER)

    response = test_client.get("/api/v1/rfqs?status=closed", headers=BUYER)

    assert response.status_code == 200
    data = response.json()["data"]
    assert [r["id"] for r in data["items"]] == [first["id"]]
    assert data["pagination"]["total_count"] == 1


def test_list_rfqs_rejects_unknown_filter(test_client: TestClient):
    response = test_client.get("/api/v1/rfqs?buyer_id=someone", headers=BUYER)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "validation_error"


def test_foreign_rfq_is_forbidden_and_missing_is_404(db_session, test_client: TestClient):
    a = create_supplier(db_session, "user_a")
    rfq = _create_rfq(test_client, [a.id]).json()["data"]
    intruder = get_user_authentication_headers("user_intruder", "buyer")

    assert test_client.get(f"/api/v1/rfqs/{rfq['id']}", headers=intruder).status_code == 403
    assert test_client.get("/api/v1/rfqs/rfq_missing", headers=BUYER).status_code == 404


def test_close_twice_conflicts(db_session, test_client: TestClient):
    a = create_supplier(db_session, "user_a")
    rfq = _create_rfq(test_client, [a.id]).json()["data"]

    assert test_client.post(f"/api/v1/rfqs/{rfq['id']}/close", headers=BUYER).status_code == 200
    response = test_client.post(f"/api/v1/rfqs/{rfq['id']}/close", headers=BUYER)

    assert response.status_code == 409
    assert response.json()["error"]["details"]["current_status"] == "closed"


def test_delete_rfq_without_offers(db_session, test_client: TestClient):
    a = create_supplier(db_session, "user_a")
    rfq = _create_rfq(test_client, [a.id]).json()["data"]

    response = test_client.delete(f"/api/v1/rfqs/{rfq['id']}", headers=BUYER)

    assert response.status_code == 200
    assert test_client.get(f"/api/v1/rfqs/{rfq['id']}", headers=BUYER).status_code == 404


def test_supplier_inbox_and_first_view(db_session, test_client: TestClient):
    a = create_supplier(db_session, "user_a")
    create_supplier(db_session, "user_b")
    rfq = _create_rfq(test_client, [a.id]).json()["data"]

    inbox = test_client.get("/api/v1/suppliers/me/rfqs", headers=SUPPLIER_A).json()["data"]
    assert [r["id"] for r in inbox["items"]] == [rfq["id"]]
    assert inbox["items"][0]["viewed_at"] is None

    viewed = test_client.get(f"/api/v1/suppliers/me/rfqs/{rfq['id']}", headers=SUPPLIER_A)
    assert viewed.status_code == 200
    assert viewed.json()["data"]["viewed_at"] is not None
    assert viewed.json()["data"]["my_offer"] is None

    other = test_client.get(f"/api/v1/suppliers/me/rfqs/{rfq['id']}", headers=SUPPLIER_B)
    assert other.status_code == 404


def test_supplier_without_profile(test_client: TestClient):
    headers = get_user_authentication_headers("user_nobody", "supplier")

    response = test_client.get("/api/v1/suppliers/me/rfqs", headers=headers)

    assert response.status_code == 404


def test_submit_then_revise_offer(db_session, test_client: TestClient):
    a = create_supplier(db_session, "user_a")
    rfq = _create_rfq(test_client, [a.id]).json()["data"]

    created = _submit(test_client, rfq["id"], SUPPLIER_A, 95)
    revised = _submit(test_client, rfq["id"], SUPPLIER_A, 90, payment_terms="net_30")

    assert created.status_code == 201
    assert created.json()["data"]["total_amount"] == 570.0
    assert revised.status_code == 200
    assert revised.json()["data"]["id"] == created.json()["data"]["id"]
    assert revised.json()["data"]["total_amount"] == 540.0

    history = test_client.get(
        f"/api/v1/rfqs/{rfq['id']}/offers/history", headers=SUPPLIER_A
    ).json()["data"]
    assert history["current"]["payment_terms"] == "net_30"
    assert [v["version_number"] for v in history["versions"]] == [1]
    assert history["versions"][0]["total_amount"] == 570.0


def test_uninvited_supplier_cannot_quote(db_session, test_client: TestClient):
    a = create_supplier(db_session, "user_a")
    create_supplier(db_session, "user_b")
    rfq = _create_rfq(test_client, [a.id]).json()["data"]

    response = _submit(test_client, rfq["id"], SUPPLIER_B, 10)

    assert response.status_code == 409


def test_buyer_sees_offers_cheapest_first_with_trust(db_session, trust_reader,
                                                     test_client: TestClient):
    a = create_supplier(db_session, "user_a")
    b = create_supplier(db_session, "user_b")
    rfq = _create_rfq(test_client, [a.id, b.id]).json()["data"]
    _submit(test_client, rfq["id"], SUPPLIER_A, 20)
    _submit(test_client, rfq["id"], SUPPLIER_B, 15)
    trust_reader.cache.set(b.id, {"trust_score": 4.9})

    response = test_client.get(f"/api/v1/rfqs/{rfq['id']}/offers", headers=BUYER)

    offers = response.json()["data"]
    assert [o["supplier_id"] for o in offers] == [b.id, a.id]
    assert offers[0]["supplier_trust"] == {"trust_score": 4.9}
    assert "supplier_trust" not in offers[1]
