from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import MONDAY, STAFF_EMAIL, TUESDAY


def create_sample_quote(client: TestClient, **overrides) -> str:
    payload = {
        "id": "Q1",
        "title": "Riviera Maya",
        "rateId": "R-Premium",
        "clientRef": "C1",
        "numberOfPeople": 4,
        "serviceItems": {
            "days": [
                {"dayNumber": 1, "dayTitle": "Arrival", "dayDate": MONDAY, "subconcepts": []},
                {"dayNumber": 2, "dayTitle": "Tulum", "dayDate": TUESDAY, "subconcepts": []},
            ]
        },
    }
    payload.update(overrides)
    response = api_post(client, "/quotes", payload)
    return response["id"]


def api_post(client: TestClient, url: str, payload: dict) -> dict:
    response = client.post(url, json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_and_fetch_quote(api_client: TestClient) -> None:
    quote_id = create_sample_quote(api_client)
    body = api_client.get(f"/quotes/{quote_id}").json()
    assert body["rateName"] == "Premium"
    assert body["currency"] == "MXN"
    assert [day["dayNumber"] for day in body["serviceItems"]["days"]] == [1, 2]
    assert body["serviceItems"]["days"][0]["dayDate"] == MONDAY


def test_quote_rejects_gaps_in_day_numbers(api_client: TestClient) -> None:
    response = api_client.post(
        "/quotes",
        json={"serviceItems": {"days": [{"dayNumber": 1}, {"dayNumber": 3}]}},
    )
    assert response.status_code == 422


def test_unknown_quote_is_not_found(api_client: TestClient) -> None:
    assert api_client.get("/quotes/Q404").status_code == 404


def test_saving_service_items_pins_prices_and_totals(api_client: TestClient) -> None:
    quote_id = create_sample_quote(api_client)
    items = {
        "days": [
            {
                "dayNumber": 1,
                "dayDate": MONDAY,
                "subconcepts": [
                    {"type": "traslado", "itemId": "S42", "vehicleRef": "V-Sedan", "note": "Flight AM 123"},
                    {"type": "experiencia", "itemId": "E2", "price": 450.5},
                ],
            },
            {
                "dayNumber": 2,
                "dayDate": TUESDAY,
                "subconcepts": [{"type": "tour", "itemId": "T1", "vehicleRef": "V-Van"}],
            },
        ]
    }
    response = api_client.put(f"/quotes/{quote_id}/service-items", json=items)
    assert response.status_code == 200, response.text
    pinned = response.json()

    transfer = pinned["days"][0]["subconcepts"][0]
    assert transfer["price"] == 2000.0
    assert transfer["basePrice"] == 2000.0
    assert transfer["isClientPrice"] is False
    assert transfer["note"] == "Flight AM 123"
    assert pinned["days"][0]["dayTotal"] == 2450.5
    assert pinned["days"][1]["dayTotal"] == 2600.0
    assert pinned["subtotal"] == 5050.5
    assert pinned["iva"] == 808.08
    assert pinned["total"] == 5858.58

    stored = api_client.get(f"/quotes/{quote_id}").json()["serviceItems"]
    assert stored == pinned


def test_pinning_prefers_the_client_override(api_client: TestClient) -> None:
    quote_id = create_sample_quote(api_client)
    api_client.post(
        "/services/client-prices",
        json={
            "clientId": "C1",
            "serviceId": "S42",
            "prices": [{"ratePtr": "R-Premium", "vehiclePtr": "V-Sedan", "precio": 1800, "basePrice": 2000}],
        },
        headers={"X-User-Email": STAFF_EMAIL},
    )
    items = {"days": [{"dayNumber": 1, "subconcepts": [{"type": "traslado", "itemId": "S42", "vehicleRef": "V-Sedan"}]}]}
    pinned = api_client.put(f"/quotes/{quote_id}/service-items", json=items).json()
    subconcept = pinned["days"][0]["subconcepts"][0]
    assert subconcept["price"] == 1800.0
    assert subconcept["isClientPrice"] is True
    assert pinned["total"] == 2088.0


def test_pinning_an_unpriced_key_fails_without_saving(api_client: TestClient) -> None:
    quote_id = create_sample_quote(api_client, rateId="R-Green", id="Q2")
    items = {"days": [{"dayNumber": 1, "subconcepts": [{"type": "traslado", "itemId": "S77", "vehicleRef": "V-SprinterXL"}]}]}
    response = api_client.put(f"/quotes/{quote_id}/service-items", json=items)
    assert response.status_code == 404
    assert response.json()["code"] == "no_price"

    stored = api_client.get(f"/quotes/{quote_id}").json()["serviceItems"]
    assert len(stored["days"]) == 2
