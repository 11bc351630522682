from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy import select

from quotedesk import models

from conftest import MONDAY, SATURDAY, SUNDAY, TUESDAY, TestingSessionLocal


def test_active_rates_are_sorted_and_skip_inactive(api_client: TestClient) -> None:
    response = api_client.post("/rates", json={"name": "Legacy", "active": False})
    assert response.status_code == 201

    response = api_client.get("/rates/active")
    assert response.status_code == 200
    names = [rate["name"] for rate in response.json()]
    assert names == ["Green", "Premium"]
    premium = response.json()[1]
    assert premium["currency"] == "MXN"
    assert premium["color"] == "#1F3A93"


def test_rate_names_are_unique_ignoring_case(api_client: TestClient) -> None:
    response = api_client.post("/rates", json={"name": "premium"})
    assert response.status_code == 409
    assert response.json()["code"] == "conflict"


def test_lookups_distinguish_unknown_from_malformed_ids(api_client: TestClient) -> None:
    assert api_client.get("/rates/R-Premium").json()["name"] == "Premium"
    assert api_client.get("/vehicle-types/V-Van").json()["defaultCapacity"] == 10

    missing = api_client.get("/services/S999")
    assert missing.status_code == 404
    assert missing.json()["code"] == "not_found"

    malformed = api_client.get("/tours/bad.id")
    assert malformed.status_code == 400
    assert malformed.json()["code"] == "invalid_argument"


def test_service_payload_uses_camel_case_and_nested_pois(api_client: TestClient) -> None:
    body = api_client.get("/services/S42").json()
    assert body["originPOI"]["id"] == "P-CUN"
    assert body["destinationPOI"]["serviceType"] == "Punto a Punto"
    assert body["active"] is True


def test_services_by_rate_filters_vehicles_by_capacity(api_client: TestClient) -> None:
    everyone = api_client.get("/services/by-rate/R-Premium").json()
    assert [option["service"]["id"] for option in everyone] == ["S42"]
    codes = [vehicle["vehicleType"]["code"] for vehicle in everyone[0]["admissibleVehicles"]]
    assert codes == ["SED", "VAN"]

    exactly_four = api_client.get("/services/by-rate/R-Premium", params={"numberOfPeople": 4}).json()
    assert len(exactly_four[0]["admissibleVehicles"]) == 2

    six = api_client.get("/services/by-rate/R-Premium", params={"numberOfPeople": 6}).json()
    assert [v["vehicleType"]["code"] for v in six[0]["admissibleVehicles"]] == ["VAN"]
    assert six[0]["admissibleVehicles"][0]["price"] == 3200.0

    too_many = api_client.get("/services/by-rate/R-Premium", params={"numberOfPeople": 12}).json()
    assert too_many == []


def test_services_by_rate_rejects_negative_people(api_client: TestClient) -> None:
    response = api_client.get("/services/by-rate/R-Premium", params={"numberOfPeople": -1})
    assert response.status_code == 422


def test_tour_destinations_follow_weekday_availability(api_client: TestClient) -> None:
    url = "/tours/destinations/by-rate/R-Premium"
    assert [poi["id"] for poi in api_client.get(url).json()] == ["P-CHICHEN", "P-TULUM"]
    assert [poi["id"] for poi in api_client.get(url, params={"dayDate": MONDAY}).json()] == ["P-TULUM"]
    assert [poi["id"] for poi in api_client.get(url, params={"dayDate": SATURDAY}).json()] == ["P-CHICHEN"]
    assert api_client.get(url, params={"dayDate": SUNDAY}).json() == []


def test_tour_destinations_reject_bad_dates(api_client: TestClient) -> None:
    response = api_client.get("/tours/destinations/by-rate/R-Premium", params={"dayDate": "19/10/2026"})
    assert response.status_code == 400


def test_tour_vehicles_apply_capacity_and_day(api_client: TestClient) -> None:
    url = "/tours/vehicles/by-rate-destination/R-Premium/P-TULUM"
    options = api_client.get(url, params={"numberOfPeople": 0, "dayDate": MONDAY}).json()
    assert [(o["tour"]["id"], o["vehicleType"]["code"], o["basePrice"]) for o in options] == [
        ("T1", "SED", 1800.0),
        ("T1", "VAN", 2600.0),
    ]
    assert options[0]["tour"]["duration"] == 480
    assert [entry["day"] for entry in options[0]["tour"]["availability"]] == [1, 3]

    big_group = api_client.get(url, params={"numberOfPeople": 8}).json()
    assert [o["vehicleType"]["code"] for o in big_group] == ["VAN"]

    assert api_client.get(url, params={"dayDate": TUESDAY}).json() == []


def test_experiences_filter_by_type_day_and_length(api_client: TestClient) -> None:
    all_experiences = api_client.get("/experiences", params={"type": "Experience"}).json()
    assert [e["name"] for e in all_experiences] == ["Snorkel", "Spa"]

    tuesday = api_client.get("/experiences", params={"type": "Experience", "dayDate": TUESDAY}).json()
    assert [e["id"] for e in tuesday] == ["E1"]

    providers = api_client.get("/experiences", params={"type": "Provider"}).json()
    assert [e["type"] for e in providers] == ["Provider"]

    limited = api_client.get("/experiences", params={"length": 1}).json()
    assert len(limited) == 1


def test_duplicate_active_route_is_rejected(api_client: TestClient) -> None:
    response = api_client.post("/services", json={"originPOI": "P-CUN", "destinationPOI": "P-HOTEL"})
    assert response.status_code == 409

    airport_return = api_client.post("/services", json={"destinationPOI": "P-HOTEL"})
    assert airport_return.status_code == 201
    assert airport_return.json()["originPOI"] is None

    second_return = api_client.post("/services", json={"destinationPOI": "P-HOTEL"})
    assert second_return.status_code == 409


def test_duplicate_base_price_key_is_rejected(api_client: TestClient) -> None:
    payload = {"serviceId": "S42", "rateId": "R-Premium", "vehicleTypeId": "V-Sedan", "price": 2100}
    response = api_client.post("/services/prices", json=payload)
    assert response.status_code == 409


def test_catalog_invariants_are_validated_on_create(api_client: TestClient) -> None:
    vehicle = api_client.post("/vehicle-types", json={"code": "BUS", "name": "Bus", "defaultCapacity": 0})
    assert vehicle.status_code == 422

    tour = api_client.post("/tours", json={"destinationPOI": "P-TULUM", "duration": 0})
    assert tour.status_code == 422

    bad_schedule = api_client.post(
        "/tours",
        json={
            "destinationPOI": "P-TULUM",
            "duration": 120,
            "availability": [{"day": 2, "startTime": "18:00", "endTime": "09:00"}],
        },
    )
    assert bad_schedule.status_code == 400
    assert "startTime must be before endTime" in bad_schedule.json()["detail"]


def test_tour_status_toggle_hides_inactive_tours(api_client: TestClient) -> None:
    response = api_client.patch("/tours/T2/status", json={"active": False})
    assert response.status_code == 200
    assert response.json()["active"] is False

    destinations = api_client.get("/tours/destinations/by-rate/R-Premium").json()
    assert [poi["id"] for poi in destinations] == ["P-TULUM"]

    not_boolean = api_client.patch("/tours/T2/status", json={"active": "yes"})
    assert not_boolean.status_code == 422


def test_delete_tombstones_instead_of_removing(api_client: TestClient, staff_headers: dict[str, str]) -> None:
    response = api_client.delete("/services/S77", headers=staff_headers)
    assert response.status_code == 200
    assert api_client.get("/services/S77").status_code == 404

    with TestingSessionLocal() as session:
        service = session.scalar(select(models.Service).where(models.Service.id == "S77"))
        assert service is not None
        assert service.exists is False
        assert service.active is False
        assert service.deleted_by == "staff@quotedesk.example"
        assert service.deleted_at is not None


def test_delete_requires_a_known_staff_member(api_client: TestClient) -> None:
    response = api_client.delete("/tours/T1", headers={"X-User-Email": "stranger@example.com"})
    assert response.status_code == 403
    assert response.json()["code"] == "permission_denied"
    assert api_client.get("/tours/T1").status_code == 200
