"""Tests for cattle endpoints."""
from dairyfarm.constants import Collections

from .utils import create_cow, fetch


def test_admin_creates_cow_with_defaults(client, admin_headers):
    response = client.post(
        "/cows",
        json={"name": "Daisy", "breed": "Friesian", "dateOfBirth": "2020-03-15", "farmLocation": "nakuru"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    cow = response.json()["data"]["cow"]
    assert cow["currentStage"] == "active"
    assert cow["isActive"] is True
    assert cow["totalMilkProduced"] == 0
    assert cow["pregnancyStatus"]["isPregnant"] is False
    assert cow["healthStatus"]["currentCondition"] == "healthy"
    assert cow["age"] >= 4


def test_create_cow_requires_known_farm(client, admin_headers):
    response = client.post(
        "/cows",
        json={"name": "Lost", "breed": "Jersey", "dateOfBirth": "2021-01-01", "farmLocation": "atlantis"},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Valid farm location is required"


def test_create_cow_validates_payload(client, admin_headers):
    response = client.post("/cows", json={"name": "", "breed": "Jersey"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


def test_farmer_cannot_create_cow(client, farmer_headers):
    response = client.post(
        "/cows",
        json={"name": "Daisy", "breed": "Friesian", "dateOfBirth": "2020-03-15", "farmLocation": "nakuru"},
        headers=farmer_headers,
    )
    assert response.status_code == 403


def test_list_requires_token(client):
    assert client.get("/cows").status_code == 401


def test_farmer_list_is_pinned_to_assigned_farm(client, admin_headers, farmer_headers):
    create_cow(client, admin_headers, "Daisy", "nakuru")
    create_cow(client, admin_headers, "Bella", "kisii")

    # The farm parameter is ignored for farmers
    response = client.get("/cows", params={"farm": "kisii"}, headers=farmer_headers)
    assert response.status_code == 200
    cows = response.json()["data"]["cows"]
    assert [c["name"] for c in cows] == ["Daisy"]


def test_admin_list_honours_farm_filter(client, admin_headers):
    create_cow(client, admin_headers, "Daisy", "nakuru")
    create_cow(client, admin_headers, "Bella", "kisii")

    everything = client.get("/cows", headers=admin_headers).json()["data"]
    assert everything["pagination"]["totalItems"] == 2

    kisii = client.get("/cows", params={"farm": "kisii"}, headers=admin_headers).json()["data"]["cows"]
    assert [c["name"] for c in kisii] == ["Bella"]


def test_pagination(client, admin_headers):
    for i in range(3):
        create_cow(client, admin_headers, f"Cow {i}")
    page = client.get("/cows", params={"page": 2, "limit": 2}, headers=admin_headers).json()["data"]
    assert len(page["cows"]) == 1
    assert page["pagination"] == {
        "currentPage": 2,
        "totalPages": 2,
        "totalItems": 3,
        "hasNext": False,
        "hasPrev": True,
    }


def test_limit_is_capped(client, admin_headers):
    response = client.get("/cows", params={"limit": 500}, headers=admin_headers)
    assert response.status_code == 400


def test_farmer_cannot_read_other_farm_cow(client, admin_headers, farmer_headers):
    bella = create_cow(client, admin_headers, "Bella", "kisii")
    assert client.get(f"/cows/{bella['id']}", headers=farmer_headers).status_code == 403


def test_farm_listing_checks_assignment(client, admin_headers, farmer_headers):
    create_cow(client, admin_headers, "Daisy", "nakuru")
    assert client.get("/cows/farm/nakuru", headers=farmer_headers).status_code == 200
    assert client.get("/cows/farm/kisii", headers=farmer_headers).status_code == 403


def test_calves_are_derived_from_mother(client, admin_headers):
    mother = create_cow(client, admin_headers, "Mother")
    create_cow(client, admin_headers, "Calf", motherId=mother["id"], dateOfBirth="2024-02-01")

    detail = client.get(f"/cows/{mother['id']}", headers=admin_headers).json()["data"]["cow"]
    assert detail["totalCalves"] == 1
    assert detail["calves"][0]["name"] == "Calf"
    assert detail["totalMilkRecords"] == 0


def test_unknown_mother_rejected(client, admin_headers):
    response = client.post(
        "/cows",
        json={
            "name": "Orphan",
            "breed": "Jersey",
            "dateOfBirth": "2024-01-01",
            "farmLocation": "nakuru",
            "motherId": "missing",
        },
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Mother cow not found"


def test_update_and_soft_delete(client, admin_headers, test_db):
    cow = create_cow(client, admin_headers, "Daisy")
    updated = client.put(f"/cows/{cow['id']}", json={"currentStage": "lactating"}, headers=admin_headers)
    assert updated.status_code == 200
    assert updated.json()["data"]["cow"]["currentStage"] == "lactating"
    assert updated.json()["data"]["cow"]["name"] == "Daisy"

    assert client.delete(f"/cows/{cow['id']}", headers=admin_headers).status_code == 200
    stored = fetch(test_db, Collections.COWS, cow["id"])
    assert stored["isActive"] is False


def test_missing_cow(client, admin_headers):
    response = client.get("/cows/nope", headers=admin_headers)
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Cow not found"}


def test_pregnancy_update(client, admin_headers):
    cow = create_cow(client, admin_headers, "Daisy")
    response = client.put(
        f"/cows/{cow['id']}/pregnancy",
        json={"isPregnant": True, "dateOfAI": "2024-03-01", "expectedCalvingDate": "2024-12-08"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    status = response.json()["data"]["cow"]["pregnancyStatus"]
    assert status["isPregnant"] is True
    assert status["dateOfAI"] == "2024-03-01"
    assert status["actualCalvingDate"] is None


def test_update_validates_stage_and_required_fields(client, admin_headers, test_db):
    cow = create_cow(client, admin_headers, "Daisy")
    bad_stage = client.put(f"/cows/{cow['id']}", json={"currentStage": "retired"}, headers=admin_headers)
    assert bad_stage.status_code == 400
    no_name = client.put(f"/cows/{cow['id']}", json={"name": None}, headers=admin_headers)
    assert no_name.status_code == 400

    stored = fetch(test_db, Collections.COWS, cow["id"])
    assert stored["name"] == "Daisy"
    assert stored["currentStage"] == "active"
