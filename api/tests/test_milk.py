"""Tests for milk production and sales endpoints."""
from dairyfarm.constants import Collections
from dairyfarm.services import derived_stats

from .utils import create_cow, fetch, find


def _record(client, headers, cow_id, quantity, date, session="morning"):
    return client.post(
        "/milk",
        json={"cowId": cow_id, "quantity": quantity, "session": session, "date": date},
        headers=headers,
    )


def test_farmer_records_milk_with_snapshot(client, admin_headers, farmer_headers):
    cow = create_cow(client, admin_headers, "Daisy", earTagNumber="KE-001")
    response = _record(client, farmer_headers, cow["id"], 10, "2024-01-01")
    assert response.status_code == 201
    record = response.json()["data"]["milkRecord"]
    assert record["cowName"] == "Daisy"
    assert record["earTagNumber"] == "KE-001"
    assert record["farmLocation"] == "nakuru"
    assert record["date"] == "2024-01-01"


def test_duplicate_session_conflicts(client, admin_headers, farmer_headers, test_db):
    cow = create_cow(client, admin_headers, "Daisy")
    assert _record(client, farmer_headers, cow["id"], 10, "2024-01-01").status_code == 201
    dup = _record(client, farmer_headers, cow["id"], 11, "2024-01-01")
    assert dup.status_code == 409
    assert len(find(test_db, Collections.MILK_RECORDS)) == 1

    # Another session on the same day is fine
    assert _record(client, farmer_headers, cow["id"], 9, "2024-01-01", "evening").status_code == 201


def test_invalid_session_rejected(client, admin_headers, farmer_headers):
    cow = create_cow(client, admin_headers, "Daisy")
    response = _record(client, farmer_headers, cow["id"], 10, "2024-01-01", "midnight")
    assert response.status_code == 400


def test_farmer_cannot_record_for_other_farm(client, admin_headers, farmer_headers):
    bella = create_cow(client, admin_headers, "Bella", "kisii")
    assert _record(client, farmer_headers, bella["id"], 10, "2024-01-01").status_code == 403


def test_cow_totals_follow_writes(client, admin_headers, farmer_headers, test_db):
    cow = create_cow(client, admin_headers, "Daisy")
    _record(client, farmer_headers, cow["id"], 10, "2024-01-01")
    _record(client, farmer_headers, cow["id"], 5, "2024-01-01", "evening")
    _record(client, farmer_headers, cow["id"], 12, "2024-01-02")

    stored = fetch(test_db, Collections.COWS, cow["id"])
    assert stored["totalMilkProduced"] == 27
    assert stored["averageDailyMilk"] == 13.5
    assert stored["lastMilkingDate"] == "2024-01-02"

    record = find(test_db, Collections.MILK_RECORDS, {"date": "2024-01-02"})[0]
    assert client.delete(f"/milk/{record['id']}", headers=admin_headers).status_code == 200
    stored = fetch(test_db, Collections.COWS, cow["id"])
    assert stored["totalMilkProduced"] == 15
    assert stored["averageDailyMilk"] == 15
    assert stored["lastMilkingDate"] == "2024-01-01"


def test_update_rechecks_duplicates(client, admin_headers, farmer_headers):
    cow = create_cow(client, admin_headers, "Daisy")
    _record(client, farmer_headers, cow["id"], 10, "2024-01-01")
    evening = _record(client, farmer_headers, cow["id"], 8, "2024-01-01", "evening").json()["data"]["milkRecord"]

    clash = client.put(f"/milk/{evening['id']}", json={"session": "morning"}, headers=farmer_headers)
    assert clash.status_code == 409

    ok = client.put(f"/milk/{evening['id']}", json={"quantity": 9.5}, headers=farmer_headers)
    assert ok.status_code == 200
    assert ok.json()["data"]["milkRecord"]["quantity"] == 9.5


def test_farmer_cannot_delete(client, admin_headers, farmer_headers):
    cow = create_cow(client, admin_headers, "Daisy")
    record = _record(client, farmer_headers, cow["id"], 10, "2024-01-01").json()["data"]["milkRecord"]
    assert client.delete(f"/milk/{record['id']}", headers=farmer_headers).status_code == 403


def test_list_by_date_and_farm_scope(client, admin_headers, farmer_headers):
    daisy = create_cow(client, admin_headers, "Daisy")
    bella = create_cow(client, admin_headers, "Bella", "kisii")
    _record(client, farmer_headers, daisy["id"], 10, "2024-01-01")
    _record(client, farmer_headers, daisy["id"], 11, "2024-01-02")
    _record(client, admin_headers, bella["id"], 7, "2024-01-01")

    by_day = client.get("/milk", params={"date": "2024-01-01", "farm": "kisii"}, headers=farmer_headers)
    records = by_day.json()["data"]["milkRecords"]
    assert [r["cowName"] for r in records] == ["Daisy"]

    paged = client.get("/milk", headers=admin_headers).json()["data"]
    assert paged["pagination"]["totalItems"] == 3
    assert paged["milkRecords"][0]["date"] == "2024-01-02"


def test_production_stats_example(client, admin_headers, farmer_headers):
    cow = create_cow(client, admin_headers, "C1")
    for day, quantity in (("2024-01-01", 10), ("2024-01-02", 12), ("2024-01-03", 11)):
        _record(client, farmer_headers, cow["id"], quantity, day)

    response = client.get(
        "/milk/stats/production",
        params={"startDate": "2024-01-01", "endDate": "2024-01-03"},
        headers=farmer_headers,
    )
    assert response.status_code == 200
    stats = response.json()["data"]["stats"]
    assert stats["totalQuantity"] == 33
    assert stats["totalRecords"] == 3
    assert stats["sessionBreakdown"] == {"morning": 33, "afternoon": 0, "evening": 0}
    assert stats["periodSummary"] == {
        "averageDaily": 11.0,
        "maxDaily": 12,
        "minDaily": 10,
        "totalDays": 3,
    }


def test_cow_history(client, admin_headers, farmer_headers):
    cow = create_cow(client, admin_headers, "Daisy")
    _record(client, farmer_headers, cow["id"], 10, "2024-01-01")
    _record(client, farmer_headers, cow["id"], 14, "2024-02-01")

    response = client.get(
        f"/milk/cow/{cow['id']}", params={"startDate": "2024-01-15"}, headers=farmer_headers
    )
    data = response.json()["data"]
    assert [r["date"] for r in data["milkRecords"]] == ["2024-02-01"]
    assert data["stats"]["totalQuantity"] == 14


def test_sales_are_admin_only(client, admin_headers, farmer_headers):
    sale = {"farmLocation": "nakuru", "quantity": 100, "pricePerLitre": 45.5, "date": "2024-01-05"}
    assert client.post("/milk/sales", json=sale, headers=farmer_headers).status_code == 403

    response = client.post("/milk/sales", json=sale, headers=admin_headers)
    assert response.status_code == 201
    recorded = response.json()["data"]["sale"]
    assert recorded["totalAmount"] == 4550
    assert recorded["type"] == "sale"

    listing = client.get("/milk/sales/records", params={"farm": "nakuru"}, headers=admin_headers)
    summary = listing.json()["data"]["summary"]
    assert summary == {"totalQuantity": 100, "totalAmount": 4550, "totalTransactions": 1}


def test_update_cannot_clear_required_fields(client, admin_headers, farmer_headers, test_db):
    cow = create_cow(client, admin_headers, "Daisy")
    record = _record(client, farmer_headers, cow["id"], 10, "2024-01-01").json()["data"]["milkRecord"]

    response = client.put(
        f"/milk/{record['id']}", json={"date": None, "quantity": None}, headers=farmer_headers
    )
    assert response.status_code == 400
    assert response.json()["success"] is False
    stored = fetch(test_db, Collections.MILK_RECORDS, record["id"])
    assert stored["date"] == "2024-01-01"
    assert stored["quantity"] == 10
    assert fetch(test_db, Collections.COWS, cow["id"])["totalMilkProduced"] == 10

    # Optional fields can still be cleared
    cleared = client.put(f"/milk/{record['id']}", json={"notes": None}, headers=farmer_headers)
    assert cleared.status_code == 200


def test_record_kept_when_cow_totals_fail(client, admin_headers, farmer_headers, test_db, monkeypatch):
    cow = create_cow(client, admin_headers, "Daisy")

    def broken(*args, **kwargs):
        raise RuntimeError("totals unavailable")

    monkeypatch.setattr(derived_stats, "total", broken)
    response = _record(client, farmer_headers, cow["id"], 10, "2024-01-01")
    assert response.status_code == 201
    assert len(find(test_db, Collections.MILK_RECORDS, {"cowId": cow["id"]})) == 1
    assert fetch(test_db, Collections.COWS, cow["id"])["totalMilkProduced"] == 0
