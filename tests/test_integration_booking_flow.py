"""
End-to-end booking flow over HTTP: customer books, hoster approves,
customer pays and cancels; plus rating and extension.
"""

import pytest

BOOKING = {
    "car_id": "car-1",
    "start_date": "2025-08-25",
    "end_date": "2025-08-28",
    "start_time": "10:00",
    "end_time": "10:00",
    "pickup_location": "Downtown",
}


@pytest.fixture
def customer(login):
    return login("customer", "customer")


@pytest.fixture
def hoster(login):
    return login("hoster", "hoster")


@pytest.fixture
def admin(login):
    return login("admin", "admin")


def _create(client, headers, **overrides):
    return client.post("/api/bookings", headers=headers, json={**BOOKING, **overrides})


def _availability(client, headers, car_id="car-1"):
    return client.get(f"/api/cars/{car_id}/availability", headers=headers).get_json()["available"]


def test_book_approve_pay_cancel(client, customer, hoster):
    r = _create(client, customer)
    assert r.status_code == 201, r.get_json()
    booking = r.get_json()
    assert booking["total_amount"] == 288.15
    assert booking["customer_id"] == "customer"
    assert booking["start_time"] == "10:00"
    bid = booking["booking_id"]

    r = _create(client, customer, start_date="2025-08-26")
    assert r.status_code == 409
    assert r.get_json()["type"] == "CONFLICT"

    r = client.post(f"/api/bookings/{bid}/status", headers=hoster, json={"status": "approved"})
    assert r.status_code == 200
    assert r.get_json()["status"] == "approved"
    assert _availability(client, customer) is False

    r = client.post(f"/api/bookings/{bid}/pay", headers=customer, json={"method": "card"})
    assert r.status_code == 200
    assert r.get_json()["payment_status"] == "paid"

    r = client.post(f"/api/bookings/{bid}/cancel", headers=customer, json={"reason": "plans changed"})
    assert r.status_code == 200
    body = r.get_json()
    assert body["refund_percentage"] == 100
    assert body["refund_amount"] == 288.15
    assert body["booking"]["status"] == "cancelled"
    assert _availability(client, customer) is True


def test_validation_errors_carry_fields(client, customer):
    r = _create(client, customer, pickup_location="", end_date="")
    assert r.status_code == 400
    body = r.get_json()
    assert body["type"] == "VALIDATION_ERROR"
    assert set(body["fields"]) == {"pickup_location", "end_date"}


def test_customer_cannot_change_status(client, customer):
    bid = _create(client, customer).get_json()["booking_id"]
    r = client.post(f"/api/bookings/{bid}/status", headers=customer, json={"status": "approved"})
    assert r.status_code == 403


def test_other_hoster_cannot_manage_booking(client, customer, login):
    bid = _create(client, customer).get_json()["booking_id"]
    other = login("hoster", "other-hoster")
    assert client.get(f"/api/bookings/{bid}", headers=other).status_code == 403
    r = client.post(f"/api/bookings/{bid}/status", headers=other, json={"status": "approved"})
    assert r.status_code == 403


def test_illegal_transition_is_conflict(client, customer, hoster):
    bid = _create(client, customer).get_json()["booking_id"]
    r = client.post(f"/api/bookings/{bid}/status", headers=hoster, json={"status": "completed"})
    assert r.status_code == 409
    assert r.get_json()["type"] == "ILLEGAL_TRANSITION"


def test_listing_is_scoped_by_role(client, customer, hoster, admin, login):
    _create(client, customer)
    other = login("customer", "customer2")
    _create(client, other, car_id="car-2")

    assert len(client.get("/api/bookings", headers=customer).get_json()) == 1
    assert len(client.get("/api/bookings", headers=hoster).get_json()) == 2
    assert len(client.get("/api/bookings", headers=admin).get_json()) == 2
    assert len(client.get("/api/bookings?status=approved", headers=admin).get_json()) == 0


def test_unknown_booking_is_404(client, customer):
    r = client.get("/api/bookings/nope", headers=customer)
    assert r.status_code == 404
    assert r.get_json()["type"] == "BOOKING_NOT_FOUND"


def test_declined_payment_is_402(client, customer, processor):
    processor.charge_ok = False
    bid = _create(client, customer).get_json()["booking_id"]
    r = client.post(f"/api/bookings/{bid}/pay", headers=customer, json={"method": "card"})
    assert r.status_code == 402
    assert r.get_json()["payment_status"] == "failed"


def test_complete_then_rate(client, customer, hoster):
    bid = _create(client, customer).get_json()["booking_id"]
    r = client.post(f"/api/bookings/{bid}/rate", headers=customer, json={"rating": 5})
    assert r.status_code == 400

    for status in ("approved", "active", "completed"):
        r = client.post(f"/api/bookings/{bid}/status", headers=hoster, json={"status": status})
        assert r.status_code == 200, r.get_json()

    r = client.post(f"/api/bookings/{bid}/rate", headers=customer, json={"rating": 5, "review": "Great"})
    assert r.status_code == 200
    assert r.get_json()["car_rating"] == 5.0
    assert r.get_json()["review_count"] == 1

    r = client.post(f"/api/bookings/{bid}/rate", headers=hoster, json={"rating": 1})
    assert r.status_code == 403


def test_extend_over_http(client, customer):
    bid = _create(client, customer).get_json()["booking_id"]
    r = client.post(f"/api/bookings/{bid}/extend", headers=customer,
                    json={"new_end_date": "2025-08-30", "new_end_time": "10:00"})
    assert r.status_code == 200
    body = r.get_json()
    assert body["additional_days"] == 2
    assert body["new_total"] == 458.15


def test_stats_and_revenue_for_admin(client, customer, admin):
    bid = _create(client, customer).get_json()["booking_id"]
    client.post(f"/api/bookings/{bid}/pay", headers=customer, json={"method": "card"})

    stats = client.get("/api/bookings/stats", headers=admin).get_json()
    assert stats["total"] == 1
    assert stats["total_revenue"] == 288.15

    r = client.get("/api/bookings/revenue?period=week", headers=admin)
    assert r.get_json() == {"period": "week", "revenue": 288.15}
    assert client.get("/api/bookings/revenue?period=eon", headers=admin).status_code == 400


def test_time_slots_endpoint(client, customer):
    _create(client, customer, start_time="10:00", end_time="12:00")
    r = client.get("/api/cars/car-1/slots?date=2025-08-25", headers=customer)
    assert r.get_json()["slots"] == ["08:00", "09:00"]
    assert client.get("/api/cars/car-1/slots", headers=customer).status_code == 400


def test_car_listing_reflects_index(client, customer, hoster):
    bid = _create(client, customer).get_json()["booking_id"]
    client.post(f"/api/bookings/{bid}/status", headers=hoster, json={"status": "approved"})
    cars = {c["car_id"]: c for c in client.get("/api/cars", headers=customer).get_json()}
    assert cars["car-1"]["available"] is False
    assert cars["car-2"]["available"] is True


@pytest.mark.parametrize("rating", [3.7, True, "4.5", None])
def test_rate_rejects_non_integer_ratings(client, customer, hoster, rating):
    bid = _create(client, customer).get_json()["booking_id"]
    for status in ("approved", "active", "completed"):
        client.post(f"/api/bookings/{bid}/status", headers=hoster, json={"status": status})

    r = client.post(f"/api/bookings/{bid}/rate", headers=customer, json={"rating": rating})
    assert r.status_code == 400
    assert r.get_json()["type"] == "VALIDATION_ERROR"
    assert client.get(f"/api/bookings/{bid}", headers=customer).get_json()["rating"] is None


def test_rate_accepts_form_digit(client, customer, hoster):
    bid = _create(client, customer).get_json()["booking_id"]
    for status in ("approved", "active", "completed"):
        client.post(f"/api/bookings/{bid}/status", headers=hoster, json={"status": status})

    r = client.post(f"/api/bookings/{bid}/rate", headers=customer, data={"rating": "4"})
    assert r.status_code == 200
    assert r.get_json()["car_rating"] == 4.0
