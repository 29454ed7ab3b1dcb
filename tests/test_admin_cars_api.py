import pytest

from config import Config


@pytest.fixture
def admin_client(client, monkeypatch):
    monkeypatch.setattr(Config, "ADMIN_USERNAME", "admin")
    monkeypatch.setattr(Config, "ADMIN_PASSWORD", "s3cret")
    response = client.post("/admin/login", json={"username": "admin", "password": "s3cret"})
    assert response.status_code == 200
    return client


def test_admin_routes_require_login(client, car):
    assert client.get("/admin/cars").status_code == 401
    assert client.delete(f"/admin/cars/{car['id']}").status_code == 401


def test_wrong_password_is_rejected(client, monkeypatch):
    monkeypatch.setattr(Config, "ADMIN_USERNAME", "admin")
    monkeypatch.setattr(Config, "ADMIN_PASSWORD", "s3cret")

    response = client.post("/admin/login", json={"username": "admin", "password": "guess"})

    assert response.status_code == 401
    assert client.get("/admin/status").status_code == 401


def test_admin_status_and_logout(admin_client):
    status = admin_client.get("/admin/status").get_json()
    assert status["logged_in"] is True
    assert status["admin"] == "admin"

    assert admin_client.post("/admin/logout").status_code == 200
    assert admin_client.get("/admin/cars").status_code == 401


def test_admin_lists_every_car(admin_client, car, fake_supabase):
    fake_supabase.tables["cars"].append({"id": "car-2", "make": "Ferrari", "model": "Roma", "available": False})

    payload = admin_client.get("/admin/cars").get_json()

    assert {c["id"] for c in payload["cars"]} == {car["id"], "car-2"}
    assert payload["statistics"] == {"total": 2, "available": 1, "unavailable": 1}


def test_admin_creates_car(admin_client, fake_supabase):
    response = admin_client.post("/admin/cars", json={
        "make": "McLaren",
        "model": "720S",
        "price_per_day": 1500,
        "location": "Miami",
        "horsepower": 710,
    })

    assert response.status_code == 201
    car = response.get_json()["car"]
    assert car["available"] is True
    assert car["image_urls"] == []
    assert car["price_per_hour"] is None
    assert len(fake_supabase.tables["cars"]) == 1


def test_admin_create_rejects_invalid_car(admin_client, fake_supabase):
    response = admin_client.post("/admin/cars", json={"make": "McLaren", "price_per_day": 1500})

    assert response.status_code == 400
    assert fake_supabase.tables["cars"] == []


def test_admin_updates_car(admin_client, car, fake_supabase):
    response = admin_client.put(f"/admin/cars/{car['id']}", json={"price_per_day": 1400, "available": False})

    assert response.status_code == 200
    stored = fake_supabase.tables["cars"][0]
    assert stored["price_per_day"] == 1400.0
    assert stored["available"] is False
    assert stored["model"] == "Huracan"


def test_admin_update_unknown_car(admin_client):
    response = admin_client.put("/admin/cars/0b6f7f49-9e5c-4d55-8a8f-4d6cbbd2b1de", json={"price_per_day": 10})

    assert response.status_code == 404


def test_deleted_car_leaves_listings_but_keeps_bookings(admin_client, client, car, fake_supabase):
    fake_supabase.tables["bookings"].append({"id": "booking-1", "car_id": car["id"], "status": "pending"})

    response = admin_client.delete(f"/admin/cars/{car['id']}")

    assert response.status_code == 200
    assert response.get_json()["deleted_car"]["id"] == car["id"]
    assert admin_client.get("/admin/cars").get_json()["cars"] == []
    assert client.get("/cars").get_json()["cars"] == []
    assert fake_supabase.tables["bookings"] == [{"id": "booking-1", "car_id": car["id"], "status": "pending"}]


def test_delete_rejects_bad_and_unknown_ids(admin_client):
    assert admin_client.delete("/admin/cars/not-a-uuid").status_code == 400
    assert admin_client.delete("/admin/cars/0b6f7f49-9e5c-4d55-8a8f-4d6cbbd2b1de").status_code == 404


def test_public_listing_hides_unavailable_cars(client, car, fake_supabase):
    fake_supabase.tables["cars"].append({"id": "car-2", "make": "Ferrari", "model": "Roma", "available": False, "location": "Miami"})

    payload = client.get("/cars").get_json()
    by_location = client.get("/cars?location=Dallas").get_json()

    assert [c["id"] for c in payload["cars"]] == [car["id"]]
    assert by_location["total"] == 0


def test_public_car_detail_and_quote(client, car):
    assert client.get(f"/cars/{car['id']}").get_json()["model"] == "Huracan"

    rental = client.get(f"/cars/{car['id']}/quote?start_date=2026-11-01&end_date=2026-11-04").get_json()
    shoot = client.get(f"/cars/{car['id']}/quote?booking_type=photoshoot&start_date=2026-11-01&hours=3").get_json()

    assert rental["total_price"] == 3600.0
    assert rental["deposit_amount"] == 1500
    assert shoot["total_price"] == 900.0
    assert shoot["deposit_amount"] == 500


def test_quote_rejects_bad_input(client, car):
    assert client.get(f"/cars/{car['id']}/quote?start_date=soon").status_code == 400
    assert client.get(f"/cars/{car['id']}/quote?booking_type=photoshoot&start_date=2026-11-01").status_code == 400
