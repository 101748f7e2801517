# Motel/room administration tests, including manual status changes under the occupancy rule.
from __future__ import annotations

from fastapi.testclient import TestClient

from nhatro import models

from factories import auth, make_contract, make_maintenance, make_motel, make_room, make_user


def test_landlord_creates_motel_and_room(client: TestClient, db):
    landlord = make_user(db, "LANDLORD")
    r = client.post(
        "/api/motels",
        headers=auth(landlord),
        json={"name": "Nhà trọ Hoa Mai", "address": "45 Lê Lợi, Quận 1"},
    )
    assert r.status_code == 201, r.text
    motel = r.json()["data"]
    assert motel["ownerId"] == landlord.id

    r = client.post(
        f"/api/motels/{motel['id']}/rooms",
        headers=auth(landlord),
        json={"name": "P101", "floor": 1, "area": 18.5, "price": 2500000},
    )
    assert r.status_code == 201, r.text
    room = r.json()["data"]
    assert room["status"] == "AVAILABLE"
    assert room["roomType"] == "SINGLE"

    r = client.get(f"/api/motels/{motel['id']}/rooms")
    assert [x["id"] for x in r.json()["data"]] == [room["id"]]
    assert client.get(f"/api/rooms/{room['id']}").json()["data"]["name"] == "P101"


def test_tenant_cannot_create_motel(client: TestClient, db):
    tenant = make_user(db, "TENANT")
    r = client.post("/api/motels", headers=auth(tenant), json={"name": "Nhà trọ", "address": "1 Trần Hưng Đạo"})
    assert r.status_code == 403


def test_other_landlord_cannot_add_room(client: TestClient, db):
    owner = make_user(db, "LANDLORD")
    stranger = make_user(db, "LANDLORD")
    motel = make_motel(db, owner)
    r = client.post(f"/api/motels/{motel.id}/rooms", headers=auth(stranger), json={"name": "P202", "price": 2000000})
    assert r.status_code == 403


def test_list_motels_scoped_to_owner(client: TestClient, db):
    owner = make_user(db, "LANDLORD")
    other = make_user(db, "LANDLORD")
    mine = make_motel(db, owner)
    make_motel(db, other)

    r = client.get("/api/motels", headers=auth(owner))
    assert [m["id"] for m in r.json()["data"]] == [mine.id]

    admin = make_user(db, "ADMIN")
    assert len(client.get("/api/motels", headers=auth(admin)).json()["data"]) == 2


def test_rented_cannot_be_set_by_hand(client: TestClient, db):
    landlord = make_user(db, "LANDLORD")
    room = make_room(db, make_motel(db, landlord))
    r = client.put(f"/api/rooms/{room.id}/status", headers=auth(landlord), json={"status": "RENTED"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


def test_available_refused_while_contract_active(client: TestClient, db):
    landlord = make_user(db, "LANDLORD")
    room = make_room(db, make_motel(db, landlord))
    make_contract(db, room)

    for status in ("AVAILABLE", "MAINTENANCE"):
        r = client.put(f"/api/rooms/{room.id}/status", headers=auth(landlord), json={"status": status})
        assert r.status_code == 400
        assert r.json()["error"]["code"] == "ROOM_OCCUPIED"

    db.expire_all()
    assert db.get(models.Room, room.id).status == "RENTED"


def test_stale_rented_room_can_be_released(client: TestClient, db):
    landlord = make_user(db, "LANDLORD")
    room = make_room(db, make_motel(db, landlord), status="RENTED")

    r = client.put(f"/api/rooms/{room.id}/status", headers=auth(landlord), json={"status": "AVAILABLE"})
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "AVAILABLE"


def test_maintenance_requires_open_request(client: TestClient, db):
    landlord = make_user(db, "LANDLORD")
    room = make_room(db, make_motel(db, landlord))

    r = client.put(f"/api/rooms/{room.id}/status", headers=auth(landlord), json={"status": "MAINTENANCE"})
    assert r.status_code == 400

    make_maintenance(db, room, landlord)
    r = client.put(f"/api/rooms/{room.id}/status", headers=auth(landlord), json={"status": "MAINTENANCE"})
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "MAINTENANCE"


def test_status_change_requires_ownership(client: TestClient, db):
    landlord = make_user(db, "LANDLORD")
    stranger = make_user(db, "LANDLORD")
    room = make_room(db, make_motel(db, landlord), status="MAINTENANCE")
    r = client.put(f"/api/rooms/{room.id}/status", headers=auth(stranger), json={"status": "AVAILABLE"})
    assert r.status_code == 403

    staff = make_user(db, "STAFF")
    r = client.put(f"/api/rooms/{room.id}/status", headers=auth(staff), json={"status": "AVAILABLE"})
    assert r.status_code == 200


def test_occupancy_dashboard(client: TestClient, db):
    landlord = make_user(db, "LANDLORD")
    motel = make_motel(db, landlord, name="Nha tro Hoa Sen")
    make_contract(db, make_room(db, motel))
    make_room(db, motel)
    make_room(db, motel, status="MAINTENANCE")
    other = make_motel(db, make_user(db, "LANDLORD"))
    make_room(db, other)

    r = client.get("/api/dashboard/occupancy", headers=auth(landlord))
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["overall"] == {
        "totalMotels": 1,
        "totalRooms": 3,
        "occupiedRooms": 1,
        "availableRooms": 1,
        "maintenanceRooms": 1,
        "occupancyRate": 33,
    }
    assert [(m["motelId"], m["motelName"]) for m in data["byMotel"]] == [(motel.id, "Nha tro Hoa Sen")]

    # Someone else's motel yields an empty report
    r = client.get("/api/dashboard/occupancy", headers=auth(landlord), params={"motelId": other.id})
    assert r.json()["data"]["overall"]["totalMotels"] == 0
    assert r.json()["data"]["byMotel"] == []

    admin = make_user(db, "ADMIN")
    overall = client.get("/api/dashboard/occupancy", headers=auth(admin)).json()["data"]["overall"]
    assert overall["totalMotels"] == 2
    assert overall["totalRooms"] == 4
    assert overall["occupancyRate"] == 25


def test_occupancy_dashboard_for_managers_only(client: TestClient, db):
    tenant = make_user(db, "TENANT")
    assert client.get("/api/dashboard/occupancy", headers=auth(tenant)).status_code == 403
    assert client.get("/api/dashboard/occupancy").status_code == 401
