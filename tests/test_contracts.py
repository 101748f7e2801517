# Contract API and service tests: creation scenarios, occupancy under races, atomicity,
# termination/renewal, deletion behavior, scoping and PDFs.
from __future__ import annotations

import threading

import pytest
from fastapi.testclient import TestClient

from nhatro import errors, models, occupancy, schemas
from nhatro.db import SessionLocal
from nhatro.services import contracts as contract_service

from factories import auth, make_contract, make_motel, make_room, make_user


def contract_body(room_id: int, **overrides) -> dict:
    body = {
        "roomId": room_id,
        "startDate": "2025-01-01",
        "rentPrice": 3000000,
        "depositAmount": 6000000,
        "tenants": [{"fullName": "Nguyen Van A", "isPrimary": True}],
    }
    body.update(overrides)
    return body


def contract_count(db, room_id: int) -> int:
    return db.query(models.Contract).filter(models.Contract.room_id == room_id).count()


@pytest.fixture()
def setup(db):
    landlord = make_user(db, "LANDLORD")
    motel = make_motel(db, landlord)
    room = make_room(db, motel)
    return landlord, motel, room


def test_successful_booking(client: TestClient, db, setup):
    landlord, _, room = setup
    r = client.post("/api/contracts", headers=auth(landlord), json=contract_body(room.id))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Tạo hợp đồng thành công"
    data = body["data"]
    assert data["status"] == "ACTIVE"
    assert data["contractNumber"].startswith("HD-")
    assert data["room"]["id"] == room.id
    assert data["tenants"][0]["fullName"] == "Nguyen Van A"
    assert data["tenants"][0]["isPrimary"] is True

    db.expire_all()
    assert db.get(models.Room, room.id).status == "RENTED"


def test_occupied_room_rejected(client: TestClient, db, setup):
    landlord, _, room = setup
    r1 = client.post("/api/contracts", headers=auth(landlord), json=contract_body(room.id))
    assert r1.status_code == 201, r1.text

    r2 = client.post("/api/contracts", headers=auth(landlord), json=contract_body(room.id))
    assert r2.status_code == 400
    assert r2.json()["error"]["code"] == "ROOM_OCCUPIED"

    db.expire_all()
    assert contract_count(db, room.id) == 1
    assert db.get(models.Room, room.id).status == "RENTED"


def test_room_not_found(client: TestClient, db, setup):
    landlord, _, _ = setup
    r = client.post("/api/contracts", headers=auth(landlord), json=contract_body(9999))
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"


def test_unknown_tenant_account(client: TestClient, db, setup):
    landlord, _, room = setup
    r = client.post("/api/contracts", headers=auth(landlord), json=contract_body(room.id, tenantId=9999))
    assert r.status_code == 404

    db.expire_all()
    assert db.get(models.Room, room.id).status == "AVAILABLE"


def test_other_landlord_forbidden(client: TestClient, db, setup):
    _, _, room = setup
    stranger = make_user(db, "LANDLORD")
    r = client.post("/api/contracts", headers=auth(stranger), json=contract_body(room.id))
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "FORBIDDEN"

    db.expire_all()
    assert contract_count(db, room.id) == 0


def test_staff_may_create(client: TestClient, db, setup):
    _, _, room = setup
    staff = make_user(db, "STAFF")
    r = client.post("/api/contracts", headers=auth(staff), json=contract_body(room.id))
    assert r.status_code == 201, r.text


def test_owner_without_landlord_role_cannot_create(client: TestClient, db):
    owner = make_user(db, "TENANT")
    room = make_room(db, make_motel(db, owner))
    r = client.post("/api/contracts", headers=auth(owner), json=contract_body(room.id))
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "FORBIDDEN"

    db.expire_all()
    assert contract_count(db, room.id) == 0


def test_owner_without_landlord_role_cannot_terminate(client: TestClient, db):
    owner = make_user(db, "USER")
    room = make_room(db, make_motel(db, owner))
    contract = make_contract(db, room)

    r = client.put(f"/api/contracts/{contract.id}", headers=auth(owner), json={"action": "terminate"})
    assert r.status_code == 403

    db.expire_all()
    assert db.get(models.Contract, contract.id).status == "ACTIVE"
    assert db.get(models.Room, room.id).status == "RENTED"


@pytest.mark.parametrize(
    "overrides",
    [
        {"endDate": "2024-12-31"},
        {"rentPrice": 0},
        {"paymentDueDay": 31},
        {"tenants": [{"fullName": "A Nguyen", "isPrimary": True}, {"fullName": "B Tran", "isPrimary": True}]},
        {"startDate": "not-a-date"},
    ],
)
def test_invalid_input_is_validation_error(client: TestClient, db, setup, overrides):
    landlord, _, room = setup
    r = client.post("/api/contracts", headers=auth(landlord), json=contract_body(room.id, **overrides))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"

    db.expire_all()
    assert contract_count(db, room.id) == 0


def test_roster_failure_rolls_everything_back(client: TestClient, db, setup, monkeypatch):
    landlord, _, room = setup

    def boom(contract, roster):
        raise RuntimeError("roster insert failed")

    monkeypatch.setattr(contract_service, "_roster_rows", boom)
    r = client.post("/api/contracts", headers=auth(landlord), json=contract_body(room.id))
    assert r.status_code == 500
    assert r.json()["error"]["code"] == "INTERNAL_ERROR"

    db.expire_all()
    assert contract_count(db, room.id) == 0
    assert db.query(models.Tenant).count() == 0
    assert db.get(models.Room, room.id).status == "AVAILABLE"


def test_lost_race_reported_as_room_occupied(db, setup, monkeypatch):
    landlord, motel, room = setup
    # Another writer committed an ACTIVE contract between our check and our insert
    winner = make_contract(db, room)
    assert winner.status == "ACTIVE"

    calls = {"n": 0}
    real_check = occupancy.has_active_contract

    def stale_first_check(session, room_id, for_update=False):
        calls["n"] += 1
        if calls["n"] == 1:
            return False
        return real_check(session, room_id, for_update=for_update)

    monkeypatch.setattr(occupancy, "has_active_contract", stale_first_check)

    payload = schemas.ContractCreate.model_validate(contract_body(room.id))
    with pytest.raises(errors.RoomOccupied):
        contract_service.create_contract(db, payload, landlord)

    db.expire_all()
    assert contract_count(db, room.id) == 1
    assert db.get(models.Room, room.id).status == "RENTED"


def test_occupancy_rechecked_under_row_lock(db, setup, monkeypatch):
    landlord, _, room = setup
    # A contract committed while this request waited on the room row lock
    make_contract(db, room)

    checks: list = []
    real_check = occupancy.has_active_contract

    def recording_check(session, room_id, for_update=False):
        checks.append(for_update)
        return real_check(session, room_id, for_update=for_update)

    monkeypatch.setattr(occupancy, "has_active_contract", recording_check)
    # Take the row-locking path used by server databases
    monkeypatch.setattr(contract_service, "is_sqlite", lambda session: False)

    payload = schemas.ContractCreate.model_validate(contract_body(room.id))
    with pytest.raises(errors.RoomOccupied):
        contract_service.create_contract(db, payload, landlord)

    assert checks == [True]
    db.expire_all()
    assert contract_count(db, room.id) == 1


def test_concurrent_creations_single_winner(db, setup):
    landlord, _, room = setup
    landlord_id, room_id = landlord.id, room.id
    payload = schemas.ContractCreate.model_validate(contract_body(room_id))
    barrier = threading.Barrier(2)
    outcomes: list = []

    def attempt() -> None:
        session = SessionLocal()
        try:
            user = session.get(models.User, landlord_id)
            barrier.wait()
            contract_service.create_contract(session, payload, user)
            outcomes.append("created")
        except errors.RoomOccupied:
            outcomes.append("occupied")
        finally:
            session.close()

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["created", "occupied"]
    db.expire_all()
    active = (
        db.query(models.Contract)
        .filter(models.Contract.room_id == room_id, models.Contract.status == "ACTIVE")
        .count()
    )
    assert active == 1
    assert db.get(models.Room, room_id).status == "RENTED"


def test_contract_number_collision_is_retried(db, setup, monkeypatch):
    landlord, motel, room = setup
    other = make_room(db, motel)
    existing = make_contract(db, other)

    numbers = iter([existing.contract_number, "HD-20250101-ABCDEF"])
    monkeypatch.setattr(contract_service, "generate_contract_number", lambda: next(numbers))

    payload = schemas.ContractCreate.model_validate(contract_body(room.id))
    contract = contract_service.create_contract(db, payload, landlord)
    assert contract.contract_number == "HD-20250101-ABCDEF"
    assert contract.status == "ACTIVE"


def test_terminate_returns_room_to_available(client: TestClient, db, setup):
    landlord, _, room = setup
    contract = make_contract(db, room)

    r = client.put(
        f"/api/contracts/{contract.id}",
        headers=auth(landlord),
        json={"action": "terminate", "terminationReason": "Khách chuyển đi"},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["message"] == "Thanh lý hợp đồng thành công"
    assert body["data"]["status"] == "TERMINATED"
    assert "Khách chuyển đi" in body["data"]["notes"]

    db.expire_all()
    assert db.get(models.Room, room.id).status == "AVAILABLE"

    # The room can be let again
    r = client.post("/api/contracts", headers=auth(landlord), json=contract_body(room.id))
    assert r.status_code == 201, r.text


def test_terminate_twice_rejected(client: TestClient, db, setup):
    landlord, _, room = setup
    contract = make_contract(db, room, status="TERMINATED")
    r = client.put(f"/api/contracts/{contract.id}", headers=auth(landlord), json={"action": "terminate"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


def test_renew_extends_end_date(client: TestClient, db, setup):
    landlord, _, room = setup
    contract = make_contract(db, room)
    r = client.put(
        f"/api/contracts/{contract.id}",
        headers=auth(landlord),
        json={"action": "renew", "newEndDate": "2026-12-31", "newRentPrice": 3200000},
    )
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["endDate"] == "2026-12-31"
    assert data["rentPrice"] == 3200000
    assert data["status"] == "ACTIVE"


def test_tenant_cannot_update(client: TestClient, db, setup):
    _, _, room = setup
    tenant = make_user(db, "TENANT")
    contract = make_contract(db, room, tenant=tenant)
    r = client.put(f"/api/contracts/{contract.id}", headers=auth(tenant), json={"action": "terminate"})
    assert r.status_code == 403

    db.expire_all()
    assert db.get(models.Contract, contract.id).status == "ACTIVE"


def test_delete_leaves_room_rented(client: TestClient, db, setup):
    landlord, _, room = setup
    contract_id = make_contract(db, room).id

    r = client.delete(f"/api/contracts/{contract_id}", headers=auth(landlord))
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Xóa hợp đồng thành công"

    db.expire_all()
    assert db.get(models.Contract, contract_id) is None
    # Deletion does not restore the room; it stays RENTED without an active contract
    stale = db.get(models.Room, room.id)
    assert stale.status == "RENTED"
    assert not occupancy.is_consistent(db, stale)


def test_get_contract_visibility(client: TestClient, db, setup):
    landlord, _, room = setup
    tenant = make_user(db, "TENANT")
    stranger = make_user(db, "TENANT")
    contract = make_contract(db, room, tenant=tenant)

    assert client.get(f"/api/contracts/{contract.id}", headers=auth(landlord)).status_code == 200
    assert client.get(f"/api/contracts/{contract.id}", headers=auth(tenant)).status_code == 200
    assert client.get(f"/api/contracts/{contract.id}", headers=auth(stranger)).status_code == 403
    assert client.get("/api/contracts/9999", headers=auth(landlord)).status_code == 404


def test_list_is_role_scoped(client: TestClient, db, setup):
    landlord, motel, room = setup
    tenant = make_user(db, "TENANT")
    other_landlord = make_user(db, "LANDLORD")
    other_room = make_room(db, make_motel(db, other_landlord))
    make_contract(db, room, tenant=tenant)
    make_contract(db, other_room)

    r = client.get("/api/contracts", headers=auth(landlord))
    assert r.status_code == 200
    body = r.json()
    assert [c["roomId"] for c in body["data"]] == [room.id]
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 1, "totalPages": 1}

    r = client.get("/api/contracts", headers=auth(tenant))
    assert [c["roomId"] for c in r.json()["data"]] == [room.id]

    admin = make_user(db, "ADMIN")
    r = client.get("/api/contracts", headers=auth(admin))
    assert r.json()["pagination"]["total"] == 2

    r = client.get("/api/contracts", headers=auth(admin), params={"motelId": motel.id})
    assert r.json()["pagination"]["total"] == 1

    r = client.get("/api/contracts", headers=auth(admin), params={"status": "TERMINATED"})
    assert r.json()["data"] == []


def test_list_pagination(client: TestClient, db, setup):
    landlord, motel, _ = setup
    for _ in range(3):
        make_contract(db, make_room(db, motel))

    r = client.get("/api/contracts", headers=auth(landlord), params={"page": 2, "limit": 2})
    body = r.json()
    assert len(body["data"]) == 1
    assert body["pagination"]["totalPages"] == 2

    r = client.get("/api/contracts", headers=auth(landlord), params={"limit": 500})
    assert r.status_code == 400


def test_contract_pdf(client: TestClient, db, setup):
    landlord, _, room = setup
    r = client.post("/api/contracts", headers=auth(landlord), json=contract_body(room.id))
    contract_id = r.json()["data"]["id"]

    r = client.get(f"/api/contracts/{contract_id}/pdf", headers=auth(landlord))
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content.startswith(b"%PDF")
