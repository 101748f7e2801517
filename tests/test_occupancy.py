# Room occupancy rule: active-contract and open-maintenance queries and the release cleanup.
from nhatro import occupancy

from factories import make_contract, make_maintenance, make_motel, make_room, make_user


def test_has_active_contract_ignores_terminated(db):
    landlord = make_user(db, "LANDLORD")
    room = make_room(db, make_motel(db, landlord))
    assert not occupancy.has_active_contract(db, room.id)

    make_contract(db, room, status="TERMINATED")
    assert not occupancy.has_active_contract(db, room.id)

    make_contract(db, room)
    assert occupancy.has_active_contract(db, room.id)


def test_has_open_maintenance_with_exclusion(db):
    landlord = make_user(db, "LANDLORD")
    room = make_room(db, make_motel(db, landlord), status="MAINTENANCE")
    m1 = make_maintenance(db, room, landlord)
    make_maintenance(db, room, landlord, status="RESOLVED")

    assert occupancy.has_open_maintenance(db, room.id)
    assert not occupancy.has_open_maintenance(db, room.id, exclude_request_id=m1.id)


def test_release_only_touches_maintenance_rooms(db):
    landlord = make_user(db, "LANDLORD")
    motel = make_motel(db, landlord)
    held = make_room(db, motel, status="MAINTENANCE")
    rented = make_room(db, motel)
    make_contract(db, rented)

    assert occupancy.release_room_after_maintenance(db, held.id)
    assert not occupancy.release_room_after_maintenance(db, rented.id)
    db.commit()

    db.refresh(held)
    db.refresh(rented)
    assert held.status == "AVAILABLE"
    assert rented.status == "RENTED"


def test_release_skipped_while_other_requests_open(db):
    landlord = make_user(db, "LANDLORD")
    room = make_room(db, make_motel(db, landlord), status="MAINTENANCE")
    m1 = make_maintenance(db, room, landlord)
    make_maintenance(db, room, landlord, status="IN_PROGRESS")

    assert not occupancy.release_room_after_maintenance(db, room.id, exclude_request_id=m1.id)
    db.refresh(room)
    assert room.status == "MAINTENANCE"


def test_is_consistent(db):
    landlord = make_user(db, "LANDLORD")
    motel = make_motel(db, landlord)
    orphan = make_room(db, motel, status="RENTED")
    assert not occupancy.is_consistent(db, orphan)

    rented = make_room(db, motel)
    make_contract(db, rented)
    assert occupancy.is_consistent(db, rented)

    held = make_room(db, motel, status="MAINTENANCE")
    assert not occupancy.is_consistent(db, held)
    make_maintenance(db, held, landlord)
    assert occupancy.is_consistent(db, held)
