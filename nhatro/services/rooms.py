# Motel and room administration, including manual room status changes that must
# respect the occupancy rule, and the per-motel occupancy report.
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import errors, models, occupancy, policy, schemas

logger = logging.getLogger("nhatro.rooms")

MSG_MOTEL_NOT_FOUND = "Không tìm thấy nhà trọ"
MSG_ROOM_NOT_FOUND = "Không tìm thấy phòng"


def create_motel(db: Session, payload: schemas.MotelCreate, user: models.User) -> models.Motel:
    obj = models.Motel(owner_id=user.id, name=payload.name, address=payload.address, description=payload.description)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    logger.info("motel.created", extra={"motel_id": obj.id, "owner_id": user.id})
    return obj


def list_motels(db: Session, user: models.User) -> List[models.Motel]:
    """Landlords see their own motels; everyone else sees all of them, newest first."""
    q = db.query(models.Motel)
    if policy.listing_scope(user) == "owner":
        q = q.filter(models.Motel.owner_id == user.id)
    return q.order_by(models.Motel.id.desc()).all()


def _load_motel(db: Session, motel_id: int) -> models.Motel:
    motel = db.get(models.Motel, motel_id)
    if motel is None:
        raise errors.NotFound(MSG_MOTEL_NOT_FOUND)
    return motel


def create_room(db: Session, motel_id: int, payload: schemas.RoomCreate, user: models.User) -> models.Room:
    motel = _load_motel(db, motel_id)
    policy.enforce(user, policy.ROOM_MANAGE, policy.Owners(landlord_id=motel.owner_id), "Bạn không có quyền thêm phòng")
    obj = models.Room(motel_id=motel.id, status="AVAILABLE", **payload.model_dump())
    db.add(obj)
    db.commit()
    db.refresh(obj)
    logger.info("room.created", extra={"room_id": obj.id, "motel_id": motel.id})
    return obj


def list_rooms(db: Session, motel_id: int) -> List[models.Room]:
    motel = _load_motel(db, motel_id)
    return db.query(models.Room).filter(models.Room.motel_id == motel.id).order_by(models.Room.id.asc()).all()


def get_room(db: Session, room_id: int) -> models.Room:
    room = db.get(models.Room, room_id)
    if room is None:
        raise errors.NotFound(MSG_ROOM_NOT_FOUND)
    return room


def update_room_status(db: Session, room_id: int, new_status: str, user: models.User) -> models.Room:
    """
    Manual status change by the owning landlord, STAFF or ADMIN.

    - RENTED is never set by hand; only contract creation rents a room.
    - AVAILABLE and MAINTENANCE are refused while an ACTIVE contract exists.
    - MAINTENANCE needs at least one open maintenance request.
    """
    room = get_room(db, room_id)
    policy.enforce(
        user, policy.ROOM_MANAGE, policy.Owners(landlord_id=room.motel.owner_id), "Bạn không có quyền cập nhật phòng này"
    )

    if new_status == "RENTED":
        raise errors.ValidationError("Phòng chỉ chuyển sang RENTED khi tạo hợp đồng")
    # Rooms under an ACTIVE contract stay RENTED
    if new_status in ("AVAILABLE", "MAINTENANCE") and occupancy.has_active_contract(db, room.id):
        raise errors.RoomOccupied("Phòng vẫn còn hợp đồng đang hoạt động")
    if new_status == "MAINTENANCE" and not occupancy.has_open_maintenance(db, room.id):
        raise errors.ValidationError("Phòng không có yêu cầu sửa chữa nào đang mở")

    previous = room.status
    try:
        room.status = new_status
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("room.status_update_failed", extra={"room_id": room_id})
        raise errors.InternalError() from exc

    db.refresh(room)
    logger.info(
        "room.status_changed",
        extra={"room_id": room.id, "from_status": previous, "to_status": room.status, "user_id": user.id},
    )
    return room


def _occupancy_stats(occupied: int, available: int, maintenance: int) -> dict:
    total = occupied + available + maintenance
    return {
        "total_rooms": total,
        "occupied_rooms": occupied,
        "available_rooms": available,
        "maintenance_rooms": maintenance,
        # Whole percent, halves rounded up
        "occupancy_rate": (occupied * 100 + total // 2) // total if total else 0,
    }


def occupancy_report(db: Session, user: models.User, motel_id: Optional[int] = None) -> dict:
    """
    Room counts by status for each motel the caller can see, plus the totals.

    Landlords only see their own motels; a motel_id they do not own yields an empty report.
    """
    q = db.query(models.Motel)
    if policy.listing_scope(user) == "owner":
        q = q.filter(models.Motel.owner_id == user.id)
    if motel_id is not None:
        q = q.filter(models.Motel.id == motel_id)
    motels = q.order_by(models.Motel.id.asc()).all()

    counts: Dict[Tuple[int, str], int] = {}
    if motels:
        rows = (
            db.query(models.Room.motel_id, models.Room.status, func.count(models.Room.id))
            .filter(models.Room.motel_id.in_([m.id for m in motels]))
            .group_by(models.Room.motel_id, models.Room.status)
            .all()
        )
        counts = {(row_motel_id, status): n for row_motel_id, status, n in rows}

    by_motel = []
    for motel in motels:
        stats = _occupancy_stats(
            counts.get((motel.id, "RENTED"), 0),
            counts.get((motel.id, "AVAILABLE"), 0),
            counts.get((motel.id, "MAINTENANCE"), 0),
        )
        by_motel.append({"motel_id": motel.id, "motel_name": motel.name, **stats})

    overall = _occupancy_stats(
        sum(m["occupied_rooms"] for m in by_motel),
        sum(m["available_rooms"] for m in by_motel),
        sum(m["maintenance_rooms"] for m in by_motel),
    )
    return {"overall": {"total_motels": len(motels), **overall}, "by_motel": by_motel}
