# Maintenance request lifecycle: intake, reads, and status transitions with the
# room-release side effect on resolution.
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy.orm import Session

from .. import errors, models, occupancy, policy, schemas
from ..pagination import paginate

logger = logging.getLogger("nhatro.maintenance")

# PENDING may skip IN_PROGRESS; RESOLVED and CANCELLED are terminal
TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "PENDING": frozenset({"IN_PROGRESS", "RESOLVED", "CANCELLED"}),
    "IN_PROGRESS": frozenset({"RESOLVED", "CANCELLED"}),
    "RESOLVED": frozenset(),
    "CANCELLED": frozenset(),
}

STATUS_MESSAGES = {
    "IN_PROGRESS": "Đã bắt đầu xử lý yêu cầu",
    "RESOLVED": "Đã hoàn thành sửa chữa",
    "CANCELLED": "Đã hủy yêu cầu",
}
DEFAULT_STATUS_MESSAGE = "Cập nhật thành công"

MSG_NOT_FOUND = "Không tìm thấy yêu cầu sửa chữa"


def request_owners(obj: models.MaintenanceRequest) -> policy.Owners:
    return policy.Owners(
        landlord_id=obj.room.motel.owner_id,
        requester_id=obj.requester_id,
        assignee_id=obj.assigned_to_id,
    )


def can_transition(current: str, new: str) -> bool:
    # Re-sending the current status is a plain field update
    return new == current or new in TRANSITIONS.get(current, frozenset())


def create_request(db: Session, payload: schemas.MaintenanceCreate, user: models.User) -> models.MaintenanceRequest:
    room = db.get(models.Room, payload.room_id)
    if room is None:
        raise errors.NotFound("Không tìm thấy phòng")

    obj = models.MaintenanceRequest(
        room_id=room.id,
        requester_id=user.id,
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        status="PENDING",
    )
    try:
        db.add(obj)
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("maintenance.create_failed", extra={"room_id": room.id})
        raise errors.InternalError() from exc

    db.refresh(obj)
    logger.info("maintenance.created", extra={"request_id": obj.id, "room_id": room.id, "user_id": user.id})
    return obj


def _load(db: Session, request_id: int) -> models.MaintenanceRequest:
    obj = db.get(models.MaintenanceRequest, request_id)
    if obj is None:
        raise errors.NotFound(MSG_NOT_FOUND)
    return obj


def get_request(db: Session, request_id: int, user: models.User) -> models.MaintenanceRequest:
    obj = _load(db, request_id)
    policy.enforce(user, policy.MAINTENANCE_READ, request_owners(obj), "Bạn không có quyền xem yêu cầu này")
    return obj


def list_requests(
    db: Session,
    user: models.User,
    *,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    room_id: Optional[int] = None,
    motel_id: Optional[int] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[models.MaintenanceRequest], dict]:
    q = (
        db.query(models.MaintenanceRequest)
        .join(models.Room, models.Room.id == models.MaintenanceRequest.room_id)
        .join(models.Motel, models.Motel.id == models.Room.motel_id)
    )
    scope = policy.listing_scope(user)
    if scope == "self":
        q = q.filter(models.MaintenanceRequest.requester_id == user.id)
    elif scope == "owner":
        q = q.filter(models.Motel.owner_id == user.id)

    if status:
        q = q.filter(models.MaintenanceRequest.status == status)
    if priority:
        q = q.filter(models.MaintenanceRequest.priority == priority)
    if room_id is not None:
        q = q.filter(models.MaintenanceRequest.room_id == room_id)
    if motel_id is not None:
        q = q.filter(models.Room.motel_id == motel_id)

    q = q.order_by(models.MaintenanceRequest.created_at.desc(), models.MaintenanceRequest.id.desc())
    return paginate(q, page, limit)


def update_status(
    db: Session, request_id: int, payload: schemas.MaintenanceStatusUpdate, user: models.User
) -> Tuple[models.MaintenanceRequest, str]:
    """
    Move a request to `payload.status` and apply the optional fields.

    Only the owning landlord, STAFF or ADMIN may call this. Resolving a request
    stamps resolved_at and, when it was the room's last open request, returns a
    MAINTENANCE room to AVAILABLE (RENTED/AVAILABLE rooms are left alone). The
    status write and the room release commit together.
    """
    obj = _load(db, request_id)
    policy.enforce(user, policy.MAINTENANCE_UPDATE, request_owners(obj), "Bạn không có quyền cập nhật yêu cầu này")

    previous = obj.status
    if not can_transition(previous, payload.status):
        raise errors.ValidationError(f"Không thể chuyển trạng thái từ {previous} sang {payload.status}")

    if payload.assigned_to_id is not None and db.get(models.User, payload.assigned_to_id) is None:
        raise errors.NotFound("Không tìm thấy người được giao")

    try:
        obj.status = payload.status
        if payload.assigned_to_id is not None:
            obj.assigned_to_id = payload.assigned_to_id
        if payload.estimated_cost is not None:
            obj.estimated_cost = payload.estimated_cost
        if payload.actual_cost is not None:
            obj.actual_cost = payload.actual_cost
        if payload.notes:
            obj.resolution_notes = payload.notes
        if payload.status == "RESOLVED" and previous != "RESOLVED":
            obj.resolved_at = datetime.now(timezone.utc)
        db.flush()

        released = False
        if payload.status == "RESOLVED":
            released = occupancy.release_room_after_maintenance(db, obj.room_id, exclude_request_id=obj.id)
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("maintenance.update_failed", extra={"request_id": request_id})
        raise errors.InternalError() from exc

    db.refresh(obj)
    logger.info(
        "maintenance.status_changed",
        extra={
            "request_id": obj.id,
            "room_id": obj.room_id,
            "from_status": previous,
            "to_status": obj.status,
            "room_released": released,
            "user_id": user.id,
        },
    )
    return obj, STATUS_MESSAGES.get(payload.status, DEFAULT_STATUS_MESSAGE)
