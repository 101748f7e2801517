# Viewing appointments: a small state machine gated by the authorization policy.
#   PENDING -> CONFIRMED -> COMPLETED
#   PENDING / CONFIRMED -> CANCELLED
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from .. import errors, models, policy, schemas
from ..pagination import paginate

logger = logging.getLogger("nhatro.appointments")

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "PENDING": frozenset({"CONFIRMED", "CANCELLED"}),
    "CONFIRMED": frozenset({"COMPLETED", "CANCELLED"}),
    "COMPLETED": frozenset(),
    "CANCELLED": frozenset(),
}

# Permission needed to move an appointment into each status
ACTION_FOR_STATUS = {
    "CONFIRMED": policy.APPOINTMENT_CONFIRM,
    "COMPLETED": policy.APPOINTMENT_COMPLETE,
    "CANCELLED": policy.APPOINTMENT_CANCEL,
    "PENDING": policy.APPOINTMENT_UPDATE,
}

STATUS_MESSAGES = {
    "CONFIRMED": "Đã xác nhận lịch hẹn",
    "CANCELLED": "Đã hủy lịch hẹn",
    "COMPLETED": "Đã hoàn thành lịch hẹn",
}
DEFAULT_STATUS_MESSAGE = "Cập nhật lịch hẹn thành công"

FORBIDDEN_MESSAGES = {
    policy.APPOINTMENT_CONFIRM: "Chỉ chủ nhà mới có thể xác nhận lịch hẹn",
    policy.APPOINTMENT_COMPLETE: "Chỉ chủ nhà mới có thể hoàn thành lịch hẹn",
    policy.APPOINTMENT_CANCEL: "Bạn không có quyền hủy lịch hẹn này",
    policy.APPOINTMENT_UPDATE: "Bạn không có quyền sửa lịch hẹn này",
}

# Appointments still holding their time slot
OPEN_STATUSES = ("PENDING", "CONFIRMED")

MSG_NOT_FOUND = "Không tìm thấy lịch hẹn"


def is_requester(appointment: models.Appointment, user: models.User) -> bool:
    """The user booked it, or supplied the guest phone and email it was booked with."""
    if appointment.user_id is not None and appointment.user_id == user.id:
        return True
    return bool(
        appointment.guest_phone
        and appointment.guest_email
        and user.phone == appointment.guest_phone
        and (user.email or "").lower() == appointment.guest_email.lower()
    )


def appointment_owners(appointment: models.Appointment, user: models.User) -> policy.Owners:
    return policy.Owners(
        landlord_id=appointment.room.motel.owner_id,
        requester_id=appointment.user_id,
        requester_matched=is_requester(appointment, user),
    )


def can_transition(current: str, new: str) -> bool:
    # Re-sending the current status only updates the note
    return new == current or new in TRANSITIONS.get(current, frozenset())


def create_appointment(
    db: Session, payload: schemas.AppointmentCreate, user: Optional[models.User]
) -> models.Appointment:
    """Book a viewing; anonymous callers must leave a phone number or email."""
    if user is None and not (payload.guest_phone or payload.guest_email):
        raise errors.ValidationError("Vui lòng cung cấp số điện thoại hoặc email")

    room = db.get(models.Room, payload.room_id)
    if room is None:
        raise errors.NotFound("Không tìm thấy phòng")
    if room.status == "RENTED":
        raise errors.RoomUnavailable()

    clash = (
        db.query(models.Appointment.id)
        .filter(
            models.Appointment.room_id == room.id,
            models.Appointment.visit_date == payload.visit_date,
            models.Appointment.status.in_(OPEN_STATUSES),
        )
        .first()
    )
    if clash is not None:
        raise errors.TimeConflict()

    obj = models.Appointment(
        room_id=room.id,
        user_id=user.id if user else None,
        guest_name=payload.guest_name,
        guest_phone=payload.guest_phone,
        guest_email=payload.guest_email,
        visit_date=payload.visit_date,
        note=payload.note,
        status="PENDING",
    )
    try:
        db.add(obj)
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("appointment.create_failed", extra={"room_id": room.id})
        raise errors.InternalError() from exc

    db.refresh(obj)
    logger.info(
        "appointment.created",
        extra={"appointment_id": obj.id, "room_id": room.id, "user_id": obj.user_id},
    )
    return obj


def _load(db: Session, appointment_id: int) -> models.Appointment:
    obj = db.get(models.Appointment, appointment_id)
    if obj is None:
        raise errors.NotFound(MSG_NOT_FOUND)
    return obj


def get_appointment(db: Session, appointment_id: int, user: models.User) -> models.Appointment:
    obj = _load(db, appointment_id)
    policy.enforce(
        user, policy.APPOINTMENT_READ, appointment_owners(obj, user), "Bạn không có quyền xem lịch hẹn này"
    )
    return obj


def _requested_by(user: models.User):
    """SQL counterpart of is_requester."""
    clause = models.Appointment.user_id == user.id
    if user.phone and user.email:
        clause = or_(
            clause,
            and_(
                models.Appointment.guest_phone == user.phone,
                func.lower(models.Appointment.guest_email) == user.email.lower(),
            ),
        )
    return clause


def list_appointments(
    db: Session,
    user: models.User,
    *,
    status: Optional[str] = None,
    room_id: Optional[int] = None,
    day: Optional[date] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[models.Appointment], dict]:
    q = (
        db.query(models.Appointment)
        .join(models.Room, models.Room.id == models.Appointment.room_id)
        .join(models.Motel, models.Motel.id == models.Room.motel_id)
    )
    scope = policy.listing_scope(user)
    if scope == "self":
        q = q.filter(_requested_by(user))
    elif scope == "owner":
        q = q.filter(models.Motel.owner_id == user.id)

    if status:
        q = q.filter(models.Appointment.status == status)
    if room_id is not None:
        q = q.filter(models.Appointment.room_id == room_id)
    if day is not None:
        start = datetime.combine(day, time.min)
        q = q.filter(
            models.Appointment.visit_date >= start,
            models.Appointment.visit_date < start + timedelta(days=1),
        )

    q = q.order_by(models.Appointment.visit_date.asc(), models.Appointment.id.asc())
    return paginate(q, page, limit)


def set_status(
    db: Session, appointment_id: int, payload: schemas.AppointmentStatusUpdate, user: models.User
) -> Tuple[models.Appointment, str]:
    """
    Move an appointment to `payload.status`.

    The permission for the target status is checked before the transition
    table, so an actor who may never confirm gets FORBIDDEN even when the
    appointment is already CONFIRMED or no longer confirmable.
    """
    obj = _load(db, appointment_id)

    action = ACTION_FOR_STATUS[payload.status]
    policy.enforce(user, action, appointment_owners(obj, user), FORBIDDEN_MESSAGES[action])

    previous = obj.status
    if not can_transition(previous, payload.status):
        raise errors.ValidationError(f"Không thể chuyển lịch hẹn từ {previous} sang {payload.status}")

    try:
        obj.status = payload.status
        if payload.note:
            obj.note = payload.note
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("appointment.update_failed", extra={"appointment_id": appointment_id})
        raise errors.InternalError() from exc

    db.refresh(obj)
    logger.info(
        "appointment.status_changed",
        extra={"appointment_id": obj.id, "from_status": previous, "to_status": obj.status, "user_id": user.id},
    )
    return obj, STATUS_MESSAGES.get(payload.status, DEFAULT_STATUS_MESSAGE)


def delete_appointment(db: Session, appointment_id: int, user: models.User) -> None:
    obj = _load(db, appointment_id)
    policy.enforce(
        user, policy.APPOINTMENT_DELETE, appointment_owners(obj, user), "Bạn không có quyền xóa lịch hẹn này"
    )
    try:
        db.delete(obj)
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("appointment.delete_failed", extra={"appointment_id": appointment_id})
        raise errors.InternalError() from exc
    logger.info("appointment.deleted", extra={"appointment_id": appointment_id, "user_id": user.id})
