# Viewing appointment endpoints. Booking is open to guests; everything else needs a token.
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..pagination import DEFAULT_LIMIT, MAX_LIMIT
from ..rate_limit import rate_limit
from ..services import appointments as appointment_service
from .auth import get_current_user, get_current_user_optional

router = APIRouter()


@router.post(
    "/appointments",
    response_model=schemas.Envelope[schemas.AppointmentRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_appointment(
    payload: schemas.AppointmentCreate,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user_optional),
):
    obj = appointment_service.create_appointment(db, payload, user)
    return {"data": obj, "message": "Đặt lịch xem phòng thành công"}


@router.get("/appointments", response_model=schemas.Page[schemas.AppointmentRead])
def list_appointments(
    status_filter: Optional[schemas.AppointmentStatus] = Query(None, alias="status"),
    room_id: Optional[int] = Query(None, alias="roomId"),
    day: Optional[date] = Query(None, alias="date"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    items, pagination = appointment_service.list_appointments(
        db, user, status=status_filter, room_id=room_id, day=day, page=page, limit=limit
    )
    return {"data": items, "pagination": pagination}


@router.get("/appointments/{appointment_id}", response_model=schemas.Envelope[schemas.AppointmentRead])
def get_appointment(appointment_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return {"data": appointment_service.get_appointment(db, appointment_id, user)}


@router.put(
    "/appointments/{appointment_id}",
    response_model=schemas.Envelope[schemas.AppointmentRead],
    dependencies=[Depends(rate_limit("write"))],
)
def update_appointment(
    appointment_id: int,
    payload: schemas.AppointmentStatusUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    obj, message = appointment_service.set_status(db, appointment_id, payload, user)
    return {"data": obj, "message": message}


@router.delete(
    "/appointments/{appointment_id}",
    response_model=schemas.Envelope[None],
    dependencies=[Depends(rate_limit("write"))],
)
def delete_appointment(appointment_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    appointment_service.delete_appointment(db, appointment_id, user)
    return {"message": "Xóa lịch hẹn thành công"}
