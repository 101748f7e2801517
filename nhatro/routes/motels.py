# Motel and room endpoints, plus the occupancy dashboard.
# Landlords manage their own motels and rooms; room reads are public for browsing.
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..rate_limit import rate_limit
from ..services import rooms as room_service
from .auth import get_current_user, require_landlord, require_manager

router = APIRouter()


@router.get("/motels", response_model=schemas.Envelope[List[schemas.MotelRead]])
def list_motels(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    """Landlords get their own motels; STAFF/ADMIN and others get every motel."""
    return {"data": room_service.list_motels(db, user)}


@router.post(
    "/motels",
    response_model=schemas.Envelope[schemas.MotelRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_motel(payload: schemas.MotelCreate, db: Session = Depends(get_db), user: models.User = Depends(require_landlord)):
    obj = room_service.create_motel(db, payload, user)
    return {"data": obj, "message": "Tạo nhà trọ thành công"}


@router.get("/motels/{motel_id}/rooms", response_model=schemas.Envelope[List[schemas.RoomRead]])
def list_rooms(motel_id: int, db: Session = Depends(get_db)):
    return {"data": room_service.list_rooms(db, motel_id)}


@router.post(
    "/motels/{motel_id}/rooms",
    response_model=schemas.Envelope[schemas.RoomRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_room(
    motel_id: int,
    payload: schemas.RoomCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_manager),
):
    obj = room_service.create_room(db, motel_id, payload, user)
    return {"data": obj, "message": "Tạo phòng thành công"}


@router.get("/rooms/{room_id}", response_model=schemas.Envelope[schemas.RoomRead])
def get_room(room_id: int, db: Session = Depends(get_db)):
    return {"data": room_service.get_room(db, room_id)}


@router.put(
    "/rooms/{room_id}/status",
    response_model=schemas.Envelope[schemas.RoomRead],
    dependencies=[Depends(rate_limit("write"))],
)
def update_room_status(
    room_id: int,
    payload: schemas.RoomStatusUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_manager),
):
    """Manual status change; RENTED is only ever set by contract creation."""
    obj = room_service.update_room_status(db, room_id, payload.status, user)
    return {"data": obj, "message": "Cập nhật trạng thái phòng thành công"}


@router.get("/dashboard/occupancy", response_model=schemas.Envelope[schemas.OccupancyReport])
def occupancy_report(
    motel_id: Optional[int] = Query(None, alias="motelId"),
    db: Session = Depends(get_db),
    user: models.User = Depends(require_manager),
):
    """Room counts by status and occupancy rate, per motel and overall."""
    return {"data": room_service.occupancy_report(db, user, motel_id=motel_id)}
