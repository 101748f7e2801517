# Maintenance request endpoints. Any signed-in user can report a problem; only the
# owning landlord, STAFF or ADMIN move a request through its lifecycle.
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..pagination import DEFAULT_LIMIT, MAX_LIMIT
from ..rate_limit import rate_limit
from ..services import maintenance as maintenance_service
from .auth import get_current_user, require_manager

router = APIRouter()


@router.post(
    "/maintenance-requests",
    response_model=schemas.Envelope[schemas.MaintenanceRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_request(
    payload: schemas.MaintenanceCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    obj = maintenance_service.create_request(db, payload, user)
    return {"data": obj, "message": "Gửi yêu cầu sửa chữa thành công"}


@router.get("/maintenance-requests", response_model=schemas.Page[schemas.MaintenanceRead])
def list_requests(
    status_filter: Optional[schemas.MaintenanceStatus] = Query(None, alias="status"),
    priority: Optional[schemas.MaintenancePriority] = Query(None),
    room_id: Optional[int] = Query(None, alias="roomId"),
    motel_id: Optional[int] = Query(None, alias="motelId"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    items, pagination = maintenance_service.list_requests(
        db,
        user,
        status=status_filter,
        priority=priority,
        room_id=room_id,
        motel_id=motel_id,
        page=page,
        limit=limit,
    )
    return {"data": items, "pagination": pagination}


@router.get("/maintenance-requests/{request_id}", response_model=schemas.Envelope[schemas.MaintenanceRead])
def get_request(request_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return {"data": maintenance_service.get_request(db, request_id, user)}


@router.put(
    "/maintenance-requests/{request_id}",
    response_model=schemas.Envelope[schemas.MaintenanceRead],
    dependencies=[Depends(rate_limit("write"))],
)
def update_request(
    request_id: int,
    payload: schemas.MaintenanceStatusUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_manager),
):
    """Status change; resolving the last open request frees a room held in MAINTENANCE."""
    obj, message = maintenance_service.update_status(db, request_id, payload, user)
    return {"data": obj, "message": message}
