# Contract endpoints: creation (occupancy-checked, transactional), role-scoped listing,
# administrative updates and printable PDFs.
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import documents, models, schemas
from ..pagination import DEFAULT_LIMIT, MAX_LIMIT
from ..rate_limit import rate_limit
from ..services import contracts as contract_service
from .auth import get_current_user, require_landlord, require_manager

router = APIRouter()


@router.post(
    "/contracts",
    response_model=schemas.Envelope[schemas.ContractRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_contract(
    payload: schemas.ContractCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_manager),
):
    """
    Create an ACTIVE contract and mark the room RENTED in one transaction.

    Errors:
    - 404 NOT_FOUND: room or tenant account does not exist
    - 403 FORBIDDEN: caller does not own the room's motel (and is not STAFF/ADMIN)
    - 400 ROOM_OCCUPIED: the room already has an ACTIVE contract
    - 429 BUSY: another creation for the same room is in flight
    """
    obj = contract_service.create_contract(db, payload, user)
    return {"data": obj, "message": "Tạo hợp đồng thành công"}


@router.get("/contracts", response_model=schemas.Page[schemas.ContractRead])
def list_contracts(
    status_filter: Optional[schemas.ContractStatus] = Query(None, alias="status"),
    motel_id: Optional[int] = Query(None, alias="motelId"),
    room_id: Optional[int] = Query(None, alias="roomId"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    items, pagination = contract_service.list_contracts(
        db, user, status=status_filter, motel_id=motel_id, room_id=room_id, page=page, limit=limit
    )
    return {"data": items, "pagination": pagination}


@router.get("/contracts/{contract_id}", response_model=schemas.Envelope[schemas.ContractRead])
def get_contract(contract_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return {"data": contract_service.get_contract(db, contract_id, user)}


@router.put(
    "/contracts/{contract_id}",
    response_model=schemas.Envelope[schemas.ContractRead],
    dependencies=[Depends(rate_limit("write"))],
)
def update_contract(
    contract_id: int,
    payload: schemas.ContractUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_landlord),
):
    obj, message = contract_service.update_contract(db, contract_id, payload, user)
    return {"data": obj, "message": message}


@router.delete(
    "/contracts/{contract_id}",
    response_model=schemas.Envelope[None],
    dependencies=[Depends(rate_limit("write"))],
)
def delete_contract(contract_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    contract_service.delete_contract(db, contract_id, user)
    return {"message": "Xóa hợp đồng thành công"}


@router.get("/contracts/{contract_id}/pdf")
def contract_pdf(contract_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    contract = contract_service.get_contract(db, contract_id, user)
    return Response(
        content=documents.render_contract_pdf(contract),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="hop-dong-{contract.contract_number}.pdf"'},
    )
