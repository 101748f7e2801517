# Contract lifecycle: transactional creation (contract + roster + room RENTED), reads,
# administrative updates (terminate/renew) and deletion.
from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import errors, models, occupancy, policy, schemas
from ..db import is_sqlite
from ..locks import redis_try_lock, room_lock_key
from ..pagination import paginate

logger = logging.getLogger("nhatro.contracts")

# Retries when a freshly generated contract number collides with an existing one
CONTRACT_NUMBER_ATTEMPTS = int(os.getenv("CONTRACT_NUMBER_ATTEMPTS", "3"))

MSG_ROOM_NOT_FOUND = "Không tìm thấy phòng"
MSG_CONTRACT_NOT_FOUND = "Không tìm thấy hợp đồng"
MSG_TENANT_NOT_FOUND = "Không tìm thấy người thuê"
MSG_FORBIDDEN_CREATE = "Bạn không có quyền tạo hợp đồng cho phòng này"
MSG_FORBIDDEN_READ = "Bạn không có quyền xem hợp đồng này"
MSG_FORBIDDEN_UPDATE = "Bạn không có quyền sửa hợp đồng này"
MSG_FORBIDDEN_DELETE = "Bạn không có quyền xóa hợp đồng này"


def generate_contract_number(now: Optional[datetime] = None) -> str:
    """Human-readable number, e.g. HD-20250101-3F9A1C. Uniqueness is backed by a DB constraint."""
    now = now or datetime.now(timezone.utc)
    return f"HD-{now:%Y%m%d}-{uuid4().hex[:6].upper()}"


def contract_owners(contract: models.Contract) -> policy.Owners:
    return policy.Owners(landlord_id=contract.room.motel.owner_id, requester_id=contract.tenant_id)


def _roster_rows(contract: models.Contract, roster: List[schemas.TenantEntry]) -> List[models.Tenant]:
    return [
        models.Tenant(
            contract_id=contract.id,
            full_name=entry.full_name,
            phone=entry.phone,
            email=entry.email,
            identity_card=entry.identity_card,
            date_of_birth=entry.date_of_birth,
            gender=entry.gender,
            relationship_to_primary=entry.relationship,
            is_primary=entry.is_primary,
        )
        for entry in roster
    ]


def _insert_contract(db: Session, room: models.Room, payload: schemas.ContractCreate) -> models.Contract:
    """
    Stage contract, roster and room flip in the current transaction (no commit).

    The occupancy check runs here, after the room row lock, so a creation that
    waited on the lock sees the contract committed by the one holding it.
    """
    locking = not is_sqlite(db)
    if locking:
        # Serialize concurrent creations for this room where the store supports row locks
        db.query(models.Room).filter(models.Room.id == room.id).with_for_update().first()
    if occupancy.has_active_contract(db, room.id, for_update=locking):
        raise errors.RoomOccupied()

    contract = models.Contract(
        contract_number=generate_contract_number(),
        room_id=room.id,
        tenant_id=payload.tenant_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        rent_price=payload.rent_price,
        deposit_amount=payload.deposit_amount,
        payment_due_day=payload.payment_due_day,
        notes=payload.notes,
        status="ACTIVE",
    )
    db.add(contract)
    db.flush()

    db.add_all(_roster_rows(contract, payload.tenants))
    room.status = "RENTED"
    db.flush()
    return contract


def create_contract(db: Session, payload: schemas.ContractCreate, user: models.User) -> models.Contract:
    """
    Create an ACTIVE contract for an unoccupied room.

    Sequence: room lookup -> ownership check -> per-room lock -> single transaction
    (room row lock, occupancy check, contract, roster, room RENTED). A unique-index
    violation on commit means a concurrent creation won: the caller gets ROOM_OCCUPIED.
    Any other failure rolls everything back and surfaces as INTERNAL_ERROR.
    """
    room = db.get(models.Room, payload.room_id)
    if room is None:
        raise errors.NotFound(MSG_ROOM_NOT_FOUND)

    policy.enforce(user, policy.CONTRACT_CREATE, policy.Owners(landlord_id=room.motel.owner_id), MSG_FORBIDDEN_CREATE)

    if payload.tenant_id is not None and db.get(models.User, payload.tenant_id) is None:
        raise errors.NotFound(MSG_TENANT_NOT_FOUND)

    with redis_try_lock(room_lock_key(room.id), ttl_ms=5000) as locked:
        if not locked:
            raise errors.Busy()

        for attempt in range(1, CONTRACT_NUMBER_ATTEMPTS + 1):
            try:
                contract = _insert_contract(db, room, payload)
                db.commit()
            except errors.RoomOccupied:
                db.rollback()
                raise
            except IntegrityError as exc:
                db.rollback()
                if occupancy.has_active_contract(db, room.id):
                    logger.info("contract.create_lost_race", extra={"room_id": room.id, "user_id": user.id})
                    raise errors.RoomOccupied() from exc
                logger.warning(
                    "contract.number_collision",
                    extra={"room_id": room.id, "attempt": attempt},
                )
                continue
            except Exception as exc:
                db.rollback()
                logger.exception("contract.create_failed", extra={"room_id": room.id})
                raise errors.InternalError() from exc

            db.refresh(contract)
            logger.info(
                "contract.created",
                extra={
                    "contract_id": contract.id,
                    "contract_number": contract.contract_number,
                    "room_id": room.id,
                    "tenants": len(payload.tenants),
                    "user_id": user.id,
                },
            )
            return contract

    logger.error("contract.number_exhausted", extra={"room_id": room.id})
    raise errors.InternalError()


def _load(db: Session, contract_id: int) -> models.Contract:
    contract = db.get(models.Contract, contract_id)
    if contract is None:
        raise errors.NotFound(MSG_CONTRACT_NOT_FOUND)
    return contract


def get_contract(db: Session, contract_id: int, user: models.User) -> models.Contract:
    contract = _load(db, contract_id)
    policy.enforce(user, policy.CONTRACT_READ, contract_owners(contract), MSG_FORBIDDEN_READ)
    return contract


def list_contracts(
    db: Session,
    user: models.User,
    *,
    status: Optional[str] = None,
    motel_id: Optional[int] = None,
    room_id: Optional[int] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[models.Contract], dict]:
    """Role-scoped listing: tenants see their own contracts, landlords those under their motels."""
    q = (
        db.query(models.Contract)
        .join(models.Room, models.Room.id == models.Contract.room_id)
        .join(models.Motel, models.Motel.id == models.Room.motel_id)
    )
    scope = policy.listing_scope(user)
    if scope == "self":
        q = q.filter(models.Contract.tenant_id == user.id)
    elif scope == "owner":
        q = q.filter(models.Motel.owner_id == user.id)

    if status:
        q = q.filter(models.Contract.status == status)
    if room_id is not None:
        q = q.filter(models.Contract.room_id == room_id)
    if motel_id is not None:
        q = q.filter(models.Room.motel_id == motel_id)

    q = q.order_by(models.Contract.created_at.desc(), models.Contract.id.desc())
    return paginate(q, page, limit)


def update_contract(
    db: Session, contract_id: int, payload: schemas.ContractUpdate, user: models.User
) -> Tuple[models.Contract, str]:
    """
    Administrative changes to a contract.

    - action="terminate": TERMINATED + room back to AVAILABLE, in one transaction
    - action="renew": new end date and optionally a new rent
    - no action: plain field update (rent, deposit, due day, notes)
    """
    contract = _load(db, contract_id)
    policy.enforce(user, policy.CONTRACT_UPDATE, contract_owners(contract), MSG_FORBIDDEN_UPDATE)

    if payload.action in ("terminate", "renew") and contract.status != "ACTIVE":
        raise errors.ValidationError("Chỉ hợp đồng đang hiệu lực mới có thể thanh lý hoặc gia hạn")
    if payload.action == "renew" and payload.new_end_date is not None and payload.new_end_date <= contract.start_date:
        raise errors.ValidationError("Ngày kết thúc mới phải sau ngày bắt đầu")

    try:
        if payload.action == "terminate":
            contract.status = "TERMINATED"
            if payload.termination_reason:
                contract.notes = f"{contract.notes or ''}\n[Thanh lý]: {payload.termination_reason}".strip()
            contract.room.status = "AVAILABLE"
            message = "Thanh lý hợp đồng thành công"
        elif payload.action == "renew":
            contract.end_date = payload.new_end_date
            if payload.new_rent_price is not None:
                contract.rent_price = payload.new_rent_price
            message = "Gia hạn hợp đồng thành công"
        else:
            for field in ("rent_price", "deposit_amount", "payment_due_day", "notes"):
                value = getattr(payload, field)
                if value is not None:
                    setattr(contract, field, value)
            message = "Cập nhật hợp đồng thành công"
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("contract.update_failed", extra={"contract_id": contract_id})
        raise errors.InternalError() from exc

    db.refresh(contract)
    logger.info("contract.updated", extra={"contract_id": contract.id, "action": payload.action or "update"})
    return contract, message


def delete_contract(db: Session, contract_id: int, user: models.User) -> None:
    """
    Remove a contract with its roster and invoices.

    The room status is left as is: deleting an ACTIVE contract leaves its room
    RENTED until someone changes it by hand.
    """
    contract = _load(db, contract_id)
    policy.enforce(user, policy.CONTRACT_DELETE, contract_owners(contract), MSG_FORBIDDEN_DELETE)

    room_id = contract.room_id
    try:
        db.delete(contract)
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("contract.delete_failed", extra={"contract_id": contract_id})
        raise errors.InternalError() from exc

    logger.info("contract.deleted", extra={"contract_id": contract_id, "room_id": room_id, "user_id": user.id})
