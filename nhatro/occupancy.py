# Room occupancy rule: the single home for deriving room status from contracts and
# maintenance requests. Consulted by the contract, maintenance and room services.
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger("nhatro.occupancy")


def has_active_contract(db: Session, room_id: int, for_update: bool = False) -> bool:
    """
    True iff the room currently has a contract with status ACTIVE.

    With `for_update` the read is a locking read: it sees rows committed after the
    transaction's snapshot was taken (REPEATABLE READ stores) and holds them.
    """
    q = db.query(models.Contract.id).filter(
        models.Contract.room_id == room_id, models.Contract.status == "ACTIVE"
    )
    if for_update:
        q = q.with_for_update()
    return q.first() is not None


def has_open_maintenance(db: Session, room_id: int, exclude_request_id: Optional[int] = None) -> bool:
    """True iff any PENDING or IN_PROGRESS maintenance request exists for the room."""
    q = db.query(models.MaintenanceRequest.id).filter(
        models.MaintenanceRequest.room_id == room_id,
        models.MaintenanceRequest.status.in_(models.OPEN_MAINTENANCE_STATUSES),
    )
    if exclude_request_id is not None:
        q = q.filter(models.MaintenanceRequest.id != exclude_request_id)
    return q.first() is not None


def release_room_after_maintenance(db: Session, room_id: int, exclude_request_id: Optional[int] = None) -> bool:
    """
    Best-effort cleanup after a request is resolved.

    When no other open request remains, flip the room MAINTENANCE -> AVAILABLE.
    Rooms in any other status (RENTED, AVAILABLE) are left untouched.
    Does not commit; returns True if the room status changed.
    """
    if has_open_maintenance(db, room_id, exclude_request_id=exclude_request_id):
        return False
    # Conditional update: only clears a status that maintenance is responsible for
    updated = (
        db.query(models.Room)
        .filter(models.Room.id == room_id, models.Room.status == "MAINTENANCE")
        .update({models.Room.status: "AVAILABLE"}, synchronize_session="fetch")
    )
    if updated:
        logger.info("room.released_from_maintenance", extra={"room_id": room_id})
    return bool(updated)


def is_consistent(db: Session, room: models.Room) -> bool:
    """RENTED implies an active contract; MAINTENANCE implies an open request."""
    if room.status == "RENTED":
        return has_active_contract(db, room.id)
    if room.status == "MAINTENANCE":
        return has_open_maintenance(db, room.id)
    return room.status in models.ROOM_STATUSES
