# Background sweepers for periodic housekeeping (marking unpaid invoices overdue).
# Invoked from the startup thread in main.py; tests call them directly with a session.
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from .db import SessionLocal
from . import models

logger = logging.getLogger("nhatro.sweepers")


def mark_overdue_invoices(db: Optional[Session] = None, today: Optional[date] = None) -> int:
    """
    Mark PENDING invoices whose due_date is before `today` as OVERDUE.

    Semantics:
    - PAID and already OVERDUE invoices are never touched, so repeated runs are no-ops.
    - Invoices without a due date never become overdue.
    - Accepts an optional Session; otherwise creates and closes its own.

    Returns:
    - Number of invoices updated.
    """
    created_session = False
    if db is None:
        db = SessionLocal()
        created_session = True

    try:
        today = today or date.today()
        items = (
            db.query(models.Invoice)
            .filter(
                models.Invoice.status == "PENDING",
                models.Invoice.due_date != None,  # noqa: E711
                models.Invoice.due_date < today,
            )
            .all()
        )
        for obj in items:
            obj.status = "OVERDUE"
        if items:
            db.commit()
            logger.info("invoice.marked_overdue", extra={"count": len(items)})
        return len(items)
    except Exception:
        db.rollback()
        raise
    finally:
        if created_session:
            db.close()
