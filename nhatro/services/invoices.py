# Monthly invoices for active contracts: creation with line items, bulk monthly
# generation per motel, reads and payments.
# The overdue sweep lives in sweepers.py.
from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import errors, models, policy, schemas
from ..pagination import paginate

logger = logging.getLogger("nhatro.invoices")

# Due day used when the contract does not set one
DEFAULT_DUE_DAY = 5

MSG_NOT_FOUND = "Không tìm thấy hóa đơn"
MSG_CONTRACT_NOT_FOUND = "Không tìm thấy hợp đồng"
MSG_MOTEL_NOT_FOUND = "Không tìm thấy nhà trọ"

RENT_ITEM_NAME = "Tiền phòng"


def generate_invoice_number(billing_month: date) -> str:
    return f"INV-{billing_month:%Y%m}-{uuid4().hex[:6].upper()}"


def parse_billing_month(value: str) -> date:
    """'2025-03' -> date(2025, 3, 1)."""
    year, month = value.split("-")
    return date(int(year), int(month), 1)


def default_due_date(billing_month: date, due_day: Optional[int]) -> date:
    last = calendar.monthrange(billing_month.year, billing_month.month)[1]
    return billing_month.replace(day=min(due_day or DEFAULT_DUE_DAY, last))


def invoice_owners(invoice: models.Invoice) -> policy.Owners:
    contract = invoice.contract
    return policy.Owners(landlord_id=contract.room.motel.owner_id, requester_id=contract.tenant_id)


def _item_rows(items: List[schemas.InvoiceItemCreate]) -> List[models.InvoiceItem]:
    return [
        models.InvoiceItem(
            service_name=item.service_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=round(item.quantity * item.unit_price),
            notes=item.notes,
        )
        for item in items
    ]


def _new_invoice(
    contract: models.Contract,
    billing_month: date,
    items: List[models.InvoiceItem],
    due_date: Optional[date] = None,
) -> models.Invoice:
    return models.Invoice(
        invoice_number=generate_invoice_number(billing_month),
        contract_id=contract.id,
        billing_month=billing_month,
        due_date=due_date or default_due_date(billing_month, contract.payment_due_day),
        amount_total=sum(i.total_price for i in items),
        amount_paid=0,
        status="PENDING",
        items=items,
    )


def create_invoice(db: Session, payload: schemas.InvoiceCreate, user: models.User) -> models.Invoice:
    contract = db.get(models.Contract, payload.contract_id)
    if contract is None:
        raise errors.NotFound(MSG_CONTRACT_NOT_FOUND)
    policy.enforce(
        user,
        policy.INVOICE_MANAGE,
        policy.Owners(landlord_id=contract.room.motel.owner_id),
        "Bạn không có quyền lập hóa đơn cho hợp đồng này",
    )
    if contract.status != "ACTIVE":
        raise errors.ValidationError("Chỉ lập hóa đơn cho hợp đồng đang hiệu lực")

    billing_month = parse_billing_month(payload.billing_month)
    duplicate = (
        db.query(models.Invoice.id)
        .filter(models.Invoice.contract_id == contract.id, models.Invoice.billing_month == billing_month)
        .first()
    )
    if duplicate is not None:
        raise errors.Conflict(f"Hợp đồng đã có hóa đơn tháng {payload.billing_month}")

    obj = _new_invoice(contract, billing_month, _item_rows(payload.items), payload.due_date)
    try:
        db.add(obj)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise errors.Conflict(f"Hợp đồng đã có hóa đơn tháng {payload.billing_month}") from exc
    except Exception as exc:
        db.rollback()
        logger.exception("invoice.create_failed", extra={"contract_id": contract.id})
        raise errors.InternalError() from exc

    db.refresh(obj)
    logger.info(
        "invoice.created",
        extra={"invoice_id": obj.id, "contract_id": contract.id, "amount_total": obj.amount_total},
    )
    return obj


def generate_invoices(
    db: Session, payload: schemas.InvoiceGenerate, user: models.User
) -> List[models.Invoice]:
    """
    Bill every ACTIVE contract in a motel for one month.

    Each invoice starts with a rent line at the contract's rent, followed by
    `payload.items`. Contracts that already have an invoice for the month are
    skipped, so running the same month again only fills the gaps. The batch is
    committed as a whole.
    """
    motel = db.get(models.Motel, payload.motel_id)
    if motel is None:
        raise errors.NotFound(MSG_MOTEL_NOT_FOUND)
    policy.enforce(
        user,
        policy.INVOICE_MANAGE,
        policy.Owners(landlord_id=motel.owner_id),
        "Bạn không có quyền tạo hóa đơn cho nhà trọ này",
    )

    billing_month = parse_billing_month(payload.billing_month)
    billed = {
        contract_id
        for (contract_id,) in db.query(models.Invoice.contract_id).filter(
            models.Invoice.billing_month == billing_month
        )
    }
    contracts = (
        db.query(models.Contract)
        .join(models.Room, models.Room.id == models.Contract.room_id)
        .filter(models.Room.motel_id == motel.id, models.Contract.status == "ACTIVE")
        .order_by(models.Contract.id.asc())
        .all()
    )

    created = []
    for contract in contracts:
        if contract.id in billed:
            continue
        rent = models.InvoiceItem(
            service_name=RENT_ITEM_NAME,
            quantity=1,
            unit_price=contract.rent_price,
            total_price=contract.rent_price,
        )
        created.append(_new_invoice(contract, billing_month, [rent] + _item_rows(payload.items)))

    try:
        db.add_all(created)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise errors.Conflict(f"Hóa đơn tháng {payload.billing_month} vừa được tạo, vui lòng thử lại") from exc
    except Exception as exc:
        db.rollback()
        logger.exception("invoice.generate_failed", extra={"motel_id": motel.id})
        raise errors.InternalError() from exc

    for obj in created:
        db.refresh(obj)
    logger.info(
        "invoice.generated",
        extra={
            "motel_id": motel.id,
            "billing_month": payload.billing_month,
            "created": len(created),
            "skipped": len(contracts) - len(created),
        },
    )
    return created


def _load(db: Session, invoice_id: int) -> models.Invoice:
    obj = db.get(models.Invoice, invoice_id)
    if obj is None:
        raise errors.NotFound(MSG_NOT_FOUND)
    return obj


def get_invoice(db: Session, invoice_id: int, user: models.User) -> models.Invoice:
    obj = _load(db, invoice_id)
    policy.enforce(user, policy.INVOICE_READ, invoice_owners(obj), "Bạn không có quyền xem hóa đơn này")
    return obj


def list_invoices(
    db: Session,
    user: models.User,
    *,
    status: Optional[str] = None,
    contract_id: Optional[int] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[models.Invoice], dict]:
    q = (
        db.query(models.Invoice)
        .join(models.Contract, models.Contract.id == models.Invoice.contract_id)
        .join(models.Room, models.Room.id == models.Contract.room_id)
        .join(models.Motel, models.Motel.id == models.Room.motel_id)
    )
    scope = policy.listing_scope(user)
    if scope == "self":
        q = q.filter(models.Contract.tenant_id == user.id)
    elif scope == "owner":
        q = q.filter(models.Motel.owner_id == user.id)

    if status:
        q = q.filter(models.Invoice.status == status)
    if contract_id is not None:
        q = q.filter(models.Invoice.contract_id == contract_id)

    q = q.order_by(models.Invoice.billing_month.desc(), models.Invoice.id.desc())
    return paginate(q, page, limit)


def record_payment(
    db: Session, invoice_id: int, payload: schemas.PaymentCreate, user: models.User
) -> Tuple[models.Invoice, str]:
    """Add a payment; the invoice becomes PAID once amount_paid covers amount_total."""
    obj = _load(db, invoice_id)
    policy.enforce(user, policy.INVOICE_MANAGE, invoice_owners(obj), "Bạn không có quyền ghi nhận thanh toán")
    if obj.status == "PAID":
        raise errors.ValidationError("Hóa đơn đã được thanh toán")

    previous = obj.status
    try:
        obj.amount_paid = (obj.amount_paid or 0) + payload.amount
        if obj.amount_paid >= obj.amount_total:
            obj.status = "PAID"
            obj.paid_at = datetime.now(timezone.utc)
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("invoice.payment_failed", extra={"invoice_id": invoice_id})
        raise errors.InternalError() from exc

    db.refresh(obj)
    logger.info(
        "invoice.payment_recorded",
        extra={
            "invoice_id": obj.id,
            "amount": payload.amount,
            "method": payload.payment_method,
            "from_status": previous,
            "to_status": obj.status,
            "user_id": user.id,
        },
    )
    message = "Hóa đơn đã được thanh toán đủ" if obj.status == "PAID" else "Đã ghi nhận thanh toán"
    return obj, message

