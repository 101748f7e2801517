# Invoice endpoints: billing by landlords/staff (single or per motel and month),
# reads for the contract's tenant.
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..db import get_db
from .. import documents, models, schemas
from ..pagination import DEFAULT_LIMIT, MAX_LIMIT
from ..rate_limit import rate_limit
from ..services import invoices as invoice_service
from .auth import get_current_user, require_manager

router = APIRouter()


@router.post(
    "/invoices",
    response_model=schemas.Envelope[schemas.InvoiceRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("write"))],
)
def create_invoice(
    payload: schemas.InvoiceCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_manager),
):
    obj = invoice_service.create_invoice(db, payload, user)
    return {"data": obj, "message": "Tạo hóa đơn thành công"}


@router.post(
    "/invoices/generate",
    response_model=schemas.Envelope[List[schemas.InvoiceRead]],
    dependencies=[Depends(rate_limit("write"))],
)
def generate_invoices(
    payload: schemas.InvoiceGenerate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_manager),
):
    """Bill every ACTIVE contract in a motel for one month; already billed contracts are skipped."""
    created = invoice_service.generate_invoices(db, payload, user)
    return {"data": created, "message": f"Đã tạo {len(created)} hóa đơn"}


@router.get("/invoices", response_model=schemas.Page[schemas.InvoiceRead])
def list_invoices(
    status_filter: Optional[schemas.InvoiceStatus] = Query(None, alias="status"),
    contract_id: Optional[int] = Query(None, alias="contractId"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    items, pagination = invoice_service.list_invoices(
        db, user, status=status_filter, contract_id=contract_id, page=page, limit=limit
    )
    return {"data": items, "pagination": pagination}


@router.get("/invoices/{invoice_id}", response_model=schemas.Envelope[schemas.InvoiceRead])
def get_invoice(invoice_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return {"data": invoice_service.get_invoice(db, invoice_id, user)}


@router.post(
    "/invoices/{invoice_id}/payments",
    response_model=schemas.Envelope[schemas.InvoiceRead],
    dependencies=[Depends(rate_limit("write"))],
)
def record_payment(
    invoice_id: int,
    payload: schemas.PaymentCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_manager),
):
    obj, message = invoice_service.record_payment(db, invoice_id, payload, user)
    return {"data": obj, "message": message}


@router.get("/invoices/{invoice_id}/pdf")
def invoice_pdf(invoice_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    invoice = invoice_service.get_invoice(db, invoice_id, user)
    return Response(
        content=documents.render_invoice_pdf(invoice),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="hoa-don-{invoice.invoice_number}.pdf"'},
    )
