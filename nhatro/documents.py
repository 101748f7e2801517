"""
Printable documents for contracts and invoices.

Each renderer takes a loaded record (relationships reachable) and returns the
PDF bytes of a single A4 page. Labels avoid diacritics because the built-in
Helvetica font carries no Vietnamese glyphs.
"""

import io
import logging
from datetime import date, datetime
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from . import models

logger = logging.getLogger("nhatro.documents")

BRAND_COLOR = colors.Color(0, 0.2, 0.6)
HEADER_GRAY = colors.Color(0.9, 0.9, 0.9)
MARGIN = 18 * mm


def format_money(amount: Optional[int]) -> str:
    """1500000 -> '1.500.000 VND' (Vietnamese thousands separator)."""
    return f"{amount or 0:,} VND".replace(",", ".")


def format_date(value: Optional[date]) -> str:
    return value.strftime("%d/%m/%Y") if value else "N/A"


def _styles() -> dict:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("DocTitle", parent=base["Heading1"], fontSize=18, textColor=BRAND_COLOR, alignment=1),
        "subtitle": ParagraphStyle("DocSubtitle", parent=base["Normal"], fontSize=11, alignment=1, spaceAfter=6),
        "heading": ParagraphStyle("DocHeading", parent=base["Heading2"], fontSize=13, spaceBefore=10, spaceAfter=6),
        "footer": ParagraphStyle("DocFooter", parent=base["Normal"], fontSize=8, textColor=colors.grey),
    }


def _info_table(rows: List[List[str]]) -> Table:
    table = Table(rows, colWidths=[45 * mm, 125 * mm])
    table.setStyle(
        TableStyle(
            [
                ("FONT", (0, 0), (0, -1), "Helvetica-Bold", 10),
                ("FONT", (1, 0), (1, -1), "Helvetica", 10),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    return table


def _grid_table(rows: List[List[str]], col_widths: List[float]) -> Table:
    table = Table(rows, colWidths=col_widths, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_GRAY),
                ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 10),
                ("FONT", (0, 1), (-1, -1), "Helvetica", 9),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ]
        )
    )
    return table


def _build(story: list, title: str) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title=title,
    )
    doc.build(story)
    pdf_bytes = buffer.getvalue()
    buffer.close()
    return pdf_bytes


def render_contract_pdf(contract: models.Contract) -> bytes:
    styles = _styles()
    room = contract.room
    motel = room.motel
    owner = motel.owner
    tenant = contract.tenant

    story = [
        Paragraph("HOP DONG THUE PHONG", styles["title"]),
        Paragraph(f"So hop dong: {contract.contract_number}", styles["subtitle"]),
        Paragraph("BEN CHO THUE (BEN A)", styles["heading"]),
        _info_table(
            [
                ["Ho ten:", owner.full_name if owner else "N/A"],
                ["Dien thoai:", (owner.phone if owner else None) or "N/A"],
            ]
        ),
        Paragraph("BEN THUE (BEN B)", styles["heading"]),
        _info_table(
            [
                ["Ho ten:", tenant.full_name if tenant else "N/A"],
                ["Dien thoai:", (tenant.phone if tenant else None) or "N/A"],
                ["Email:", tenant.email if tenant else "N/A"],
            ]
        ),
        Paragraph("THONG TIN PHONG", styles["heading"]),
        _info_table(
            [
                ["Phong:", f"{room.name} - {motel.name}"],
                ["Dia chi:", motel.address],
                ["Dien tich:", f"{room.area:g} m2" if room.area else "N/A"],
                ["Loai phong:", room.room_type],
            ]
        ),
        Paragraph("DIEU KHOAN", styles["heading"]),
        _info_table(
            [
                ["Ngay bat dau:", format_date(contract.start_date)],
                ["Ngay ket thuc:", format_date(contract.end_date)],
                ["Gia thue:", f"{format_money(contract.rent_price)} / thang"],
                ["Tien coc:", format_money(contract.deposit_amount)],
                ["Ngay thanh toan:", f"Ngay {contract.payment_due_day}" if contract.payment_due_day else "N/A"],
                ["Trang thai:", contract.status],
            ]
        ),
    ]

    if contract.tenants:
        rows = [["Ho ten", "Dien thoai", "CCCD", "Quan he"]]
        for entry in contract.tenants:
            rows.append(
                [
                    entry.full_name,
                    entry.phone or "-",
                    entry.identity_card or "-",
                    "Nguoi dai dien" if entry.is_primary else (entry.relationship_to_primary or "-"),
                ]
            )
        story.append(Paragraph("NGUOI O CUNG", styles["heading"]))
        story.append(_grid_table(rows, [55 * mm, 35 * mm, 40 * mm, 40 * mm]))

    story.append(Spacer(1, 12 * mm))
    story.append(Paragraph(f"Ngay in: {datetime.now().strftime('%d/%m/%Y')}", styles["footer"]))

    pdf_bytes = _build(story, f"Hop dong {contract.contract_number}")
    logger.info("document.contract_rendered", extra={"contract_id": contract.id, "size": len(pdf_bytes)})
    return pdf_bytes


def render_invoice_pdf(invoice: models.Invoice) -> bytes:
    styles = _styles()
    contract = invoice.contract
    room = contract.room
    tenant = contract.tenant

    rows = [["Dich vu", "SL", "Don gia", "Thanh tien"]]
    for item in invoice.items:
        rows.append([item.service_name, f"{item.quantity:g}", format_money(item.unit_price), format_money(item.total_price)])
    rows.append(["", "", "TONG CONG", format_money(invoice.amount_total)])

    items_table = _grid_table(rows, [70 * mm, 20 * mm, 40 * mm, 40 * mm])
    items_table.setStyle(TableStyle([("FONT", (2, -1), (-1, -1), "Helvetica-Bold", 10)]))

    remaining = (invoice.amount_total or 0) - (invoice.amount_paid or 0)
    story = [
        Paragraph("HOA DON TIEN PHONG", styles["title"]),
        Paragraph(f"So hoa don: {invoice.invoice_number}", styles["subtitle"]),
        Paragraph(f"Thang: {invoice.billing_month:%m/%Y}", styles["subtitle"]),
        Paragraph("THONG TIN KHACH THUE", styles["heading"]),
        _info_table(
            [
                ["Ho ten:", tenant.full_name if tenant else "N/A"],
                ["Dien thoai:", (tenant.phone if tenant else None) or "N/A"],
                ["Phong:", f"{room.name} - {room.motel.name}"],
                ["Dia chi:", room.motel.address],
                ["Hop dong:", contract.contract_number],
            ]
        ),
        Paragraph("CHI TIET", styles["heading"]),
        items_table,
        Spacer(1, 6 * mm),
        _info_table(
            [
                ["Da thanh toan:", format_money(invoice.amount_paid)],
                ["Con lai:", format_money(max(remaining, 0))],
                ["Han thanh toan:", format_date(invoice.due_date)],
                ["Trang thai:", invoice.status],
            ]
        ),
        Spacer(1, 12 * mm),
        Paragraph(f"Ngay tao: {datetime.now().strftime('%d/%m/%Y')}", styles["footer"]),
    ]

    pdf_bytes = _build(story, f"Hoa don {invoice.invoice_number}")
    logger.info("document.invoice_rendered", extra={"invoice_id": invoice.id, "size": len(pdf_bytes)})
    return pdf_bytes
