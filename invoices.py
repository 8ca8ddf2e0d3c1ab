"""
Invoice / shipping-label PDF for an order, drawn with reportlab.
"""

import io
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from pymongo.database import Database
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from config import Settings, get_settings
from database import get_db
from orders import get_order
from security import get_current_user

log = logging.getLogger(__name__)

router = APIRouter(prefix="/pdf", tags=["pdf"])

LEFT = 20
RIGHT_COL = 330
PAGE_BOTTOM = 60


def _money(value) -> str:
    return f"Rs. {float(value or 0):.2f}"


def seller_info(settings: Settings) -> dict:
    return {
        "name": settings.store_name,
        "address": settings.store_address,
        "phone": settings.store_phone,
        "gstin": settings.store_gstin,
    }


def render_invoice(order: dict, seller: dict) -> bytes:
    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=A4)
    width, height = A4
    pdf.setTitle(f"order-{order['_id']}")

    pdf.setFont("Helvetica-Bold", 18)
    pdf.drawRightString(width - LEFT, height - 40, "Shipping / Invoice")

    # order details and courier block
    top = height - 90
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(LEFT, top, "Order Details")
    pdf.drawString(RIGHT_COL, top, "Courier / AWB")
    pdf.setFont("Helvetica", 10)
    created = order.get("created_at")
    lines = [
        f"Order ID: {order['_id']}",
        f"Order Date: {created.strftime('%d %b %Y %H:%M') if created else 'N/A'}",
        f"Payment: {order.get('payment_method') or 'N/A'}",
        f"Status: {order.get('status') or 'N/A'}",
    ]
    for i, line in enumerate(lines, start=1):
        pdf.drawString(LEFT, top - 14 * i, line)
    pdf.drawString(RIGHT_COL, top - 14, "AWB No.:")
    pdf.drawString(RIGHT_COL, top - 28, order.get("tracking_number") or "N/A")
    pdf.line(LEFT, top - 78, width - LEFT, top - 78)

    # ship to / shipped by
    top -= 96
    ship = order.get("shipping_address") or {}
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(LEFT, top, "Ship To:")
    pdf.drawString(LEFT + 280, top, "Shipped By:")
    pdf.setFont("Helvetica", 10)
    ship_lines = [
        ship.get("full_name") or "N/A",
        ship.get("address") or "N/A",
        f"{ship.get('city') or ''} - {ship.get('postal_code') or ''}",
        ship.get("state") or "",
        f"Phone: {ship.get('phone') or 'N/A'}",
    ]
    seller_lines = [
        seller["name"],
        seller["address"],
        f"Phone: {seller['phone']}",
        f"GSTIN: {seller['gstin']}",
    ]
    for i, line in enumerate(ship_lines, start=1):
        pdf.drawString(LEFT, top - 14 * i, line)
    for i, line in enumerate(seller_lines, start=1):
        pdf.drawString(LEFT + 280, top - 14 * i, line)
    pdf.line(LEFT, top - 90, width - LEFT, top - 90)

    # item table
    y = top - 108
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(LEFT, y, "Product")
    pdf.drawRightString(LEFT + 360, y, "Qty")
    pdf.drawRightString(LEFT + 440, y, "Unit Price")
    pdf.drawRightString(width - LEFT, y, "Total")
    pdf.setFont("Helvetica", 9)
    for item in order.get("order_items", []):
        y -= 16
        if y < PAGE_BOTTOM:
            pdf.showPage()
            pdf.setFont("Helvetica", 9)
            y = height - 40
        pdf.drawString(LEFT, y, str(item["name"])[:60])
        pdf.drawRightString(LEFT + 360, y, str(item["qty"]))
        pdf.drawRightString(LEFT + 440, y, _money(item["price"]))
        pdf.drawRightString(width - LEFT, y, _money(item["price"] * item["qty"]))

    # price summary
    y -= 30
    if y < PAGE_BOTTOM + 80:
        pdf.showPage()
        y = height - 40
    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(RIGHT_COL, y, "Price Summary")
    pdf.setFont("Helvetica", 10)
    pdf.drawString(RIGHT_COL, y - 18, f"Items Total: {_money(order.get('items_price'))}")
    pdf.drawString(RIGHT_COL, y - 32, f"GST: {_money(order.get('tax_price'))}")
    pdf.drawString(RIGHT_COL, y - 46, f"Shipping: {_money(order.get('shipping_price'))}")
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(RIGHT_COL, y - 66, f"Grand Total: {_money(order.get('total_price'))}")

    pdf.setFont("Helvetica", 8)
    pdf.drawCentredString(
        width / 2, 30,
        "Goods once sold will only be taken back or exchanged as per the store's exchange/return policy.",
    )
    pdf.showPage()
    pdf.save()
    return buf.getvalue()


@router.get("/invoice/{order_id}")
def invoice(
    order_id: str,
    current=Depends(get_current_user),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    order = get_order(db, order_id, current)
    content = render_invoice(order, seller_info(settings))
    log.info("Invoice rendered for order %s", order["_id"])
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=order-{order['_id']}.pdf"},
    )
