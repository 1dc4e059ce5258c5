from io import BytesIO

from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from cutflow.config import settings
from cutflow.models.order import Order
from cutflow.models.user import User


def invoice_number(order_id: int) -> str:
    return f"INV-{order_id:08d}"


def render_invoice_pdf(order: Order, creator: User) -> bytes:
    """Single-page invoice for the editing services on ``order``."""
    buffer = BytesIO()

    c = canvas.Canvas(buffer, pagesize=letter)
    width, height = letter
    y = height - 60

    # Header
    c.setFont("Helvetica-Bold", 20)
    c.drawString(72, y, settings.PLATFORM_NAME)
    c.setFont("Helvetica-Bold", 14)
    c.drawRightString(width - 72, y, "INVOICE")
    y -= 24

    c.setFont("Helvetica", 11)
    c.drawRightString(width - 72, y, f"Invoice #: {invoice_number(order.id)}")
    y -= 16
    issued = order.completed_at or order.created_at
    c.drawRightString(width - 72, y, f"Date: {issued.strftime('%Y-%m-%d')}")
    y -= 36

    # Bill to
    c.setFont("Helvetica-Bold", 12)
    c.drawString(72, y, "Bill To:")
    y -= 18
    c.setFont("Helvetica", 11)
    c.drawString(72, y, creator.name)
    y -= 16
    c.drawString(72, y, creator.email)
    y -= 36

    # Line item
    c.setFont("Helvetica-Bold", 11)
    c.drawString(72, y, "Description")
    c.drawRightString(width - 72, y, "Amount")
    y -= 8
    c.line(72, y, width - 72, y)
    y -= 18

    amount = order.amount or 0
    c.setFont("Helvetica", 11)
    c.drawString(72, y, f'Video Editing Services for "{order.title}"')
    c.drawRightString(width - 72, y, f"{amount:,.2f}")
    y -= 12
    c.line(72, y, width - 72, y)
    y -= 24

    # Total
    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(width - 72, y, f"Total: {order.currency} {amount:,.2f}")
    y -= 18
    c.setFont("Helvetica", 10)
    payment_status = getattr(order.payment_status, "value", order.payment_status)
    c.drawRightString(width - 72, y, f"Payment status: {payment_status}")

    c.showPage()
    c.save()

    return buffer.getvalue()
