from __future__ import annotations

import io
from datetime import datetime, timezone

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from app.core.config import settings


def render_voucher_pdf_bytes(*, reference: str, customer_name: str, customer_email: str, tour_title: str,
                             location: str, start_date: str, end_date: str, adults: int, children: int,
                             total_amount: str, payment_id: str = "", special_requests: str = "") -> bytes:
    """Return an A4 PDF bytes. Pure function."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    _, h = A4

    # Header
    c.setFont("Helvetica-Bold", 18)
    c.drawString(40, h - 60, "GoFly Booking Confirmation")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 80, f"Booking Reference: {reference}")
    if payment_id:
        c.drawString(40, h - 96, f"Payment ID: {payment_id}")

    # Traveler block
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, h - 130, "Lead traveler")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 148, customer_name or "(Not provided)")
    c.drawString(40, h - 164, customer_email)

    # Trip block
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, h - 200, "Tour")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 218, tour_title)
    c.drawString(40, h - 234, f"Location: {location}")
    c.drawString(40, h - 250, f"Dates:    {start_date} - {end_date}")
    travelers = f"{adults} adult(s)" + (f", {children} child(ren)" if children else "")
    c.drawString(40, h - 266, f"Travelers: {travelers}")
    if special_requests:
        c.drawString(40, h - 282, f"Requests: {special_requests[:90]}")

    # Payment
    c.setFont("Helvetica-Bold", 12)
    c.drawString(40, h - 320, "Payment")
    c.setFont("Helvetica", 11)
    c.drawString(40, h - 338, f"Total paid: {total_amount}")

    # Footer
    c.setFont("Helvetica", 9)
    c.drawString(40, 54, f"Questions? Write to {settings.SUPPORT_EMAIL}")
    c.drawString(40, 40, "This voucher is generated automatically after successful payment.")
    c.drawString(40, 26, f"Generated: {datetime.now(timezone.utc).isoformat()}")

    c.showPage()
    c.save()
    return buf.getvalue()
