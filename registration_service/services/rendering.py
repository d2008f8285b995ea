# registration_service/services/rendering.py
"""Ticket and certificate artifacts. Pure functions of already-validated data."""
from io import BytesIO

import qrcode
from reportlab.lib.pagesizes import A4, A6, landscape
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from registration_service.core.config import settings


def render_qr_png(data: str, box_size: int = 10) -> bytes:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=box_size,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def render_ticket_pdf(ticket, registration) -> bytes:
    """One A6 page: event header, holder, ticket number and the QR code."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A6)
    width, height = A6

    c.setFont("Helvetica-Bold", 13)
    c.drawCentredString(width / 2.0, height - 14 * mm, settings.EVENT_NAME)
    c.setFont("Helvetica", 8)
    c.drawCentredString(
        width / 2.0, height - 19 * mm, f"{settings.EVENT_DATE} - {settings.EVENT_VENUE}"
    )

    c.setFont("Helvetica-Bold", 11)
    c.drawCentredString(width / 2.0, height - 28 * mm, ticket.holder_name)
    c.setFont("Helvetica", 8)
    c.drawCentredString(width / 2.0, height - 33 * mm, f"{ticket.role.title()} - {registration.display_name}")

    qr_size = 55 * mm
    qr_image = ImageReader(BytesIO(render_qr_png(ticket.qr_payload, box_size=6)))
    c.drawImage(qr_image, (width - qr_size) / 2.0, 22 * mm, width=qr_size, height=qr_size)

    c.setFont("Courier-Bold", 9)
    c.drawCentredString(width / 2.0, 16 * mm, ticket.ticket_number)
    c.setFont("Helvetica", 7)
    c.drawCentredString(width / 2.0, 11 * mm, f"Tracking number: {registration.tracking_number}")

    c.showPage()
    c.save()
    return buffer.getvalue()


def render_certificate_pdf(certificate: dict) -> bytes:
    """Landscape A4 participation certificate."""
    buffer = BytesIO()
    pagesize = landscape(A4)
    c = canvas.Canvas(buffer, pagesize=pagesize)
    width, height = pagesize

    margin = 12 * mm
    c.setStrokeColorRGB(0.12, 0.3, 0.6)
    c.setLineWidth(3)
    c.roundRect(margin, margin, width - 2 * margin, height - 2 * margin, 12, stroke=1, fill=0)

    c.setFillColorRGB(0.1, 0.2, 0.5)
    c.setFont("Helvetica-Bold", 34)
    c.drawCentredString(width / 2.0, height - 45 * mm, "CERTIFICATE OF PARTICIPATION")

    c.setFillColorRGB(0.1, 0.1, 0.1)
    c.setFont("Helvetica", 14)
    c.drawCentredString(width / 2.0, height - 62 * mm, "This is to certify that")

    c.setFont("Helvetica-Bold", 28)
    c.drawCentredString(width / 2.0, height - 80 * mm, certificate["participant_name"])

    c.setFont("Helvetica", 14)
    line = f"participated in {certificate['event_name']} held on {certificate['event_date']}"
    c.drawCentredString(width / 2.0, height - 96 * mm, line)
    if certificate.get("school_name"):
        c.drawCentredString(
            width / 2.0, height - 104 * mm, f"representing {certificate['school_name']}"
        )
    elif certificate.get("state"):
        origin = ", ".join(p for p in (certificate.get("lga"), certificate["state"]) if p)
        c.drawCentredString(width / 2.0, height - 104 * mm, f"of {origin}")

    c.setFont("Helvetica", 9)
    c.drawString(margin + 8 * mm, margin + 8 * mm, f"Ticket: {certificate['ticket_number']}")
    c.drawRightString(
        width - margin - 8 * mm,
        margin + 8 * mm,
        f"Tracking number: {certificate['tracking_number']}",
    )

    c.showPage()
    c.save()
    return buffer.getvalue()
