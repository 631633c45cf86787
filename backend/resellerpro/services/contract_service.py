# Overview: Renders the subscription contract note PDF attached to confirmation emails.

from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import datetime

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from resellerpro.time_utils import utcnow


BRAND_BLUE = HexColor('#1A66CC')
BOX_FILL = HexColor('#F7FAFF')
BOX_BORDER = HexColor('#D9E6F2')
LABEL_GRAY = HexColor('#666666')
FOOTER_GRAY = HexColor('#999999')
WHITE = HexColor('#FFFFFF')
BLACK = HexColor('#000000')

W, H = A4
MARGIN = 50

TERMS = (
    "The subscription renews only when you pay again; there is no automatic charge.",
    "Plan limits apply from the start date until the end date shown above.",
    "Wallet credits used for this purchase are non-refundable.",
    "After the end date the account returns to the Free plan; your data is kept.",
)


@dataclass
class ContractData:
    user_name: str
    plan_name: str
    amount_paise: int
    start_date: datetime
    end_date: datetime | None


def _fmt_date(dt: datetime | None) -> str:
    return dt.strftime("%d %b %Y") if dt else "-"


def _fmt_amount(paise: int) -> str:
    # Standard PDF fonts have no rupee glyph
    return f"INR {paise / 100:,.2f}"


def generate_contract_pdf(data: ContractData) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle("ResellerPro Subscription Contract")
    c.setAuthor("ResellerPro")

    # Header band
    c.setFillColor(BRAND_BLUE)
    c.rect(0, H - 100, W, 100, fill=1, stroke=0)
    c.setFillColor(WHITE)
    c.setFont("Helvetica-Bold", 24)
    c.drawString(MARGIN, H - 60, "RESELLER PRO")
    c.setFont("Helvetica", 14)
    c.drawString(MARGIN, H - 85, "Official Subscription Contract")
    c.setFont("Helvetica", 10)
    c.drawRightString(W - MARGIN, H - 60, f"Generated: {_fmt_date(utcnow())}")

    # Subscriber box
    y = H - 150
    c.setFillColor(LABEL_GRAY)
    c.setFont("Helvetica-Bold", 10)
    c.drawString(MARGIN, y, "SUBSCRIBER INFORMATION")

    box_h = 170
    box_top = y - 10
    c.setFillColor(BOX_FILL)
    c.setStrokeColor(BOX_BORDER)
    c.rect(MARGIN, box_top - box_h, W - 2 * MARGIN, box_h, fill=1, stroke=1)

    rows = (
        ("Subscriber", data.user_name),
        ("Plan", data.plan_name),
        ("Amount Paid", _fmt_amount(data.amount_paise)),
        ("Start Date", _fmt_date(data.start_date)),
        ("End Date", _fmt_date(data.end_date)),
    )
    row_y = box_top - 30
    for label, value in rows:
        c.setFillColor(LABEL_GRAY)
        c.setFont("Helvetica", 10)
        c.drawString(MARGIN + 20, row_y, label)
        c.setFillColor(BLACK)
        c.setFont("Helvetica-Bold", 12)
        c.drawString(MARGIN + 180, row_y, str(value))
        row_y -= 30

    # Terms
    y = box_top - box_h - 40
    c.setFillColor(LABEL_GRAY)
    c.setFont("Helvetica-Bold", 10)
    c.drawString(MARGIN, y, "TERMS")
    c.setFillColor(BLACK)
    c.setFont("Helvetica", 10)
    for i, term in enumerate(TERMS, start=1):
        y -= 20
        c.drawString(MARGIN, y, f"{i}. {term}")

    c.setFillColor(FOOTER_GRAY)
    c.setFont("Helvetica", 8)
    c.drawCentredString(W / 2, 40, "This is a system generated document and does not require a signature.")

    c.showPage()
    c.save()
    return buf.getvalue()
