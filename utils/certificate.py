# utils/certificate.py
import io, logging, re
from pathlib import Path

import requests
from dateutil import parser as dtparse
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

log = logging.getLogger(__name__)

PAGE_W, PAGE_H = landscape(A4)

DARK_GREEN = (0, 100 / 255, 0)
LIGHT_GREEN = (34 / 255, 197 / 255, 94 / 255)
INK_BLUE = (0, 0, 139 / 255)

def certificate_filename(member_name: str) -> str:
    stem = re.sub(r"\s+", "_", member_name.strip())
    return f"{stem}_Certificate.pdf"

def format_joined_date(joined_date: str) -> str:
    """'2026-10-19T05:30:00.000Z' -> '19 October 2026'"""
    try:
        d = dtparse.parse(joined_date)
    except (ValueError, OverflowError, TypeError):
        return joined_date or ""
    return f"{d.day} {d.strftime('%B %Y')}"

def load_logo(source: str | None) -> bytes | None:
    if not source:
        return None
    if source.startswith(("http://", "https://")):
        r = requests.get(source, timeout=10)
        r.raise_for_status()
        return r.content
    return Path(source).read_bytes()


class CertificateGenerator:
    """
    Draws the membership certificate: landscape A4, two borders, the logo,
    member name, boilerplate and a signature block. Output is the PDF bytes.
    """
    TITLE = "CERTIFICATE OF MEMBER"

    def __init__(self, settings, fetch_logo=None):
        self.foundation_name = settings.foundation_name
        self.logo_source = settings.logo_path
        self.fetch_logo = fetch_logo or load_logo

    def description_lines(self) -> list[str]:
        return [
            f"has been accepted as a valued member of {self.foundation_name}.",
            "As a member, you are now part of our mission to serve the community",
            "and uphold the values and ideals of Shaheed Bhagat Singh.",
            "Together, we work towards social welfare, education, and empowerment.",
        ]

    def _logo(self):
        try:
            data = self.fetch_logo(self.logo_source)
            return ImageReader(io.BytesIO(data)) if data else None
        except Exception:
            # certificate is still valid without the logo
            log.exception("Error loading logo from %r", self.logo_source)
            return None

    def generate(self, member_name: str, joined_date: str, founder_name: str) -> bytes:
        buf = io.BytesIO()
        # invariant: no timestamps or random ids in the file
        c = canvas.Canvas(buf, pagesize=(PAGE_W, PAGE_H), invariant=1)
        c.setTitle(f"{self.TITLE} - {member_name}")
        c.setAuthor(self.foundation_name)

        def top(y_mm):
            return PAGE_H - y_mm * mm

        cx = PAGE_W / 2

        c.setFillColorRGB(1, 1, 1)
        c.rect(0, 0, PAGE_W, PAGE_H, stroke=0, fill=1)

        c.setLineWidth(2 * mm)
        c.setStrokeColorRGB(*DARK_GREEN)
        c.rect(10 * mm, 10 * mm, PAGE_W - 20 * mm, PAGE_H - 20 * mm, stroke=1, fill=0)

        c.setLineWidth(0.5 * mm)
        c.setStrokeColorRGB(*LIGHT_GREEN)
        c.rect(15 * mm, 15 * mm, PAGE_W - 30 * mm, PAGE_H - 30 * mm, stroke=1, fill=0)

        logo = self._logo()
        if logo is not None:
            c.drawImage(logo, cx - 25 * mm, top(75), width=50 * mm, height=50 * mm,
                        preserveAspectRatio=True, mask="auto")

        c.setFillColorRGB(0, 0, 0)
        c.setFont("Helvetica-Bold", 40)
        c.drawCentredString(cx, top(90), self.TITLE)

        c.setFillColorRGB(60 / 255, 60 / 255, 60 / 255)
        c.setFont("Helvetica", 16)
        c.drawCentredString(cx, top(100), self.foundation_name.upper())

        c.setLineWidth(0.5 * mm)
        c.setStrokeColorRGB(200 / 255, 200 / 255, 200 / 255)
        c.line(50 * mm, top(105), PAGE_W - 50 * mm, top(105))

        c.setFillColorRGB(0, 0, 0)
        c.setFont("Helvetica", 14)
        c.drawCentredString(cx, top(120), "This is to certify that")

        c.setFillColorRGB(*DARK_GREEN)
        c.setFont("Helvetica-Bold", 28)
        c.drawCentredString(cx, top(135), member_name)

        c.setFillColorRGB(60 / 255, 60 / 255, 60 / 255)
        c.setFont("Helvetica", 12)
        y = 145
        for line in self.description_lines():
            c.drawCentredString(cx, top(y), line)
            y += 6

        c.setFillColorRGB(0, 0, 0)
        c.drawCentredString(cx, top(175), f"Date of Joining: {format_joined_date(joined_date)}")

        # signature block, bottom right
        sig_x = PAGE_W - 60 * mm
        c.setFillColorRGB(*INK_BLUE)
        c.setFont("Times-Italic", 16)
        c.drawCentredString(sig_x, 42 * mm, founder_name)

        c.setLineWidth(0.5 * mm)
        c.setStrokeColorRGB(*INK_BLUE)
        start_x, end_x, line_y = PAGE_W - 78 * mm, PAGE_W - 42 * mm, 39 * mm
        c.line(start_x, line_y, end_x, line_y)
        c.line(end_x, line_y, end_x + 2 * mm, line_y + 1 * mm)

        c.setFillColorRGB(0, 0, 0)
        c.setFont("Helvetica-Bold", 11)
        c.drawCentredString(sig_x, 32 * mm, "Founder/Chairman")
        c.setFont("Helvetica", 10)
        c.drawCentredString(sig_x, 27 * mm, founder_name)
        c.setFont("Helvetica", 9)
        c.drawCentredString(sig_x, 22 * mm, self.foundation_name)

        c.showPage()
        c.save()
        return buf.getvalue()
