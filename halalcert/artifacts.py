"""
QR code and printable document generation for certificates.

Both generators are pure: they depend only on their inputs and never touch
the network or the store.
"""

import logging
import math
from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from qrcode.exceptions import DataOverflowError
from qrcode.image.pil import PilImage
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from .exceptions import GenerationError
from .models import CertificateFields, ensure_utc, qr_data_url

logger = logging.getLogger(__name__)


def build_verification_url(base_url: str, certificate_number: str) -> str:
    """
    Builds the URL embedded in a certificate QR code.

    The {base_url}/verify/{number} shape is what scanners of already printed
    certificates rely on.

    Args:
        base_url: Public base URL of the verification site
        certificate_number: Certificate number

    Returns:
        str: Verification URL
    """
    return f"{base_url.rstrip('/')}/verify/{certificate_number}"


class QRCodeEncoder:
    """Encoder of verification URLs into QR code PNG images."""

    def __init__(self, min_size: int = 300, border: int = 2):
        """
        Args:
            min_size: Minimal image side in pixels
            border: Quiet zone in modules
        """
        self.min_size = min_size
        self.border = border

    def encode(self, verification_url: str) -> bytes:
        """
        Encodes a URL into a QR code with medium error correction.

        Args:
            verification_url: URL to embed

        Returns:
            bytes: PNG image at least min_size x min_size pixels

        Raises:
            GenerationError: If the URL cannot be encoded
        """
        if not verification_url:
            raise GenerationError("Nothing to encode into a QR code")

        try:
            qr = qrcode.QRCode(
                version=None,
                error_correction=ERROR_CORRECT_M,
                box_size=1,
                border=self.border,
                image_factory=PilImage
            )
            qr.add_data(verification_url)
            qr.make(fit=True)

            # Scale modules so the whole image reaches the minimal size
            modules = qr.modules_count + 2 * self.border
            qr.box_size = max(1, math.ceil(self.min_size / modules))

            image = qr.make_image(fill_color="black", back_color="white")
            buffer = BytesIO()
            image.save(buffer, format="PNG")
            return buffer.getvalue()

        except (DataOverflowError, ValueError) as e:
            logger.error(f"QR code generation failed for {verification_url}: {e}")
            raise GenerationError(f"QR code generation failed: {e}") from e

    @staticmethod
    def to_data_url(png: bytes) -> str:
        """Returns the PNG as a data URL."""
        return qr_data_url(png)


class CertificateRenderer:
    """Renderer of fixed-layout printable certificates (A4 PDF)."""

    date_format = "%d %B %Y"

    def __init__(self):
        self.page_width, self.page_height = A4
        self.accent = colors.HexColor("#1f6f43")
        self.text_color = colors.HexColor("#1a202c")

    def render(self, fields: CertificateFields) -> bytes:
        """
        Renders a certificate document.

        The output is byte-for-byte identical for identical inputs: the PDF
        is produced in invariant mode, without creation timestamps or random
        document ids.

        Args:
            fields: Printed fields of the certificate

        Returns:
            bytes: PDF document

        Raises:
            GenerationError: If the document cannot be produced
        """
        buffer = BytesIO()
        try:
            pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
            pdf.setTitle(f"Halal Certificate {fields.certificate_number}")
            pdf.setAuthor(fields.authority_name)
            pdf.setSubject(fields.subject_name)

            self._draw_frame(pdf)
            self._draw_header(pdf, fields)
            self._draw_subject(pdf, fields)
            self._draw_validity(pdf, fields)
            self._draw_qr(pdf, fields)

            pdf.showPage()
            pdf.save()
        except (OSError, ValueError) as e:
            logger.error(f"Rendering of certificate {fields.certificate_number} failed: {e}")
            raise GenerationError(f"Certificate rendering failed: {e}") from e

        return buffer.getvalue()

    def _draw_frame(self, pdf: canvas.Canvas):
        margin = 12 * mm
        pdf.setStrokeColor(self.accent)
        pdf.setLineWidth(3)
        pdf.rect(margin, margin, self.page_width - 2 * margin, self.page_height - 2 * margin)
        pdf.setLineWidth(1)
        inner = margin + 4 * mm
        pdf.rect(inner, inner, self.page_width - 2 * inner, self.page_height - 2 * inner)

    def _draw_header(self, pdf: canvas.Canvas, fields: CertificateFields):
        center = self.page_width / 2
        pdf.setFillColor(self.accent)
        pdf.setFont("Helvetica-Bold", 14)
        pdf.drawCentredString(center, self.page_height - 40 * mm, fields.authority_name.upper())
        pdf.setFont("Helvetica-Bold", 30)
        pdf.drawCentredString(center, self.page_height - 60 * mm, "Halal Certificate")
        pdf.setFillColor(self.text_color)
        pdf.setFont("Helvetica", 12)
        pdf.drawCentredString(center, self.page_height - 72 * mm, "This is to certify that")

    def _draw_subject(self, pdf: canvas.Canvas, fields: CertificateFields):
        center = self.page_width / 2
        pdf.setFont("Helvetica-Bold", 22)
        pdf.drawCentredString(center, self.page_height - 88 * mm, fields.subject_name)

        pdf.setFont("Helvetica", 12)
        y = self.page_height - 98 * mm
        for line in simpleSplit(fields.address, "Helvetica", 12, self.page_width - 60 * mm):
            pdf.drawCentredString(center, y, line)
            y -= 6 * mm

        pdf.drawCentredString(
            center, y - 4 * mm,
            "has been inspected and complies with halal certification standards."
        )

    def _draw_validity(self, pdf: canvas.Canvas, fields: CertificateFields):
        left = 30 * mm
        y = self.page_height - 140 * mm
        rows = (
            ("Certificate No.", fields.certificate_number),
            ("Issued", ensure_utc(fields.issued_date).strftime(self.date_format)),
            ("Valid until", ensure_utc(fields.expiry_date).strftime(self.date_format)),
        )
        for label, value in rows:
            pdf.setFont("Helvetica", 11)
            pdf.drawString(left, y, label)
            pdf.setFont("Helvetica-Bold", 12)
            pdf.drawString(left + 40 * mm, y, value)
            y -= 9 * mm

    def _draw_qr(self, pdf: canvas.Canvas, fields: CertificateFields):
        size = 50 * mm
        x = self.page_width - 30 * mm - size
        y = 40 * mm
        pdf.drawImage(ImageReader(BytesIO(fields.qr_code)), x, y, width=size, height=size)
        pdf.setFont("Helvetica", 9)
        pdf.drawCentredString(x + size / 2, y - 5 * mm, "Scan to verify this certificate")
