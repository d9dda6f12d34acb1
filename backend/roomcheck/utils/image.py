import base64
import io
import logging

import qrcode
from qrcode.constants import ERROR_CORRECT_M

logger = logging.getLogger(__name__)


def render_qr_png(data: str, box_size: int = 10, border: int = 2) -> bytes:
    """Render data as a PNG QR code"""
    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")

    output = io.BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


def qr_data_url(data: str) -> str:
    """
    Render a QR code and return it as a base64 data URL
    suitable for an <img> tag.
    """
    png_bytes = render_qr_png(data)
    encoded = base64.b64encode(png_bytes).decode("utf-8")
    logger.debug(f"Rendered QR image ({len(png_bytes)} bytes)")
    return f"data:image/png;base64,{encoded}"
