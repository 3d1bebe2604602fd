import base64
import io
from urllib.parse import urlencode

import qrcode


def build_scan_url(scheme: str, params: dict) -> str:
    """
    Wallet deep link, e.g. ``elaphant://identity?CallbackUrl=...&AppID=...``.
    Field order is kept as given.
    """
    return f"{scheme}://identity?{urlencode(params)}"


def qr_png_base64(data: str, *, box_size: int = 5, border: int = 2) -> str:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("utf-8")
