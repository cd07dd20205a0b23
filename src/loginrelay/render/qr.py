"""QR rendering for login deeplinks.

Renders a deeplink as a PNG and returns it as a ``data:`` URL that a
browser can place directly in an ``<img>`` tag.
"""

from __future__ import annotations

import base64
from io import BytesIO
from typing import TYPE_CHECKING

import qrcode
from qrcode.exceptions import DataOverflowError

if TYPE_CHECKING:
    from loginrelay.config.settings import QrSettings


class QrRenderError(Exception):
    """Raised when a payload cannot be rendered as a QR image."""


def render_qr_png(
    data: str,
    *,
    box_size: int = 10,
    border: int = 2,
    fill_color: str = "#000000",
    back_color: str = "#ffffff",
) -> bytes:
    """Render *data* as a PNG QR image."""
    try:
        qr = qrcode.QRCode(version=None, box_size=box_size, border=border)
        qr.add_data(data)
        qr.make(fit=True)
        img = qr.make_image(fill_color=fill_color, back_color=back_color)
        buffered = BytesIO()
        img.save(buffered, format="PNG")
    except (DataOverflowError, OSError, ValueError) as exc:
        msg = f"QR rendering failed: {exc}"
        raise QrRenderError(msg) from exc
    return buffered.getvalue()


def render_qr_data_url(data: str, settings: QrSettings) -> str:
    """Render *data* as a ``data:image/png;base64,...`` URL."""
    png = render_qr_png(
        data,
        box_size=settings.box_size,
        border=settings.border,
        fill_color=settings.fill_color,
        back_color=settings.back_color,
    )
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")
