"""QR codec backed by ``qrcode`` and Pillow."""

from __future__ import annotations

import io
from typing import Protocol

import qrcode
from PIL import Image, ImageColor
from qrcode.exceptions import DataOverflowError
from qrcode.image.pil import PilImage

from core.codec.models import RenderOptions
from core.utils.errors import EncodingFailedError

# Scale used when the requested width cannot fit one pixel per module.
_FALLBACK_SCALE = 4


class Codec(Protocol):
    """Text -> PNG encoder consumed by the payload encoder."""

    def encode(self, text: str, options: RenderOptions) -> bytes:
        """Encode text as PNG bytes or raise ``EncodingFailedError``."""


class QrCodec:
    """QR code encoder with error correction level M and automatic version fit."""

    error_correction = qrcode.constants.ERROR_CORRECT_M

    def encode(self, text: str, options: RenderOptions) -> bytes:
        try:
            dark = ImageColor.getrgb(options.dark_color)[:3]
            light = ImageColor.getrgb(options.light_color)[:3]
        except ValueError as exc:
            raise EncodingFailedError(f"invalid color: {exc}", cause=exc) from exc

        qr = qrcode.QRCode(
            version=None,
            error_correction=self.error_correction,
            box_size=1,
            border=options.margin,
            image_factory=PilImage,
        )
        qr.add_data(text)
        try:
            qr.make(fit=True)
        except (DataOverflowError, ValueError) as exc:
            # qrcode 8 reports overflow as an invalid version 41.
            raise EncodingFailedError("payload exceeds QR code capacity", cause=exc) from exc

        image = qr.make_image(fill_color=dark, back_color=light).get_image().convert("RGB")
        target = _target_width(image.width, options.pixel_width)
        if target != image.width:
            image = image.resize((target, target), Image.NEAREST)

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()


def _target_width(symbol_width: int, pixel_width: int) -> int:
    if pixel_width >= symbol_width:
        return pixel_width
    return symbol_width * _FALLBACK_SCALE
