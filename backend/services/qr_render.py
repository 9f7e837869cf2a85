"""
QR rendering for the login challenge.

The page publishes the challenge as a string (the QR element's data-ref).
Operators scan it either from the log output (terminal blocks) or from an
image served by GET /api/workers/{id}/qr?format=svg|png.
"""

import io
from typing import Dict

import segno

from errors import ErrorCode, ValidationError

IMAGE_TYPES: Dict[str, str] = {
    "svg": "image/svg+xml",
    "png": "image/png",
}


def _qr(code: str) -> segno.QRCode:
    return segno.make_qr(code, error="l")


def render_terminal(code: str) -> str:
    """Compact block-character rendering, two modules per text row."""
    out = io.StringIO()
    _qr(code).terminal(out=out, compact=True, border=1)
    return out.getvalue()


def render_image(code: str, kind: str = "svg", scale: int = 6) -> bytes:
    """Encode the challenge as an SVG or PNG image."""
    if kind not in IMAGE_TYPES:
        raise ValidationError(
            "Unsupported QR image format",
            parameter="format",
            expected=", ".join(IMAGE_TYPES),
            received=kind,
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
        )
    out = io.BytesIO()
    _qr(code).save(out, kind=kind, scale=scale, border=2)
    return out.getvalue()
