"""
Tests for QR challenge rendering.
"""

import pytest

from errors import ErrorCode, ValidationError
from services.qr_render import IMAGE_TYPES, render_image, render_terminal

CHALLENGE = "2@Xk3fQ9,AbCdEfGh==,IjKlMnOp==,QrStUv=="


class TestRenderTerminal:
    def test_block_rows(self):
        text = render_terminal(CHALLENGE)
        rows = [row for row in text.splitlines() if row.strip()]

        assert len(rows) > 10
        assert any(ch in text for ch in "█▀▄")

    def test_same_code_same_rendering(self):
        assert render_terminal(CHALLENGE) == render_terminal(CHALLENGE)

    def test_rotated_code_renders_differently(self):
        assert render_terminal(CHALLENGE) != render_terminal(CHALLENGE + "x")


class TestRenderImage:
    def test_svg(self):
        assert b"<svg" in render_image(CHALLENGE, "svg")

    def test_png(self):
        assert render_image(CHALLENGE, "png").startswith(b"\x89PNG")

    def test_scale_grows_png(self):
        assert len(render_image(CHALLENGE, "png", scale=10)) > len(render_image(CHALLENGE, "png", scale=1))

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            render_image(CHALLENGE, "gif")

        assert exc_info.value.code == ErrorCode.VALIDATION_INVALID_FORMAT

    def test_media_types(self):
        assert IMAGE_TYPES == {"svg": "image/svg+xml", "png": "image/png"}
