"""Unit tests for loginrelay.render.qr."""

from __future__ import annotations

import base64

import pytest

from loginrelay.config.settings import build_settings
from loginrelay.render.qr import QrRenderError, render_qr_data_url, render_qr_png

_PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


class TestRenderQrPng:
    def test_produces_png(self):
        png = render_qr_png("verus://1/login-consent-request/abc")
        assert png.startswith(_PNG_MAGIC)

    def test_oversized_payload(self):
        with pytest.raises(QrRenderError):
            render_qr_png("x" * 8000)


class TestRenderQrDataUrl:
    def test_data_url(self):
        settings = build_settings({}).qr
        url = render_qr_data_url("verus://1/login-consent-request/abc", settings)
        prefix = "data:image/png;base64,"
        assert url.startswith(prefix)
        assert base64.b64decode(url[len(prefix) :]).startswith(_PNG_MAGIC)
