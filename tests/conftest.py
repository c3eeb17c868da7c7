from __future__ import annotations

import io

import pytest
from PIL import Image

from shotguide.config import AppConfig


@pytest.fixture
def cfg() -> AppConfig:
    return AppConfig(
        openrouter_api_key="test-key",
        plan_model="test/plan-model",
        image_model="test/image-model",
        request_timeout_sec=5,
        transport="sdk",
        http_referer="http://localhost",
        app_title="Product Shot Guide",
    )


@pytest.fixture
def make_image_bytes():
    def _make(fmt: str = "PNG", size=(4, 4)) -> bytes:
        buf = io.BytesIO()
        Image.new("RGB", size, (200, 30, 30)).save(buf, format=fmt)
        return buf.getvalue()

    return _make
