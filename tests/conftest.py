"""Shared fakes for the export pipeline tests."""
from __future__ import annotations

import asyncio
import io
from datetime import datetime

import pytest
from PIL import Image

from notepdf.images import ImageAsset
from notepdf.pdf_export import generate_pdf
from notepdf.rasterize import Raster
from notepdf.schemas import PdfSettings

NOW = datetime(2024, 3, 5, 14, 7, 9)


def png_bytes(width: int, height: int, *, fmt: str = "PNG", color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


class FakeRasterizer:
    def __init__(self, *, fail: bool = False, size: tuple[int, int] = (400, 100)) -> None:
        self.fail = fail
        self.size = size
        self.calls: list[tuple[str, str, int | None]] = []

    async def rasterize(self, markup: str, *, theme: str, width: int | None) -> Raster:
        self.calls.append((markup, theme, width))
        if self.fail:
            raise RuntimeError("renderer offline")
        w, h = self.size
        return Raster(png_bytes(w, h), w, h)


class DictResolver:
    def __init__(self, assets: dict[str, ImageAsset] | None = None) -> None:
        self.assets = dict(assets or {})
        self.requested: list[str] = []

    async def resolve(self, target: str) -> ImageAsset | None:
        self.requested.append(target)
        return self.assets.get(target)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def image_asset():
    def _make(width: int, height: int, fmt: str = "PNG") -> ImageAsset:
        return ImageAsset(png_bytes(width, height, fmt=fmt), width, height, fmt.upper())

    return _make


@pytest.fixture
def fake_rasterizer():
    return FakeRasterizer


@pytest.fixture
def dict_resolver():
    return DictResolver


@pytest.fixture
def render():
    """Run a full generation pass with fakes; keyword arguments become settings."""

    def _render(text: str, *, resolver=None, rasterizer=None, title: str = "Note", **settings):
        values = {"show_title": False}
        values.update(settings)
        return asyncio.run(
            generate_pdf(
                text,
                PdfSettings(**values),
                title=title,
                resolver=resolver or DictResolver(),
                rasterizer=rasterizer or FakeRasterizer(),
                now=NOW,
            )
        )

    return _render
