from __future__ import annotations

import asyncio
import io
import json

import httpx
import pytest
from PIL import Image

from notepdf.rasterize import (
    HttpRasterizer,
    LocalRasterizer,
    RasterizationBridge,
    RasterizeError,
    callout_outline,
    normalize_callouts,
    render_fragment_html,
)


def _png(width: int, height: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (255, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


def test_normalize_callouts_to_containers() -> None:
    src = "> [!tip] Title\n> body\ntext"
    assert normalize_callouts(src) == "::: tip Title\nbody\n:::\ntext"
    assert normalize_callouts("> [!custom]\n> x") == "::: note\nx\n:::"
    assert normalize_callouts("> [!WARNING]- Folded") == "::: warning Folded\n:::"


def test_callout_outline() -> None:
    assert callout_outline("> [!tip] Be kind\n> line one") == ("tip", "Be kind", ["line one"])
    kind, title, body = callout_outline("> [!info]\n> - a\n> - b")
    assert (kind, title) == ("info", "Info")
    assert body == ["- a", "- b"]


def test_plain_quote_outline() -> None:
    assert callout_outline("> just a quote") == ("quote", "", ["just a quote"])


def test_fragment_html_uses_callout_class() -> None:
    html = render_fragment_html("> [!info] Heads up\n> body")
    assert 'class="info"' in html
    assert "body" in html


def test_local_rasterizer_callout() -> None:
    raster = asyncio.run(LocalRasterizer().rasterize("> [!warning] Careful\n> text", theme="light", width=700))
    assert raster.png.startswith(b"\x89PNG")
    assert raster.width == 1400
    assert raster.height > 0
    assert raster.width_mm == pytest.approx(700 * 0.264583)


def test_local_rasterizer_math() -> None:
    raster = asyncio.run(LocalRasterizer().rasterize("$x^2$", theme="dark", width=None))
    with Image.open(io.BytesIO(raster.png)) as img:
        assert img.mode == "RGBA"
        assert img.size == (raster.width, raster.height)


def test_http_rasterizer_posts_markup() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, content=_png(300, 80), headers={"content-type": "image/png"})

    client = HttpRasterizer("http://render.local/", transport=httpx.MockTransport(handler))
    raster = asyncio.run(client.rasterize("> [!note] hi", theme="dark", width=700))

    assert seen["url"] == "http://render.local/rasterize"
    payload = seen["payload"]
    assert payload["markdown"] == "> [!note] hi"
    assert payload["theme"] == "dark"
    assert payload["width"] == 700
    assert payload["scale"] == 2
    assert 'class="note"' in payload["html"]
    assert (raster.width, raster.height) == (300, 80)


def test_http_rasterizer_errors() -> None:
    def failing(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    def empty(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"")

    with pytest.raises(RasterizeError):
        asyncio.run(HttpRasterizer("http://x", transport=httpx.MockTransport(failing)).rasterize("$a$", theme="light", width=None))
    with pytest.raises(RasterizeError, match="empty"):
        asyncio.run(HttpRasterizer("http://x", transport=httpx.MockTransport(empty)).rasterize("$a$", theme="light", width=None))


def test_bridge_reports_failures(fake_rasterizer) -> None:
    bridge = RasterizationBridge(fake_rasterizer(fail=True))
    assert asyncio.run(bridge.rasterize("$x$", theme="light")) is None
    assert bridge.failures == ["Rasterization failed: renderer offline"]


def test_bridge_times_out() -> None:
    class _Stalled:
        async def rasterize(self, markup, *, theme, width):
            await asyncio.sleep(1)

    bridge = RasterizationBridge(_Stalled(), timeout_s=0.01)
    assert asyncio.run(bridge.rasterize("$x$", theme="light")) is None
    assert len(bridge.failures) == 1
    assert "timed out" in bridge.failures[0]
