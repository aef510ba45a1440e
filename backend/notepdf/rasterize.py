from __future__ import annotations

import asyncio
import io
import re
from dataclasses import dataclass
from typing import Protocol

import httpx
from markdown_it import MarkdownIt
from mdit_py_plugins.container import container_plugin
from mdit_py_plugins.dollarmath import dollarmath_plugin
from PIL import Image, ImageDraw, ImageFont

from .images import PX_TO_MM
from .logging_utils import get_logger

log = get_logger(__name__)

RASTER_SCALE = 2

CALLOUT_KINDS = (
    "note",
    "abstract",
    "info",
    "todo",
    "tip",
    "success",
    "question",
    "warning",
    "failure",
    "danger",
    "bug",
    "example",
    "quote",
)
_CALLOUT_RE = re.compile(r"^\s*>\s*\[!(\w+)\][+-]?\s*(.*)$")
_QUOTE_PREFIX_RE = re.compile(r"^\s*>\s?")

# (fill, stripe) per callout kind, light theme
_CALLOUT_COLORS = {
    "warning": ((240, 220, 220), (216, 92, 92)),
    "danger": ((240, 220, 220), (216, 92, 92)),
    "failure": ((240, 220, 220), (216, 92, 92)),
    "bug": ((240, 220, 220), (216, 92, 92)),
    "info": ((220, 230, 245), (88, 155, 219)),
    "note": ((220, 230, 245), (88, 155, 219)),
    "todo": ((220, 230, 245), (88, 155, 219)),
    "quote": ((235, 235, 235), (150, 150, 150)),
}
_DEFAULT_CALLOUT_COLORS = ((220, 240, 230), (63, 163, 124))


class RasterizeError(RuntimeError):
    pass


@dataclass(frozen=True)
class Raster:
    png: bytes
    width: int
    height: int
    scale: float = RASTER_SCALE

    @property
    def width_mm(self) -> float:
        return (self.width / self.scale) * PX_TO_MM

    @property
    def height_mm(self) -> float:
        return (self.height / self.scale) * PX_TO_MM


class Rasterizer(Protocol):
    async def rasterize(self, markup: str, *, theme: str, width: int | None) -> Raster: ...


def normalize_callouts(markdown: str) -> str:
    """Turn ``> [!kind] title`` callouts into ``::: kind title`` containers."""
    lines = str(markdown or "").splitlines()
    out: list[str] = []
    i = 0
    while i < len(lines):
        match = _CALLOUT_RE.match(lines[i])
        if not match:
            out.append(lines[i])
            i += 1
            continue
        kind = match.group(1).lower()
        if kind not in CALLOUT_KINDS:
            kind = "note"
        title = (match.group(2) or "").strip()
        out.append(f"::: {kind}{(' ' + title) if title else ''}")
        i += 1
        while i < len(lines) and _QUOTE_PREFIX_RE.match(lines[i]):
            if _CALLOUT_RE.match(lines[i]):
                break
            out.append(_QUOTE_PREFIX_RE.sub("", lines[i]))
            i += 1
        out.append(":::")
    return "\n".join(out)


def _build_markdown_parser() -> MarkdownIt:
    md = MarkdownIt("commonmark", {"html": True, "breaks": True})
    md.enable("table")
    md.use(dollarmath_plugin)
    for kind in CALLOUT_KINDS:
        md.use(container_plugin, kind)
    return md


_MD_PARSER: MarkdownIt | None = None


def _get_markdown_parser() -> MarkdownIt:
    global _MD_PARSER
    if _MD_PARSER is None:
        _MD_PARSER = _build_markdown_parser()
    return _MD_PARSER


def render_fragment_html(markup: str) -> str:
    return _get_markdown_parser().render(normalize_callouts(markup))


def _inline_text(token) -> str:
    if not token:
        return ""
    if not token.children:
        return token.content or ""
    parts: list[str] = []
    for child in token.children:
        if child.type in ("text", "code_inline", "math_inline"):
            parts.append(child.content)
        elif child.type in ("softbreak", "hardbreak"):
            parts.append("\n")
    return "".join(parts)


def _tokens_to_lines(tokens: list) -> list[str]:
    lines: list[str] = []
    list_stack: list[dict[str, int | str]] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        t = tok.type
        if t in {"bullet_list_open", "ordered_list_open"}:
            start = tok.attrGet("start") if hasattr(tok, "attrGet") else None
            list_stack.append({"type": "ol" if t.startswith("ordered") else "ul", "index": int(start or 1)})
        elif t in {"bullet_list_close", "ordered_list_close"}:
            if list_stack:
                list_stack.pop()
        elif t == "paragraph_open":
            inline = tokens[i + 1] if i + 1 < len(tokens) else None
            text = _inline_text(inline).strip()
            if text:
                prefix = ""
                if list_stack:
                    top = list_stack[-1]
                    if top["type"] == "ol":
                        prefix = f"{top['index']}. "
                        top["index"] = int(top["index"]) + 1
                    else:
                        prefix = "- "
                for n, ln in enumerate(text.splitlines()):
                    lines.append((prefix if n == 0 else "") + ln)
            i += 3
            continue
        elif t in {"fence", "code_block", "math_block"}:
            lines.extend(ln for ln in (tok.content or "").splitlines() if ln.strip())
        i += 1
    return lines


def callout_outline(markup: str) -> tuple[str, str, list[str]]:
    """Return ``(kind, title, body_lines)`` for a callout or plain block quote."""
    tokens = _get_markdown_parser().parse(normalize_callouts(markup))
    if tokens and tokens[0].type.startswith("container_") and tokens[0].type.endswith("_open"):
        kind = tokens[0].type[len("container_") : -len("_open")]
        parts = str(tokens[0].info or "").strip().split(None, 1)
        title = parts[1].strip() if len(parts) > 1 else kind.title()
        return kind, title, _tokens_to_lines(tokens[1:])
    return "quote", "", _tokens_to_lines(tokens)


def _png_size(data: bytes) -> tuple[int, int]:
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except Exception as e:
        raise RasterizeError(f"Rasterizer returned an unreadable image ({type(e).__name__}).") from e


def _encode_png(img: Image.Image) -> Raster:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return Raster(buf.getvalue(), img.width, img.height)


class HttpRasterizer:
    """Client for an external markup-to-PNG rendering service."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.transport = transport

    async def rasterize(self, markup: str, *, theme: str, width: int | None) -> Raster:
        payload = {
            "markdown": markup,
            "html": render_fragment_html(markup),
            "theme": theme,
            "width": width,
            "scale": RASTER_SCALE,
        }
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s), transport=self.transport) as client:
            try:
                resp = await client.post(f"{self.base_url}/rasterize", json=payload)
                resp.raise_for_status()
            except httpx.TimeoutException as e:
                raise RasterizeError(f"Rasterizer timed out after {self.timeout_s:.1f}s ({type(e).__name__}).") from e
            except httpx.HTTPError as e:
                detail = None
                if hasattr(e, "response") and e.response is not None:
                    try:
                        detail = e.response.text
                    except Exception:
                        detail = None
                msg = str(e).strip() or repr(e)
                raise RasterizeError(f"Rasterizer request failed ({type(e).__name__}): {msg} {detail or ''}".strip()) from e
        data = resp.content
        if not data:
            raise RasterizeError("Rasterizer returned an empty body.")
        w, h = _png_size(data)
        return Raster(data, w, h)


class LocalRasterizer:
    """Pillow rendition of callouts and math for hosts without a renderer."""

    def __init__(self, *, font_size: int = 14, padding: int = 12) -> None:
        self.font_size = font_size
        self.padding = padding

    def _font(self, size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        return ImageFont.load_default(size=size)

    @staticmethod
    def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_width: float) -> list[str]:
        out: list[str] = []
        for paragraph in text.splitlines() or [""]:
            current = ""
            for word in paragraph.split(" "):
                candidate = f"{current} {word}" if current else word
                if current and draw.textlength(candidate, font=font) > max_width:
                    out.append(current)
                    current = word
                else:
                    current = candidate
            out.append(current)
        return out

    async def rasterize(self, markup: str, *, theme: str, width: int | None) -> Raster:
        dark = theme == "dark"
        if markup.startswith("$"):
            return self._math(markup.strip("$"), dark=dark, block=markup.startswith("$$"))
        return self._callout(markup, dark=dark, width=width or 700)

    def _callout(self, markup: str, *, dark: bool, width: int) -> Raster:
        kind, title, body = callout_outline(markup)
        fill, stripe = _CALLOUT_COLORS.get(kind, _DEFAULT_CALLOUT_COLORS)
        if dark:
            fill = tuple(int(c * 0.25) for c in fill)
        text_color = (255, 255, 255) if dark else (0, 0, 0)
        s = RASTER_SCALE
        pad = self.padding * s
        stripe_w = 4 * s
        canvas_w = width * s
        title_font = self._font(self.font_size * s)
        body_font = self._font(self.font_size * s)
        line_h = int(self.font_size * 1.5 * s)

        canvas = ImageDraw.Draw(Image.new("RGB", (1, 1)))
        text_w = canvas_w - pad * 2 - stripe_w
        lines: list[tuple[str, object]] = []
        if title:
            lines.extend((ln, title_font) for ln in self._wrap(canvas, title, title_font, text_w))
        for raw in body:
            lines.extend((ln, body_font) for ln in self._wrap(canvas, raw, body_font, text_w))
        height = pad * 2 + max(1, len(lines)) * line_h

        img = Image.new("RGB", (canvas_w, height), fill)
        draw = ImageDraw.Draw(img)
        draw.rectangle([0, 0, stripe_w - 1, height - 1], fill=stripe)
        y = pad
        for text, font in lines:
            draw.text((stripe_w + pad, y), text, fill=text_color, font=font)
            y += line_h
        return _encode_png(img)

    def _math(self, source: str, *, dark: bool, block: bool) -> Raster:
        s = RASTER_SCALE
        font = self._font((self.font_size + (4 if block else 0)) * s)
        text = source.strip()
        canvas = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
        left, top, right, bottom = canvas.textbbox((0, 0), text or " ", font=font)
        pad = 2 * s
        img = Image.new("RGBA", (max(1, right - left) + pad * 2, max(1, bottom - top) + pad * 2), (0, 0, 0, 0))
        draw = ImageDraw.Draw(img)
        color = (255, 255, 255, 255) if dark else (0, 0, 0, 255)
        draw.text((pad - left, pad - top), text, fill=color, font=font)
        return _encode_png(img)


class RasterizationBridge:
    """Bounded-wait access to a rasterizer; failures come back as ``None``."""

    def __init__(self, rasterizer: Rasterizer, *, timeout_s: float = 10.0) -> None:
        self.rasterizer = rasterizer
        self.timeout_s = timeout_s
        self.failures: list[str] = []

    async def rasterize(self, markup: str, *, theme: str, width: int | None = None) -> Raster | None:
        try:
            raster = await asyncio.wait_for(
                self.rasterizer.rasterize(markup, theme=theme, width=width),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError:
            log.warning("Rasterization timed out after %.1fs", self.timeout_s)
            self.failures.append(f"Rasterization timed out after {self.timeout_s:.1f}s")
            return None
        except Exception as e:
            log.warning("Rasterization failed: %s", e)
            self.failures.append(f"Rasterization failed: {e}")
            return None
        if raster.width <= 0 or raster.height <= 0:
            self.failures.append("Rasterization returned an empty image")
            return None
        return raster
