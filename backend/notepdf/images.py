from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from PIL import Image

from .config import ASSET_TIMEOUT_S
from .logging_utils import get_logger
from .model import EmbeddedImage

if TYPE_CHECKING:
    from .engine import PaginationEngine

log = get_logger(__name__)

PX_TO_MM = 0.264583
SUPPORTED_FORMATS = frozenset({"PNG", "JPEG", "WEBP"})

CAPTION_FONT_SIZE = 11
CAPTION_PADDING = 3.0
IMAGE_PADDING = 1.5
CAPTION_LINE_STEP = CAPTION_FONT_SIZE * 0.45


@dataclass(frozen=True)
class ImageAsset:
    data: bytes
    width: int
    height: int
    format: str


class AssetResolver(Protocol):
    async def resolve(self, target: str) -> ImageAsset | None: ...


def _safe_resolve(base: Path, rel: str) -> Path | None:
    candidate = (base / rel).resolve()
    if not candidate.is_relative_to(base.resolve()):
        return None
    return candidate


def read_image_asset(path: Path) -> ImageAsset | None:
    try:
        data = path.read_bytes()
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            fmt = str(img.format or "").upper()
    except Exception as e:
        log.debug("Unreadable image %s: %s", path, e)
        return None
    if width <= 0 or height <= 0:
        return None
    return ImageAsset(data, width, height, fmt)


class FilesystemAssetResolver:
    """Resolve embed targets inside a notes directory.

    A target is tried as a path relative to ``base_dir`` first, then as a bare
    file name anywhere below it (first match in sorted order).
    """

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)

    def locate(self, target: str) -> Path | None:
        raw = str(target or "").strip()
        if not raw or not self.base_dir.is_dir():
            return None
        direct = _safe_resolve(self.base_dir, raw)
        if direct and direct.is_file():
            return direct
        name = Path(raw).name
        for candidate in sorted(self.base_dir.rglob(name)):
            if candidate.is_file():
                return candidate
        return None

    def load(self, target: str) -> ImageAsset | None:
        path = self.locate(target)
        if path is None:
            return None
        return read_image_asset(path)

    async def resolve(self, target: str) -> ImageAsset | None:
        # The name lookup walks the whole tree, so it runs off the event loop too.
        return await asyncio.to_thread(self.load, target)


@dataclass(frozen=True)
class ImageBox:
    width: float
    height: float
    caption_lines: tuple[str, ...]

    @property
    def total_height(self) -> float:
        if not self.caption_lines:
            return self.height + IMAGE_PADDING * 2
        caption_box = len(self.caption_lines) * CAPTION_LINE_STEP + CAPTION_PADDING
        return self.height + caption_box + IMAGE_PADDING


class ImageCaptionLayout:
    def __init__(self, resolver: AssetResolver | None = None, *, timeout_s: float = ASSET_TIMEOUT_S) -> None:
        self.resolver = resolver
        self.timeout_s = timeout_s

    async def resolve(self, target: str) -> ImageAsset | None:
        if self.resolver is None:
            return None
        try:
            asset = await asyncio.wait_for(self.resolver.resolve(target), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            log.debug("Image %r skipped: resolver timed out", target)
            return None
        except Exception as e:
            log.debug("Image %r skipped: %s", target, e)
            return None
        if asset is None:
            log.debug("Image %r skipped: not found", target)
            return None
        if asset.format.upper() not in SUPPORTED_FORMATS:
            log.debug("Image %r skipped: unsupported format %s", target, asset.format)
            return None
        return asset

    def measure(self, engine: PaginationEngine, run: EmbeddedImage, asset: ImageAsset, origin: float) -> ImageBox:
        ctx = engine.ctx
        px = run.width_px if run.width_px and run.width_px > 0 else asset.width
        available = min(ctx.printable_width, ctx.right_limit - origin - IMAGE_PADDING * 2)
        width = min(px * PX_TO_MM, available)
        height = asset.height * width / asset.width
        caption_lines = self._wrap_caption(engine, run.caption, width)

        # The whole box plus its trailing gap has to fit on an empty page.
        max_total = ctx.bottom_limit - ctx.top - 5
        box = ImageBox(width, height, caption_lines)
        if box.total_height > max_total:
            extra = box.total_height - box.height
            scale = max(max_total - extra, 1.0) / height
            width *= scale
            height *= scale
            box = ImageBox(width, height, self._wrap_caption(engine, run.caption, width))
        return box

    @staticmethod
    def _wrap_caption(engine: PaginationEngine, caption: str | None, width: float) -> tuple[str, ...]:
        if not caption:
            return ()
        engine.set_font(style="", size=CAPTION_FONT_SIZE)
        # fpdf2 refuses widths narrower than a glyph; tiny images get a wider caption.
        return tuple(engine.split_to_width(caption, max(width - 4, 20.0)))

    def draw(self, engine: PaginationEngine, run: EmbeddedImage, asset: ImageAsset, origin: float) -> None:
        ctx = engine.ctx
        if ctx.right_limit - origin - IMAGE_PADDING * 2 <= 0:
            # Indented past the right edge; the image starts at the margin.
            origin = ctx.margin
        # Text before the embed pushes the image to its own line.
        if engine.x > origin:
            engine.y += ctx.line_height + 2
            engine.x = origin

        box = self.measure(engine, run, asset, origin)
        if engine.request_space(box.total_height + 5):
            engine.x = origin
        engine.mark_line(engine.y + box.height / 2)

        x = origin + IMAGE_PADDING
        box_x = origin
        box_w = box.width + IMAGE_PADDING * 2
        shade = 40 if ctx.is_dark else 240
        engine.draw_rect(box_x, engine.y - IMAGE_PADDING, box_w, box.total_height, (shade, shade, shade))
        engine.draw_image(asset.data, x, engine.y, box.width, box.height)

        if box.caption_lines:
            engine.set_font(style="", size=CAPTION_FONT_SIZE)
            engine.set_text_color(ctx.text_color)
            line_y = engine.y + box.height + IMAGE_PADDING / 2 + CAPTION_FONT_SIZE * 0.35
            center = box_x + box_w / 2
            for line in box.caption_lines:
                engine.draw_text(line, center - engine.measure(line) / 2, line_y, kind="caption")
                line_y += CAPTION_LINE_STEP
            engine.y += box.total_height + 4
        else:
            engine.y += box.total_height + 2
        engine.x = origin

    async def place(self, engine: PaginationEngine, run: EmbeddedImage, origin: float) -> bool:
        asset = await self.resolve(run.target)
        engine.checkpoint()
        if asset is None:
            return False
        self.draw(engine, run, asset, origin)
        return True
