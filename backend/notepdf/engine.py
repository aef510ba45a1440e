from __future__ import annotations

import io
import re
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager

from fpdf import FPDF
from fpdf.enums import MethodReturnValue

from .fonts import MONO_FONT, bullet_glyph, sanitize_pdf_text
from .images import ImageCaptionLayout
from .inline import plain_text, tokenize_line
from .logging_utils import get_logger
from .model import (
    RGB,
    Block,
    Callout,
    Code,
    EmbeddedImage,
    ForcedBreak,
    Frontmatter,
    Heading,
    Highlight,
    LayoutContext,
    ListItem,
    Math,
    Page,
    Paragraph,
    Stamp,
    Strike,
    StyledText,
    Table,
    Underline,
)
from .rasterize import Raster, RasterizationBridge
from .tables import TableLayoutAdapter, table_style

log = get_logger(__name__)

HEADING_SIZES = (22, 18, 16, 14, 12, 12)
TITLE_SIZE = 24
GUTTER_SIZE = 8
GUTTER_X = 5.0
GUTTER_COLOR: RGB = (100, 100, 100)
INDENT_UNIT = 1.5
MARKER_GAP = 2.0
CALLOUT_WIDTH_PX = 700
BLOCK_MATH_WIDTH_PX = 600
MATH_ERROR = "[Math Error]"
CALLOUT_ERROR = "[Callout Error]"

_WORD_SPLIT_RE = re.compile(r"(\s+)")
_LAYER_ROLES: dict[type, str] = {
    Highlight: "highlight",
    Code: "code",
    Strike: "strikethrough",
    Underline: "underline",
}


def _noop() -> None:
    return None


def indent_width(indent: str) -> float:
    return len(indent.replace("\t", "    ")) * INDENT_UNIT


class PaginationEngine:
    """Cursor and page state for one generation pass.

    Blocks are laid out in source order. The only suspension points are
    asset resolution and rasterization; ``checkpoint`` runs after each of
    them and may raise to abandon a stale pass.
    """

    def __init__(
        self,
        pdf: FPDF,
        ctx: LayoutContext,
        *,
        images: ImageCaptionLayout,
        bridge: RasterizationBridge,
        tables: TableLayoutAdapter,
        checkpoint: Callable[[], None] | None = None,
    ) -> None:
        self.pdf = pdf
        self.ctx = ctx
        self.images = images
        self.bridge = bridge
        self.tables = tables
        self.checkpoint = checkpoint or _noop
        self.pages: list[Page] = []
        self.x = ctx.margin
        self.y = ctx.top
        self._font: tuple[str, str, float] = (ctx.font_family, "", ctx.font_size)
        self._text_color: RGB = ctx.text_color
        self._line_no: int | None = None
        self._gutter_done = False

    # Pages

    @property
    def page(self) -> Page:
        return self.pages[self.pdf.page - 1]

    def _add_page(self) -> None:
        if self.pages:
            self.page.cursor = (self.x, self.y)
        self.pdf.add_page()
        self.pages.append(Page(len(self.pages), self.ctx.background))
        self.x = self.ctx.margin
        self.y = self.ctx.top
        if self.ctx.background != (255, 255, 255):
            self.pdf.set_fill_color(*self.ctx.background)
            self.pdf.rect(0, 0, self.ctx.page_width, self.ctx.page_height, style="F")
        self._apply_font()
        self.pdf.set_text_color(*self._text_color)

    def request_space(self, height: float, force: bool = False) -> bool:
        if force or self.y + height > self.ctx.bottom_limit:
            self._add_page()
            return True
        return False

    @contextmanager
    def on_page(self, index: int) -> Iterator[Page]:
        current = self.pdf.page
        self.pdf.page = index + 1
        try:
            yield self.pages[index]
        finally:
            self.pdf.page = current
            self._apply_font()

    # Drawing

    def _apply_font(self) -> None:
        family, style, size = self._font
        # Force re-emission: after switching pages fpdf2's cached font may
        # not be the one active in that page's content stream.
        self.pdf.font_family = ""
        self.pdf.set_font(family, style, size)

    def set_font(self, family: str | None = None, style: str = "", size: float | None = None) -> None:
        self._font = (family or self.ctx.font_family, style, size or self.ctx.font_size)
        self.pdf.set_font(*self._font)

    def set_text_color(self, rgb: RGB) -> None:
        self._text_color = rgb
        self.pdf.set_text_color(*rgb)

    def _allow_unicode(self) -> bool:
        return self.ctx.unicode_font and self._font[0] != MONO_FONT

    def _clean(self, text: str) -> str:
        return sanitize_pdf_text(text, allow_unicode=self._allow_unicode())

    def measure(self, text: str) -> float:
        return self.pdf.get_string_width(self._clean(text))

    def split_to_width(self, text: str, width: float) -> list[str]:
        lines = self.pdf.multi_cell(width, 5, self._clean(text), dry_run=True, output=MethodReturnValue.LINES)
        return list(lines) or [""]

    def _stamp(self, kind: str, x: float, y: float, w: float = 0.0, h: float = 0.0, text: str = "") -> None:
        self.page.stamps.append(Stamp(kind, x, y, w, h, text))

    def draw_text(self, text: str, x: float, y: float, *, kind: str = "text") -> None:
        self.pdf.text(x, y, self._clean(text))
        self._stamp(kind, x, y, text=text)

    def draw_rect(self, x: float, y: float, w: float, h: float, fill: RGB) -> None:
        self.pdf.set_fill_color(*fill)
        self.pdf.rect(x, y, w, h, style="F")
        self._stamp("rect", x, y, w, h)

    def draw_rule(self, x1: float, x2: float, y: float, color: RGB) -> None:
        self.pdf.set_draw_color(*color)
        self.pdf.set_line_width(0.2)
        self.pdf.line(x1, y, x2, y)
        self._stamp("rule", x1, y, x2 - x1)

    def draw_image(self, data: bytes, x: float, y: float, w: float, h: float, *, kind: str = "image") -> None:
        self.pdf.image(io.BytesIO(data), x=x, y=y, w=w, h=h)
        self._stamp(kind, x, y, w, h)

    def mark_line(self, anchor_y: float, page_index: int | None = None) -> None:
        """Stamp the current source line number in the gutter, once per line."""
        if not self.ctx.show_line_numbers or self._line_no is None or self._gutter_done:
            return
        self._gutter_done = True
        if page_index is not None and page_index != self.pdf.page - 1:
            with self.on_page(page_index):
                self._draw_gutter(anchor_y)
            return
        self._draw_gutter(anchor_y)

    def _draw_gutter(self, anchor_y: float) -> None:
        saved_font, saved_color = self._font, self._text_color
        self.pdf.font_family = ""
        self.set_font(self.ctx.font_family, "", GUTTER_SIZE)
        self.pdf.set_text_color(*GUTTER_COLOR)
        self.draw_text(str(self._line_no), GUTTER_X, anchor_y, kind="gutter")
        self._font = saved_font
        self._apply_font()
        self.set_text_color(saved_color)

    # Pass

    def start(self) -> None:
        self._add_page()
        if self.ctx.show_title:
            self._title()
        self.set_font(style="", size=self.ctx.font_size)
        self.set_text_color(self.ctx.text_color)

    def _title(self) -> None:
        ctx = self.ctx
        text = ctx.title or "Untitled"
        self.set_font(style="B", size=TITLE_SIZE)
        self.set_text_color(ctx.color("title", ctx.text_color))
        self.draw_text(text, (ctx.page_width - self.measure(text)) / 2, self.y, kind="title")
        self.y += 15

    async def run(self, blocks: Iterable[Block]) -> list[Page]:
        if not self.pages:
            self.start()
        for block in blocks:
            if isinstance(block, Frontmatter):
                continue
            if isinstance(block, ForcedBreak):
                self.request_space(0, force=True)
                continue
            self._line_no = block.line_no
            self._gutter_done = False
            if isinstance(block, Callout):
                await self._callout(block)
            elif isinstance(block, Table):
                self._table(block)
            elif isinstance(block, Heading):
                self._heading(block)
            elif isinstance(block, ListItem):
                await self._text_line(block.text, indent=block.indent, marker=block.marker)
            elif isinstance(block, Paragraph):
                await self._text_line(block.text, indent=block.indent)
            else:
                raise TypeError(f"Unsupported block: {type(block).__name__}")
        self._line_no = None
        self.page.cursor = (self.x, self.y)
        return self.pages

    # Rasters

    def _fit(self, raster: Raster) -> tuple[float, float]:
        w, h = raster.width_mm, raster.height_mm
        max_w = self.ctx.printable_width
        if w > max_w:
            h *= max_w / w
            w = max_w
        max_h = self.ctx.bottom_limit - self.ctx.top - 2
        if h > max_h:
            w *= max_h / h
            h = max_h
        return w, h

    async def rasterize(self, markup: str, *, width: int | None) -> Raster | None:
        theme = "dark" if self.ctx.is_dark else "light"
        raster = await self.bridge.rasterize(markup, theme=theme, width=width)
        self.checkpoint()
        return raster

    def _placeholder(self, text: str) -> None:
        self.set_font(style="", size=self.ctx.font_size)
        self.set_text_color(self.ctx.text_color)
        self.mark_line(self.y)
        self.draw_text(text, self.x, self.y)

    async def _callout(self, block: Callout) -> None:
        ctx = self.ctx
        raster = await self.rasterize(block.markup, width=CALLOUT_WIDTH_PX)
        if raster is None:
            self.request_space(ctx.line_height)
            self.x = ctx.margin
            self._placeholder(CALLOUT_ERROR)
            self.y += ctx.line_height
            return
        w, h = self._fit(raster)
        self.request_space(h + 2)
        self.mark_line(self.y + h / 2)
        self.draw_image(raster.png, ctx.margin, self.y, w, h, kind="raster")
        self.y += h + 2
        self.x = ctx.margin

    async def _math(self, run: Math, origin: float) -> None:
        ctx = self.ctx
        raster = await self.rasterize(run.markup, width=BLOCK_MATH_WIDTH_PX if run.is_block else None)
        if raster is None:
            self._placeholder(MATH_ERROR)
            self.x += 20
            return
        w, h = self._fit(raster)
        if run.is_block:
            self.request_space(h + 2)
            self.mark_line(self.y + h / 2)
            self.draw_image(raster.png, ctx.margin + (ctx.printable_width - w) / 2, self.y, w, h, kind="raster")
            self.y += h + 5
            self.x = origin
            return
        if self.x + w > ctx.right_limit and self.x > origin:
            self.y += ctx.line_height + 2
            self.request_space(0)
            self.x = origin
        self.mark_line(self.y)
        self.draw_image(raster.png, self.x, self.y - h * 0.95, w, h, kind="raster")
        self.x += w + 1

    # Tables

    def _table_page(self) -> float:
        self._add_page()
        return self.y

    def _table(self, block: Table) -> None:
        ctx = self.ctx
        self.request_space(ctx.line_height)
        start_page = len(self.pages) - 1
        start_y = self.y
        header = [plain_text(c) for c in block.header]
        body = [[plain_text(c) for c in row] for row in block.body]
        final_y = self.tables.layout(
            self.pdf,
            header,
            body,
            start_y=start_y,
            left=ctx.margin,
            width=ctx.printable_width,
            style=table_style(ctx),
            add_page=self._table_page,
        )
        end_y = final_y if len(self.pages) - 1 == start_page else ctx.bottom_limit
        self._stamp_table(start_page, start_y, end_y)
        self.mark_line((start_y + end_y) / 2, page_index=start_page)
        self._apply_font()
        self.pdf.set_text_color(*self._text_color)
        self.y = final_y + 8
        self.x = ctx.margin

    def _stamp_table(self, page_index: int, start_y: float, end_y: float) -> None:
        self.pages[page_index].stamps.append(
            Stamp("table", self.ctx.margin, start_y, self.ctx.printable_width, end_y - start_y)
        )

    # Text

    def _heading(self, block: Heading) -> None:
        ctx = self.ctx
        level = max(1, min(block.level, 6))
        step = 8 if level == 1 else 5
        self.set_font(style="B", size=HEADING_SIZES[level - 1])
        self.set_text_color(ctx.color(f"heading{level}", ctx.text_color))
        if self.y > ctx.margin + 5:
            self.y += 8 if level == 1 else 6
        self.request_space(8)
        self.mark_line(self.y)
        for line in self.split_to_width(plain_text(block.text), ctx.printable_width):
            self.request_space(8)
            if line.strip():
                self.draw_text(line, ctx.margin, self.y)
            self.y += step
        self.set_font(style="", size=ctx.font_size)
        self.set_text_color(ctx.text_color)
        self.y += 1
        self.x = ctx.margin

    def _draw_marker(self, indent: str, marker: str) -> float:
        ctx = self.ctx
        x = ctx.margin + indent_width(indent)
        glyph = marker if marker not in ("-", "*") else bullet_glyph(self._allow_unicode())
        self.set_font(style="", size=ctx.font_size)
        self.set_text_color(ctx.text_color)
        self.draw_text(glyph, x, self.y)
        return x + self.measure(glyph) + MARKER_GAP

    async def _text_line(self, text: str, *, indent: str = "", marker: str | None = None) -> None:
        ctx = self.ctx
        self.request_space(ctx.line_height)
        if marker is not None:
            origin = self._draw_marker(indent, marker)
        else:
            origin = ctx.margin + indent_width(indent)
        self.x = origin
        for run in tokenize_line(text):
            if isinstance(run, EmbeddedImage):
                await self.images.place(self, run, origin)
            elif isinstance(run, Math):
                await self._math(run, origin)
            else:
                self._flow(run, origin)
        self.mark_line(self.y)
        self.y += ctx.line_height

    def _run_color(self, run: StyledText) -> RGB:
        ctx = self.ctx
        if run.color is not None:
            return run.color
        role = _LAYER_ROLES.get(type(run))
        if role and ctx.color(role):
            return ctx.color(role)
        if run.italic and ctx.color("italic"):
            return ctx.color("italic")
        if run.bold and ctx.color("bold"):
            return ctx.color("bold")
        return ctx.text_color

    def _run_background(self, run: StyledText) -> RGB | None:
        ctx = self.ctx
        if isinstance(run, Highlight):
            return ctx.color("highlight-background", (255, 255, 0))
        if isinstance(run, Code):
            shade = 40 if ctx.is_dark else 240
            return ctx.color("code-background", (shade, shade, shade))
        return None

    def _flow(self, run: StyledText, origin: float) -> None:
        ctx = self.ctx
        family = MONO_FONT if isinstance(run, Code) else ctx.font_family
        self.set_font(family, run.font_style, ctx.font_size)
        color = self._run_color(run)
        background = self._run_background(run)
        for word in _WORD_SPLIT_RE.split(run.text):
            if not word:
                continue
            width = self.measure(word)
            if self.x + width > ctx.right_limit and self.x > origin:
                self.y += ctx.line_height
                self.request_space(0)
                self.x = origin
                if not word.strip():
                    continue
            if self.x == origin and not word.strip():
                continue
            self.mark_line(self.y)
            if background is not None:
                self.draw_rect(self.x, self.y - 4, width, 5, background)
            self.set_text_color(color)
            self.draw_text(word, self.x, self.y)
            if isinstance(run, Underline):
                self.draw_rule(self.x, self.x + width, self.y + 0.5, color)
            elif isinstance(run, Strike):
                self.draw_rule(self.x, self.x + width, self.y - 1.5, color)
            self.x += width
        self.set_text_color(ctx.text_color)
