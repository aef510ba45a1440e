from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from fpdf import FPDF

from .classifier import classify_lines
from .config import ASSETS_DIR, FONT_DIR, RASTER_TIMEOUT_S, RASTERIZER_URL
from .engine import PaginationEngine
from .fonts import load_custom_font, register_font, sanitize_pdf_text
from .footnote import FootnoteCompositor
from .images import AssetResolver, FilesystemAssetResolver, ImageCaptionLayout
from .logging_utils import get_logger
from .model import Block, Frontmatter, Page
from .rasterize import HttpRasterizer, LocalRasterizer, RasterizationBridge, Rasterizer
from .schemas import PdfSettings
from .segmenter import segment_blocks
from .settings import parse_page_breaks
from .tables import GridTableLayout, TableLayoutAdapter
from .theme import build_layout_context

log = get_logger(__name__)


class GenerationError(RuntimeError):
    pass


class GenerationSuperseded(RuntimeError):
    pass


@dataclass
class GenerationResult:
    pdf: bytes
    pages: list[Page]
    warnings: list[str] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def page_count(self) -> int:
        return len(self.pages)


def default_rasterizer() -> Rasterizer:
    if RASTERIZER_URL:
        return HttpRasterizer(RASTERIZER_URL, timeout_s=RASTER_TIMEOUT_S)
    return LocalRasterizer()


def _new_pdf(now: datetime) -> FPDF:
    pdf = FPDF(format="A4", unit="mm")
    pdf.set_margins(15, 20, 15)
    # Page breaks are decided by the engine, never by fpdf2.
    pdf.set_auto_page_break(False, margin=15)
    # fpdf2 wants an aware timestamp for the info dictionary.
    pdf.set_creation_date(now if now.tzinfo else now.astimezone())
    return pdf


def parse_note(text: str, page_breaks: str = "") -> list[Block]:
    lines = str(text or "").replace("\r\n", "\n").split("\n")
    return segment_blocks(classify_lines(lines, parse_page_breaks(page_breaks)))


def _frontmatter_meta(blocks: list[Block]) -> dict[str, Any]:
    for block in blocks:
        if isinstance(block, Frontmatter):
            return dict(block.meta)
    return {}


def _meta_text(value: Any) -> str | None:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value if str(v).strip()) or None
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _apply_metadata(pdf: FPDF, title: str, meta: dict[str, Any], *, allow_unicode: bool) -> None:
    def clean(text: str) -> str:
        return sanitize_pdf_text(text, allow_unicode=allow_unicode)

    pdf.set_title(clean(_meta_text(meta.get("title")) or title))
    author = _meta_text(meta.get("author"))
    if author:
        pdf.set_author(clean(author))
    subject = _meta_text(meta.get("subject") or meta.get("description"))
    if subject:
        pdf.set_subject(clean(subject))
    keywords = _meta_text(meta.get("keywords") or meta.get("tags"))
    if keywords:
        pdf.set_keywords(clean(keywords))


async def generate_pdf(
    text: str,
    settings: PdfSettings | None = None,
    *,
    title: str = "Untitled",
    resolver: AssetResolver | None = None,
    rasterizer: Rasterizer | None = None,
    tables: TableLayoutAdapter | None = None,
    now: datetime | None = None,
    checkpoint: Callable[[], None] | None = None,
    custom_font: bytes | None = None,
    font_dir: Path | None = None,
    assets_dir: Path | None = None,
) -> GenerationResult:
    """Lay out ``text`` and return the finished PDF.

    ``now`` pins the clock used for the footer and the document creation
    date; identical input, settings and clock give identical bytes.
    """
    settings = settings or PdfSettings()
    now = now or datetime.now()
    assets_dir = assets_dir or ASSETS_DIR
    blocks = parse_note(text, settings.page_breaks)
    meta = _frontmatter_meta(blocks)

    pdf = _new_pdf(now)
    family = str(settings.font_family or "").strip().lower()
    if family == "custom" and custom_font is None:
        custom_font = load_custom_font(settings.custom_font_path, base_dir=assets_dir)
    font = register_font(
        pdf,
        settings.font_family,
        font_dir=font_dir or FONT_DIR,
        custom_font=custom_font,
        custom_font_name=settings.custom_font_path or None,
    )
    bridge = RasterizationBridge(rasterizer or default_rasterizer(), timeout_s=RASTER_TIMEOUT_S)
    try:
        ctx = build_layout_context(
            title=title,
            font_family=font.family,
            unicode_font=font.unicode,
            theme=settings.pdf_theme,
            host_dark=settings.host_dark,
            colors=settings.colors,
            show_line_numbers=settings.show_line_numbers,
            show_title=settings.show_title,
        )
        engine = PaginationEngine(
            pdf,
            ctx,
            images=ImageCaptionLayout(resolver if resolver is not None else FilesystemAssetResolver(assets_dir)),
            bridge=bridge,
            tables=tables or GridTableLayout(),
            checkpoint=checkpoint,
        )
        pages = await engine.run(blocks)
        if settings.show_footnote:
            FootnoteCompositor(settings.footnote_template, now=now, title=title).apply(engine)
        _apply_metadata(pdf, title, meta, allow_unicode=font.unicode)
        data = bytes(pdf.output())
    except (GenerationSuperseded, GenerationError):
        raise
    except Exception as e:
        log.exception("PDF generation failed for %r", title)
        raise GenerationError(f"PDF generation failed: {e}") from e
    finally:
        font.cleanup()

    warnings = list(font.warnings) + list(bridge.failures)
    log.info("Generated %r: %d page(s), %d warning(s)", title, len(pages), len(warnings))
    return GenerationResult(data, pages, warnings, meta)
