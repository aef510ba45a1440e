from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Any

from notepdf.images import FilesystemAssetResolver
from notepdf.logging_utils import get_logger
from notepdf.pdf_export import GenerationError, default_rasterizer, generate_pdf
from notepdf.rasterize import HttpRasterizer
from notepdf.settings import SettingsError, load_settings, read_settings_file

log = get_logger("cli.export_note")


def output_path(note: Path, *, out: Path | None, export_dir: str | Path | None) -> Path:
    if out is not None:
        return out
    folder = str(export_dir or "").strip()
    if folder:
        return Path(folder) / f"{note.stem}.pdf"
    return note.with_suffix(".pdf")


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.settings is not None:
        overrides.update(read_settings_file(args.settings))
    if args.page_breaks is not None:
        overrides["page_breaks"] = args.page_breaks
    if args.theme is not None:
        overrides["pdf_theme"] = args.theme
    if args.host_dark:
        overrides["host_dark"] = True
    if args.font is not None:
        overrides["font_family"] = args.font
    if args.custom_font is not None:
        overrides["font_family"] = "custom"
        overrides["custom_font_path"] = str(args.custom_font)
    if args.line_numbers:
        overrides["show_line_numbers"] = True
    if args.no_title:
        overrides["show_title"] = False
    if args.footnote is not None:
        overrides["show_footnote"] = True
        overrides["footnote_template"] = args.footnote
    return overrides


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Export a markdown note to a paginated A4 PDF.")
    ap.add_argument("note", type=Path, help="Markdown note to export")
    ap.add_argument("--out", type=Path, default=None, help="Output PDF path (default: next to the note)")
    ap.add_argument("--export-dir", type=Path, default=None, help="Directory for the PDF (created if missing)")
    ap.add_argument("--settings", type=Path, default=None, help="JSON file with settings overrides")
    ap.add_argument("--page-breaks", type=str, default=None, help='Source lines that start a new page, e.g. "10, 25"')
    ap.add_argument("--theme", choices=["light", "dark", "host"], default=None, help="Page theme")
    ap.add_argument("--host-dark", action="store_true", help="Host theme is dark (with --theme host)")
    ap.add_argument("--font", type=str, default=None, help="helvetica, times, courier, roboto or unicode")
    ap.add_argument("--custom-font", type=Path, default=None, help="TTF file to use as the body font")
    ap.add_argument("--line-numbers", action="store_true", help="Print source line numbers in the gutter")
    ap.add_argument("--no-title", action="store_true", help="Do not print the note title")
    ap.add_argument("--footnote", type=str, default=None, metavar="TEMPLATE", help="Footer template, e.g. '{title} - Page {page} of {total}'")
    ap.add_argument("--assets-dir", type=Path, default=None, help="Where embedded images are looked up (default: the note's folder)")
    ap.add_argument("--rasterizer-url", type=str, default=None, help="Base URL of an external rasterizer service")
    args = ap.parse_args(argv)

    note: Path = args.note
    if not note.is_file():
        log.error("Note not found: %s", note)
        return 2

    try:
        settings = load_settings(overrides=_overrides(args))
    except SettingsError as e:
        log.error("%s", e)
        return 2

    custom_font = None
    if args.custom_font is not None:
        if not args.custom_font.is_file():
            log.warning("Custom font not found: %s", args.custom_font)
        else:
            custom_font = args.custom_font.read_bytes()

    assets_dir = args.assets_dir or note.parent
    rasterizer = HttpRasterizer(args.rasterizer_url) if args.rasterizer_url else default_rasterizer()
    try:
        result = asyncio.run(
            generate_pdf(
                note.read_text(encoding="utf-8"),
                settings,
                title=note.stem,
                resolver=FilesystemAssetResolver(assets_dir),
                rasterizer=rasterizer,
                custom_font=custom_font,
                assets_dir=assets_dir,
            )
        )
    except GenerationError as e:
        log.error("%s", e)
        return 2

    for warning in result.warnings:
        log.warning("%s", warning)

    out = output_path(note, out=args.out, export_dir=args.export_dir or settings.default_export_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(result.pdf)
    log.info("Wrote %s (%d page(s))", out, result.page_count)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
