from __future__ import annotations

import asyncio

import pytest
from fpdf import FPDF

from notepdf.fonts import bullet_glyph, load_custom_font, register_font, sanitize_pdf_text
from notepdf.pdf_export import generate_pdf
from notepdf.schemas import PdfSettings
from notepdf.theme import build_layout_context, parse_color, resolve_theme


def test_builtin_fonts_and_aliases(tmp_path) -> None:
    font = register_font(FPDF(), "Helvetica", font_dir=tmp_path)
    assert (font.family, font.unicode, font.warnings) == ("helvetica", False, [])
    assert register_font(FPDF(), "serif", font_dir=tmp_path).family == "times"
    assert register_font(FPDF(), None, font_dir=tmp_path).family == "helvetica"


def test_unknown_family_falls_back_with_warning(tmp_path) -> None:
    font = register_font(FPDF(), "Comic Sans", font_dir=tmp_path)
    assert font.family == "helvetica"
    assert len(font.warnings) == 1
    assert "Unknown font family 'Comic Sans'" in font.warnings[0]


def test_bundled_font_missing_files(tmp_path) -> None:
    font = register_font(FPDF(), "roboto", font_dir=tmp_path)
    assert font.family == "helvetica"
    assert "not found" in font.warnings[0]


def test_missing_custom_font(tmp_path) -> None:
    font = register_font(FPDF(), "custom", font_dir=tmp_path, custom_font_name="fonts/Mine.ttf")
    assert font.family == "helvetica"
    assert font.warnings == ["Custom font file not found: fonts/Mine.ttf. Using Helvetica instead."]


def test_garbage_custom_font_still_exports(fake_rasterizer) -> None:
    result = asyncio.run(
        generate_pdf(
            "body",
            PdfSettings(font_family="custom", show_title=False),
            rasterizer=fake_rasterizer(),
            custom_font=b"definitely not a font",
        )
    )
    assert result.pdf.startswith(b"%PDF")
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("Error loading custom font")


def test_load_custom_font_rules(tmp_path) -> None:
    base = tmp_path / "vault"
    (base / "fonts").mkdir(parents=True)
    (base / "fonts" / "Mine.ttf").write_bytes(b"ttf")
    (base / "fonts" / "Mine.otf").write_bytes(b"otf")
    (tmp_path / "Outside.ttf").write_bytes(b"ttf")

    assert load_custom_font("fonts/Mine.ttf", base_dir=base) == b"ttf"
    assert load_custom_font(str(tmp_path / "Outside.ttf"), base_dir=base) == b"ttf"
    assert load_custom_font("../Outside.ttf", base_dir=base) is None
    assert load_custom_font("fonts/Mine.otf", base_dir=base) is None
    assert load_custom_font("fonts/Missing.ttf", base_dir=base) is None
    assert load_custom_font("  ", base_dir=base) is None


def test_sanitize_for_core_fonts() -> None:
    assert sanitize_pdf_text("a\u2014b \u201cq\u201d \u2192", allow_unicode=False) == 'a--b "q" ->'
    assert sanitize_pdf_text("snow \u2603", allow_unicode=False) == "snow ?"
    assert sanitize_pdf_text("caf\u00e9", allow_unicode=False) == "caf\u00e9"
    assert sanitize_pdf_text("snow \u2603", allow_unicode=True) == "snow \u2603"
    assert bullet_glyph(False) == "\u00b7"
    assert bullet_glyph(True) == "\u2022"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("#FF8000", (255, 128, 0)),
        ("00ff00", (0, 255, 0)),
        ("rgb(1, 2, 3)", (1, 2, 3)),
        ("rgba(10, 20, 30, 0.5)", (10, 20, 30)),
        ([300, -5, 7], (255, 0, 7)),
        ("blue", None),
        ([1, 2], None),
        (None, None),
    ],
)
def test_parse_color(value, expected) -> None:
    assert parse_color(value) == expected


def test_theme_resolution() -> None:
    assert resolve_theme("light", host_dark=True, colors={}) == (False, (255, 255, 255), (0, 0, 0))
    assert resolve_theme("dark", host_dark=False, colors={}) == (True, (0, 0, 0), (255, 255, 255))
    assert resolve_theme("host", host_dark=True, colors={}) == (True, (0, 0, 0), (255, 255, 255))


def test_host_theme_uses_page_background_role() -> None:
    ctx = build_layout_context(
        title="t",
        font_family="helvetica",
        unicode_font=False,
        theme="host",
        colors={"page-background": (10, 20, 30), "unknown": (1, 1, 1)},
    )
    assert ctx.background == (10, 20, 30)
    assert ctx.text_color == (0, 0, 0)
    assert not ctx.is_dark
    assert "unknown" not in ctx.colors


def test_page_background_role_is_host_only() -> None:
    ctx = build_layout_context(
        title="t", font_family="helvetica", unicode_font=False, theme="light", colors={"page-background": (1, 2, 3)}
    )
    assert ctx.background == (255, 255, 255)
