from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from fpdf import FPDF

from .logging_utils import get_logger

log = get_logger(__name__)

BUILTIN_FONTS = ("helvetica", "times", "courier")
MONO_FONT = "courier"
DEFAULT_FONT = "helvetica"
CUSTOM_FAMILY = "custom-font"

_FONT_ALIASES = {
    "sans": "helvetica",
    "serif": "times",
    "mono": "courier",
}
_BUNDLED_FONTS = {
    "roboto": {
        "family": "Roboto",
        "files": {
            "": "Roboto-Regular.ttf",
            "B": "Roboto-Bold.ttf",
            "I": "Roboto-Italic.ttf",
            "BI": "Roboto-BoldItalic.ttf",
        },
    },
    "unicode": {
        "family": "DejaVuSans",
        "files": {
            "": "DejaVuSans.ttf",
            "B": "DejaVuSans-Bold.ttf",
            "I": "DejaVuSans-Oblique.ttf",
            "BI": "DejaVuSans-BoldOblique.ttf",
        },
    },
}
_STYLES = ("", "B", "I", "BI")

_ASCII_REPLACEMENTS = {
    "\u00a0": " ",
    "\u2007": " ",
    "\u2009": " ",
    "\u200b": "",
    "\u2010": "-",
    "\u2011": "-",
    "\u2012": "-",
    "\u2013": "-",
    "\u2014": "--",
    "\u2015": "--",
    "\u2212": "-",
    "\u2026": "...",
    "\u2018": "'",
    "\u2019": "'",
    "\u201c": "\"",
    "\u201d": "\"",
    "\u2022": "\u00b7",
    "\u2190": "<-",
    "\u2192": "->",
    "\u2194": "<->",
    "\u21d0": "<=",
    "\u21d2": "=>",
    "\u21d4": "<=>",
}


def _normalize_ascii(text: str) -> str:
    out = text
    for key, val in _ASCII_REPLACEMENTS.items():
        out = out.replace(key, val)
    return out


def sanitize_pdf_text(text: str, *, allow_unicode: bool) -> str:
    if allow_unicode:
        return text
    cleaned = _normalize_ascii(text)
    return cleaned.encode("latin-1", "replace").decode("latin-1")


def bullet_glyph(allow_unicode: bool) -> str:
    return "\u2022" if allow_unicode else "\u00b7"


@dataclass
class RegisteredFont:
    family: str
    unicode: bool = False
    warnings: list[str] = field(default_factory=list)
    temp_files: list[Path] = field(default_factory=list)

    def cleanup(self) -> None:
        for path in self.temp_files:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
        self.temp_files.clear()


def _fallback(message: str, *, warnings: list[str] | None = None) -> RegisteredFont:
    log.warning("%s; falling back to %s", message, DEFAULT_FONT)
    out = RegisteredFont(DEFAULT_FONT, warnings=list(warnings or []))
    out.warnings.append(f"{message}. Using {DEFAULT_FONT.title()} instead.")
    return out


def _register_bundled(pdf: FPDF, key: str, font_dir: Path) -> RegisteredFont:
    meta = _BUNDLED_FONTS[key]
    family = meta["family"]
    files = meta["files"]
    regular_path = font_dir / files[""]
    if not regular_path.exists():
        return _fallback(f"Font files for '{key}' not found in {font_dir}")
    try:
        for style, filename in files.items():
            path = font_dir / filename
            # Styles without their own file reuse the regular face.
            pdf.add_font(family, style=style, fname=str(path if path.exists() else regular_path))
    except Exception as e:
        return _fallback(f"Error loading font '{key}': {e}")
    return RegisteredFont(family, unicode=True)


def _register_custom(pdf: FPDF, data: bytes | None, name: str | None) -> RegisteredFont:
    if not data:
        return _fallback(f"Custom font file not found{f': {name}' if name else ''}")
    fd, tmp_name = tempfile.mkstemp(suffix=".ttf", prefix="notepdf-font-")
    tmp_path = Path(tmp_name)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)
    try:
        for style in _STYLES:
            pdf.add_font(CUSTOM_FAMILY, style=style, fname=str(tmp_path))
    except Exception as e:
        tmp_path.unlink(missing_ok=True)
        return _fallback(f"Error loading custom font{f' {name}' if name else ''}: {e}")
    return RegisteredFont(CUSTOM_FAMILY, unicode=True, temp_files=[tmp_path])


def register_font(
    pdf: FPDF,
    family: str | None,
    *,
    font_dir: Path,
    custom_font: bytes | None = None,
    custom_font_name: str | None = None,
) -> RegisteredFont:
    key = str(family or DEFAULT_FONT).strip().lower()
    key = _FONT_ALIASES.get(key, key)
    if key in BUILTIN_FONTS:
        return RegisteredFont(key)
    if key == "custom":
        return _register_custom(pdf, custom_font, custom_font_name)
    if key in _BUNDLED_FONTS:
        return _register_bundled(pdf, key, font_dir)
    return _fallback(f"Unknown font family '{family}'")


def load_custom_font(path: str | None, *, base_dir: Path) -> bytes | None:
    raw = str(path or "").strip()
    if not raw:
        return None
    candidate = Path(raw)
    if not candidate.is_absolute():
        candidate = (base_dir / raw).resolve()
        if not str(candidate).startswith(str(base_dir.resolve())):
            return None
    if candidate.suffix.lower() != ".ttf" or not candidate.is_file():
        return None
    return candidate.read_bytes()
