from __future__ import annotations

import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from .model import COLOR_ROLES, RGB, LayoutContext, Theme

_RGB_RE = re.compile(r"rgba?\((\d+),\s*(\d+),\s*(\d+)(?:,\s*[\d.]+)?\)")
_HEX_RE = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)

LIGHT_BACKGROUND: RGB = (255, 255, 255)
DARK_BACKGROUND: RGB = (0, 0, 0)
LIGHT_TEXT: RGB = (0, 0, 0)
DARK_TEXT: RGB = (255, 255, 255)


def _clamp(value: int) -> int:
    return max(0, min(255, int(value)))


def parse_color(value: Any) -> RGB | None:
    """Accept ``[r, g, b]``, ``#rrggbb`` or ``rgb(r, g, b)``."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        if len(value) != 3:
            return None
        try:
            return (_clamp(value[0]), _clamp(value[1]), _clamp(value[2]))
        except (TypeError, ValueError):
            return None
    text = str(value).strip()
    m = _RGB_RE.match(text)
    if m:
        return (_clamp(m.group(1)), _clamp(m.group(2)), _clamp(m.group(3)))
    m = _HEX_RE.match(text)
    if m:
        return (int(m.group(1), 16), int(m.group(2), 16), int(m.group(3), 16))
    return None


def resolve_theme(theme: Theme, *, host_dark: bool, colors: Mapping[str, RGB]) -> tuple[bool, RGB, RGB]:
    """Return ``(is_dark, background, text_color)`` for a theme selection."""
    if theme == "dark":
        return True, DARK_BACKGROUND, DARK_TEXT
    if theme == "host":
        background = colors.get("page-background") or (DARK_BACKGROUND if host_dark else LIGHT_BACKGROUND)
        return host_dark, background, DARK_TEXT if host_dark else LIGHT_TEXT
    return False, LIGHT_BACKGROUND, LIGHT_TEXT


def build_layout_context(
    *,
    title: str,
    font_family: str,
    unicode_font: bool,
    theme: Theme,
    host_dark: bool = False,
    colors: Mapping[str, RGB] | None = None,
    show_line_numbers: bool = False,
    show_title: bool = True,
) -> LayoutContext:
    overrides = {role: rgb for role, rgb in (colors or {}).items() if role in COLOR_ROLES}
    is_dark, background, text_color = resolve_theme(theme, host_dark=host_dark, colors=overrides)
    return LayoutContext(
        title=title,
        font_family=font_family,
        theme=theme,
        is_dark=is_dark,
        unicode_font=unicode_font,
        text_color=text_color,
        background=background,
        colors=MappingProxyType(dict(overrides)),
        show_line_numbers=show_line_numbers,
        show_title=show_title,
    )
