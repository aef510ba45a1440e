from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .engine import PaginationEngine

FOOTNOTE_SIZE = 9
FOOTER_OFFSET = 10.0
DEFAULT_TEMPLATE = "{title} - {date} {time}"

_DATE_FORMAT_RE = re.compile(r"\{date:([^}]+)\}")
# Longest tokens first; bracketed text is copied verbatim.
_MOMENT_TOKEN_RE = re.compile(
    r"\[([^\]]*)\]|YYYY|YY|MMMM|MMM|MM|M|Do|DD|D|dddd|ddd|dd|d|HH|H|hh|h|mm|m|ss|s|A|a"
)

_MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def _hour12(now: datetime) -> int:
    return now.hour % 12 or 12


def format_moment(now: datetime, fmt: str) -> str:
    """Format ``now`` with moment.js style tokens (``YYYY-MM-DD``, ``dddd``, ``HH:mm``...)."""

    def token(m: re.Match[str]) -> str:
        if m.group(1) is not None:
            return m.group(1)
        tok = m.group(0)
        weekday = _WEEKDAYS[now.weekday()]
        values = {
            "YYYY": f"{now.year:04d}",
            "YY": f"{now.year % 100:02d}",
            "MMMM": _MONTHS[now.month - 1],
            "MMM": _MONTHS[now.month - 1][:3],
            "MM": f"{now.month:02d}",
            "M": str(now.month),
            "Do": _ordinal(now.day),
            "DD": f"{now.day:02d}",
            "D": str(now.day),
            "dddd": weekday,
            "ddd": weekday[:3],
            "dd": weekday[:2],
            "d": str((now.weekday() + 1) % 7),
            "HH": f"{now.hour:02d}",
            "H": str(now.hour),
            "hh": f"{_hour12(now):02d}",
            "h": str(_hour12(now)),
            "mm": f"{now.minute:02d}",
            "m": str(now.minute),
            "ss": f"{now.second:02d}",
            "s": str(now.second),
            "A": "AM" if now.hour < 12 else "PM",
            "a": "am" if now.hour < 12 else "pm",
        }
        return values[tok]

    return _MOMENT_TOKEN_RE.sub(token, fmt)


def expand_template(template: str, *, now: datetime, title: str, page: int, total: int) -> str:
    text = _DATE_FORMAT_RE.sub(lambda m: format_moment(now, m.group(1)), template)
    return (
        text.replace("{date}", format_moment(now, "YYYY-MM-DD"))
        .replace("{time}", format_moment(now, "HH:mm"))
        .replace("{title}", title)
        .replace("{page}", str(page))
        .replace("{total}", str(total))
    )


class FootnoteCompositor:
    def __init__(self, template: str | None, *, now: datetime, title: str) -> None:
        self.template = template if template is not None else DEFAULT_TEMPLATE
        self.now = now
        self.title = title

    def apply(self, engine: PaginationEngine) -> None:
        ctx = engine.ctx
        total = len(engine.pages)
        for page in engine.pages:
            with engine.on_page(page.index):
                # The last content style on the page must not leak into the footer.
                engine.pdf.font_family = ""
                engine.set_font(ctx.font_family, "", FOOTNOTE_SIZE)
                engine.set_text_color(ctx.text_color)
                text = expand_template(self.template, now=self.now, title=self.title, page=page.index + 1, total=total)
                engine.draw_text(text, ctx.margin, ctx.page_height - FOOTER_OFFSET, kind="footer")
