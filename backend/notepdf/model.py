from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Union

RGB = tuple[int, int, int]
Theme = Literal["light", "dark", "host"]

COLOR_ROLES = (
    "heading1",
    "heading2",
    "heading3",
    "heading4",
    "heading5",
    "heading6",
    "title",
    "bold",
    "italic",
    "underline",
    "strikethrough",
    "highlight",
    "code",
    "page-background",
    "highlight-background",
    "code-background",
)


# Blocks


@dataclass(frozen=True)
class Frontmatter:
    line_no: int
    last_line: int
    lines: tuple[str, ...]
    meta: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class Heading:
    line_no: int
    level: int
    text: str

    @property
    def last_line(self) -> int:
        return self.line_no


@dataclass(frozen=True)
class Paragraph:
    line_no: int
    text: str
    indent: str = ""

    @property
    def last_line(self) -> int:
        return self.line_no


@dataclass(frozen=True)
class ListItem:
    line_no: int
    indent: str
    marker: str
    text: str

    @property
    def last_line(self) -> int:
        return self.line_no

    @property
    def ordered(self) -> bool:
        return self.marker not in ("-", "*")


@dataclass(frozen=True)
class Table:
    line_no: int
    last_line: int
    rows: tuple[tuple[str, ...], ...]

    @property
    def header(self) -> tuple[str, ...]:
        return self.rows[0]

    @property
    def body(self) -> tuple[tuple[str, ...], ...]:
        # Row 2 is the |---|---| separator.
        return self.rows[2:]


@dataclass(frozen=True)
class Callout:
    line_no: int
    last_line: int
    raw_lines: tuple[str, ...]

    @property
    def markup(self) -> str:
        return "\n".join(self.raw_lines)


@dataclass(frozen=True)
class ForcedBreak:
    source_line: int

    @property
    def line_no(self) -> int:
        return self.source_line

    @property
    def last_line(self) -> int:
        return self.source_line


Block = Union[Frontmatter, Heading, Paragraph, ListItem, Table, Callout, ForcedBreak]


# Inline runs


@dataclass(frozen=True)
class StyledText:
    text: str
    bold: bool = False
    italic: bool = False
    color: RGB | None = None

    @property
    def font_style(self) -> str:
        return ("B" if self.bold else "") + ("I" if self.italic else "")


@dataclass(frozen=True)
class PlainText(StyledText):
    pass


@dataclass(frozen=True)
class Emphasis(StyledText):
    pass


@dataclass(frozen=True)
class Underline(StyledText):
    pass


@dataclass(frozen=True)
class Strike(StyledText):
    pass


@dataclass(frozen=True)
class Highlight(StyledText):
    pass


@dataclass(frozen=True)
class Code(StyledText):
    pass


@dataclass(frozen=True)
class ColoredText(StyledText):
    @property
    def rgb(self) -> RGB:
        return self.color or (0, 0, 0)


@dataclass(frozen=True)
class Math:
    source: str
    is_block: bool = False

    @property
    def markup(self) -> str:
        return f"$${self.source}$$" if self.is_block else f"${self.source}$"


@dataclass(frozen=True)
class EmbeddedImage:
    target: str
    width_px: int | None = None
    caption: str | None = None


InlineRun = Union[PlainText, Emphasis, Underline, Strike, Highlight, Code, ColoredText, Math, EmbeddedImage]


@dataclass
class StyleState:
    bold: bool = False
    italic: bool = False

    def toggle(self, marker: str) -> bool:
        if marker == "***":
            self.bold = not self.bold
            self.italic = not self.italic
        elif marker == "**":
            self.bold = not self.bold
        elif marker in ("*", "_"):
            self.italic = not self.italic
        else:
            return False
        return True


# Pages


@dataclass(frozen=True)
class Stamp:
    kind: Literal["title", "text", "caption", "gutter", "footer", "rect", "rule", "image", "raster", "table"]
    x: float
    y: float
    w: float = 0.0
    h: float = 0.0
    text: str = ""


@dataclass
class Page:
    index: int
    background: RGB
    stamps: list[Stamp] = field(default_factory=list)
    cursor: tuple[float, float] = (0.0, 0.0)

    def texts(self, kind: str = "text") -> list[str]:
        return [s.text for s in self.stamps if s.kind == kind]

    @property
    def footer(self) -> str | None:
        found = self.texts("footer")
        return found[-1] if found else None

    @property
    def gutter_numbers(self) -> list[int]:
        return [int(s.text) for s in self.stamps if s.kind == "gutter"]


@dataclass(frozen=True)
class LayoutContext:
    title: str
    font_family: str
    theme: Theme = "light"
    is_dark: bool = False
    unicode_font: bool = False
    text_color: RGB = (0, 0, 0)
    background: RGB = (255, 255, 255)
    colors: Mapping[str, RGB] = field(default_factory=dict, hash=False)
    show_line_numbers: bool = False
    show_title: bool = True
    page_width: float = 210.0
    page_height: float = 297.0
    margin: float = 15.0
    top: float = 20.0
    line_height: float = 6.0
    font_size: float = 11.0

    @property
    def bottom_limit(self) -> float:
        return self.page_height - self.margin

    @property
    def right_limit(self) -> float:
        return self.page_width - self.margin

    @property
    def printable_width(self) -> float:
        return self.page_width - self.margin * 2

    def color(self, role: str, default: RGB | None = None) -> RGB | None:
        return self.colors.get(role, default)
