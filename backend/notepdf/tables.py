from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from fpdf import FPDF
from fpdf.enums import MethodReturnValue

from .fonts import sanitize_pdf_text
from .model import RGB, LayoutContext


@dataclass(frozen=True)
class TableStyle:
    font_family: str
    allow_unicode: bool
    text_color: RGB
    body_fill: RGB
    head_fill: RGB
    border: RGB = (80, 80, 80)
    font_size: int = 10
    min_font_size: int = 7
    padding: float = 2.0


def table_style(ctx: LayoutContext) -> TableStyle:
    if ctx.is_dark:
        return TableStyle(ctx.font_family, ctx.unicode_font, (255, 255, 255), (20, 20, 20), (100, 100, 100))
    return TableStyle(ctx.font_family, ctx.unicode_font, (0, 0, 0), (240, 240, 240), (180, 180, 180))


class TableLayoutAdapter(Protocol):
    def layout(
        self,
        pdf: FPDF,
        header: Sequence[str],
        body: Sequence[Sequence[str]],
        *,
        start_y: float,
        left: float,
        width: float,
        style: TableStyle,
        add_page: Callable[[], float],
    ) -> float:
        """Draw the grid starting at ``start_y`` and return the y below it.

        ``add_page`` starts a new page and returns the y to continue from.
        """
        ...


def _split_long_tokens(text: str, max_len: int = 32) -> str:
    parts = []
    for token in text.split(" "):
        if len(token) <= max_len:
            parts.append(token)
            continue
        parts.append(" ".join(token[i : i + max_len] for i in range(0, len(token), max_len)))
    return " ".join(parts)


class GridTableLayout:
    """Bordered grid with content-fitted columns.

    Rows move to a new page whole when they fit one; taller rows are cut into
    bands across pages. The header row is repeated at the top of every
    continuation page.
    """

    def _cell_text(self, cell: str, style: TableStyle) -> str:
        return sanitize_pdf_text(_split_long_tokens(cell), allow_unicode=style.allow_unicode)

    def _compute_widths(
        self, pdf: FPDF, rows: list[list[str]], cols: int, size: int, width: float, style: TableStyle
    ) -> list[float] | None:
        widths = [0.0] * cols
        for r_index, row in enumerate(rows):
            pdf.set_font(style.font_family, "B" if r_index == 0 else "", size)
            for c_index, cell in enumerate(row):
                widths[c_index] = max(widths[c_index], pdf.get_string_width(cell) + style.padding * 2)
        total = sum(widths)
        if total <= 0:
            return [width / cols] * cols
        if total > width:
            scale = width / total
            widths = [w * scale for w in widths]
        elif total < width:
            # Spread the slack so the grid spans the printable width.
            extra = (width - total) / cols
            widths = [w + extra for w in widths]
        pdf.set_font(style.font_family, "", size)
        min_char = max(4.0, pdf.get_string_width("W") + style.padding)
        if min(widths) < min_char:
            return None
        return widths

    def _split_row(
        self,
        pdf: FPDF,
        row: list[str],
        col_widths: list[float],
        line_height: float,
        *,
        head: bool,
        size: int,
        style: TableStyle,
    ) -> list[list[str]]:
        pdf.set_font(style.font_family, "B" if head else "", size)
        split_cells = []
        for c_index, text in enumerate(row):
            lines = pdf.multi_cell(col_widths[c_index], line_height, text, dry_run=True, output=MethodReturnValue.LINES)
            split_cells.append(lines or [""])
        return split_cells

    def _draw_chunk(
        self,
        pdf: FPDF,
        split_cells: list[list[str]],
        start: int,
        stop: int,
        *,
        y: float,
        left: float,
        col_widths: list[float],
        line_height: float,
        head: bool,
        size: int,
        style: TableStyle,
    ) -> float:
        """Draw lines ``start:stop`` of every cell as one band of the row."""
        height = line_height * (stop - start)
        pdf.set_font(style.font_family, "B" if head else "", size)
        pdf.set_line_width(0.2)
        pdf.set_draw_color(*style.border)
        pdf.set_fill_color(*(style.head_fill if head else style.body_fill))
        pdf.set_text_color(*style.text_color)
        x = left
        for c_index, lines in enumerate(split_cells):
            pdf.rect(x, y, col_widths[c_index], height, style="DF")
            pdf.set_xy(x, y)
            pdf.multi_cell(col_widths[c_index], line_height, "\n".join(lines[start:stop]), border=0)
            x += col_widths[c_index]
        return y + height

    def layout(
        self,
        pdf: FPDF,
        header: Sequence[str],
        body: Sequence[Sequence[str]],
        *,
        start_y: float,
        left: float,
        width: float,
        style: TableStyle,
        add_page: Callable[[], float],
    ) -> float:
        raw_rows = [list(header)] + [list(r) for r in body]
        cols = max(len(r) for r in raw_rows)
        if cols == 0:
            return start_y
        rows = [[self._cell_text(c, style) for c in r] + [""] * (cols - len(r)) for r in raw_rows]

        col_widths: list[float] | None = None
        font_size = style.font_size
        size = style.font_size
        while size >= style.min_font_size:
            col_widths = self._compute_widths(pdf, rows, cols, size, width, style)
            if col_widths:
                font_size = size
                break
            size -= 1
        if not col_widths:
            font_size = style.min_font_size
            col_widths = [width / cols] * cols

        line_height = max(4.0, font_size * 0.6)
        bottom = pdf.h - pdf.b_margin
        previous_c_margin = pdf.c_margin
        pdf.c_margin = style.padding
        draw = dict(left=left, col_widths=col_widths, line_height=line_height, size=font_size, style=style)
        y = start_y
        try:
            split_rows = [
                self._split_row(pdf, row, col_widths, line_height, head=r_index == 0, size=font_size, style=style)
                for r_index, row in enumerate(rows)
            ]
            head_cells = split_rows[0]
            head_lines = max(len(lines) for lines in head_cells)
            for r_index, split_cells in enumerate(split_rows):
                head = r_index == 0
                total = max(len(lines) for lines in split_cells)
                start = 0
                fresh = False
                while start < total:
                    room = int((bottom - y) / line_height + 1e-6)
                    if total - start > room and not fresh:
                        y = add_page()
                        fresh = True
                        if not head and y + (head_lines + 1) * line_height <= bottom:
                            y = self._draw_chunk(pdf, head_cells, 0, head_lines, y=y, head=True, **draw)
                        continue
                    stop = min(total, start + max(room, 1))
                    y = self._draw_chunk(pdf, split_cells, start, stop, y=y, head=head, **draw)
                    start = stop
                    fresh = False
        finally:
            pdf.c_margin = previous_c_margin
        return y
