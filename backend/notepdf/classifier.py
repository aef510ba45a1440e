from __future__ import annotations

import re
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from enum import Enum

_BLOCK_ID_RE = re.compile(r"\s+\^[a-zA-Z0-9-]+$")
_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
_LIST_RE = re.compile(r"^(\s*)([-*]|\d+\.)\s+(.*)$")
_INDENT_RE = re.compile(r"^(\s+)(.*)$")
_FRONT_MATTER_FENCE = "---"


class LineKind(str, Enum):
    FRONTMATTER = "frontmatter"
    CALLOUT = "callout"
    TABLE = "table"
    HEADING = "heading"
    LIST = "list"
    INDENTED = "indented"
    PARAGRAPH = "paragraph"


@dataclass(frozen=True)
class ClassifiedLine:
    line_no: int
    text: str
    kind: LineKind
    forced_break: bool = False
    parts: tuple[str, ...] = ()


def strip_block_id(line: str) -> str:
    return _BLOCK_ID_RE.sub("", line.rstrip())


def frontmatter_length(lines: Sequence[str]) -> int:
    """Number of leading lines (fences included) that form the frontmatter region.

    The region must open on line 1 and be closed by a later ``---`` line; an
    unclosed opening fence is ordinary content.
    """
    if not lines:
        return 0
    first = lines[0].lstrip("\ufeff").strip()
    if first != _FRONT_MATTER_FENCE:
        return 0
    for idx in range(1, len(lines)):
        if lines[idx].strip() == _FRONT_MATTER_FENCE:
            return idx + 1
    return 0


def is_table_row(line: str) -> bool:
    raw = line.strip()
    return len(raw) >= 2 and raw.startswith("|") and raw.endswith("|")


def split_table_row(line: str) -> tuple[str, ...]:
    cells = [c.strip() for c in line.strip().split("|")]
    return tuple(cells[1:-1])


def classify_line(text: str, line_no: int, *, forced_break: bool = False) -> ClassifiedLine:
    line = strip_block_id(text)
    stripped = line.strip()
    if stripped.startswith(">"):
        return ClassifiedLine(line_no, line, LineKind.CALLOUT, forced_break, (stripped,))
    if is_table_row(line):
        return ClassifiedLine(line_no, line, LineKind.TABLE, forced_break, split_table_row(line))
    m = _HEADING_RE.match(line)
    if m:
        return ClassifiedLine(line_no, line, LineKind.HEADING, forced_break, (m.group(1), m.group(2)))
    m = _LIST_RE.match(line)
    if m:
        return ClassifiedLine(line_no, line, LineKind.LIST, forced_break, (m.group(1), m.group(2), m.group(3)))
    m = _INDENT_RE.match(line)
    if m:
        return ClassifiedLine(line_no, line, LineKind.INDENTED, forced_break, (m.group(1), m.group(2)))
    return ClassifiedLine(line_no, line, LineKind.PARAGRAPH, forced_break, (line,))


def classify_lines(lines: Sequence[str], break_lines: Collection[int] = ()) -> list[ClassifiedLine]:
    breaks = set(break_lines)
    fm_len = frontmatter_length(lines)
    out: list[ClassifiedLine] = []
    for idx, raw in enumerate(lines):
        line_no = idx + 1
        if idx < fm_len:
            out.append(ClassifiedLine(line_no, raw.rstrip(), LineKind.FRONTMATTER))
            continue
        out.append(classify_line(raw, line_no, forced_break=line_no in breaks))
    return out
