from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

from .classifier import ClassifiedLine, LineKind
from .model import Block, Callout, ForcedBreak, Frontmatter, Heading, ListItem, Paragraph, Table

_FRONT_MATTER_KEY_RE = re.compile(r"^([A-Za-z0-9_-]+):\s*(.*)$")
_FRONT_MATTER_CHILD_RE = re.compile(r"^\s+([A-Za-z0-9_-]+):\s*(.*)$")
_FRONT_MATTER_ITEM_RE = re.compile(r"^\s+-\s+(.*)$")


def _strip_yaml_quotes(value: str) -> str:
    text = str(value or "").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        text = text[1:-1]
    return text.strip()


def parse_front_matter(lines: Sequence[str]) -> dict[str, Any]:
    meta: dict[str, Any] = {}
    current_key: str | None = None
    for raw in lines:
        if not raw.strip():
            continue
        m = _FRONT_MATTER_KEY_RE.match(raw)
        if m:
            key = m.group(1).strip()
            value = m.group(2).strip()
            if value == "":
                meta[key] = {}
                current_key = key
            else:
                meta[key] = _strip_yaml_quotes(value)
                current_key = None
            continue
        if not current_key:
            continue
        node = meta.get(current_key)
        m = _FRONT_MATTER_ITEM_RE.match(raw)
        if m:
            # "tags:\n  - a\n  - b" style lists
            if not isinstance(node, list):
                node = []
                meta[current_key] = node
            node.append(_strip_yaml_quotes(m.group(1)))
            continue
        m = _FRONT_MATTER_CHILD_RE.match(raw)
        if not m:
            continue
        if not isinstance(node, dict):
            node = {}
            meta[current_key] = node
        node[m.group(1).strip()] = _strip_yaml_quotes(m.group(2))
    return meta


def _group_end(lines: Sequence[ClassifiedLine], start: int, kind: LineKind) -> int:
    end = start + 1
    while end < len(lines) and lines[end].kind is kind and not lines[end].forced_break:
        end += 1
    return end


def _degraded_paragraph(line: ClassifiedLine) -> Paragraph:
    text = line.text
    body = text.lstrip()
    return Paragraph(line.line_no, body, indent=text[: len(text) - len(body)])


def segment_blocks(lines: Sequence[ClassifiedLine]) -> list[Block]:
    blocks: list[Block] = []
    i = 0
    while i < len(lines):
        line = lines[i]

        if line.kind is LineKind.FRONTMATTER:
            end = _group_end(lines, i, LineKind.FRONTMATTER)
            raw = tuple(ln.text for ln in lines[i:end])
            blocks.append(Frontmatter(line.line_no, lines[end - 1].line_no, raw, parse_front_matter(raw[1:-1])))
            i = end
            continue

        if line.forced_break:
            blocks.append(ForcedBreak(line.line_no))

        if line.kind is LineKind.CALLOUT:
            end = _group_end(lines, i, LineKind.CALLOUT)
            raw = tuple(ln.parts[0] for ln in lines[i:end])
            blocks.append(Callout(line.line_no, lines[end - 1].line_no, raw))
            i = end
            continue

        if line.kind is LineKind.TABLE:
            end = _group_end(lines, i, LineKind.TABLE)
            if end - i >= 2:
                rows = tuple(ln.parts for ln in lines[i:end])
                blocks.append(Table(line.line_no, lines[end - 1].line_no, rows))
                i = end
                continue
            blocks.append(_degraded_paragraph(line))
            i += 1
            continue

        if line.kind is LineKind.HEADING:
            hashes, text = line.parts
            blocks.append(Heading(line.line_no, len(hashes), text))
        elif line.kind is LineKind.LIST:
            indent, marker, text = line.parts
            blocks.append(ListItem(line.line_no, indent, marker, text))
        elif line.kind is LineKind.INDENTED:
            indent, text = line.parts
            blocks.append(Paragraph(line.line_no, text, indent=indent))
        else:
            blocks.append(Paragraph(line.line_no, line.text))
        i += 1
    return blocks
