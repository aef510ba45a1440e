from __future__ import annotations

from notepdf.classifier import classify_lines
from notepdf.model import Callout, ForcedBreak, Frontmatter, Heading, ListItem, Paragraph, Table
from notepdf.segmenter import parse_front_matter, segment_blocks


def _blocks(lines, breaks=()):
    return segment_blocks(classify_lines(lines, breaks))


def test_consecutive_quote_lines_form_one_callout() -> None:
    blocks = _blocks(["> [!note] Title", "> body", "after"])
    assert len(blocks) == 2
    callout = blocks[0]
    assert isinstance(callout, Callout)
    assert (callout.line_no, callout.last_line) == (1, 2)
    assert callout.markup == "> [!note] Title\n> body"
    assert blocks[1] == Paragraph(3, "after")


def test_table_rows_skip_separator() -> None:
    (table,) = _blocks(["| A | B |", "|---|---|", "| 1 | 2 |", "| 3 | 4 |"])
    assert isinstance(table, Table)
    assert table.header == ("A", "B")
    assert table.body == (("1", "2"), ("3", "4"))
    assert table.last_line == 4


def test_single_table_row_degrades_to_paragraph() -> None:
    blocks = _blocks(["  | lone |", "text"])
    assert blocks[0] == Paragraph(1, "| lone |", indent="  ")


def test_forced_break_splits_a_table_group() -> None:
    blocks = _blocks(["| A | B |", "|---|---|", "| 1 | 2 |"], {3})
    assert [type(b) for b in blocks] == [Table, ForcedBreak, Paragraph]
    assert blocks[0].body == ()
    assert blocks[1].line_no == 3


def test_forced_break_before_heading() -> None:
    blocks = _blocks(["a", "# H"], {2})
    assert blocks == [Paragraph(1, "a"), ForcedBreak(2), Heading(2, 1, "H")]


def test_frontmatter_block_carries_parsed_meta() -> None:
    lines = ["---", 'title: "Hello"', "tags:", "  - one", "  - two", "---", "body"]
    blocks = _blocks(lines)
    front = blocks[0]
    assert isinstance(front, Frontmatter)
    assert (front.line_no, front.last_line) == (1, 6)
    assert front.meta == {"title": "Hello", "tags": ["one", "two"]}
    assert blocks[1] == Paragraph(7, "body")


def test_list_items_keep_marker_and_indent() -> None:
    blocks = _blocks(["- a", "\t2. b"])
    assert blocks == [ListItem(1, "", "-", "a"), ListItem(2, "\t", "2.", "b")]
    assert not blocks[0].ordered
    assert blocks[1].ordered


def test_front_matter_nested_keys() -> None:
    meta = parse_front_matter(["author:", "  name: 'Ann'", "draft: true"])
    assert meta == {"author": {"name": "Ann"}, "draft": "true"}
