from __future__ import annotations

from notepdf.classifier import LineKind, classify_line, classify_lines, frontmatter_length, strip_block_id


def _kinds(lines, breaks=()) -> list[LineKind]:
    return [line.kind for line in classify_lines(lines, breaks)]


def test_frontmatter_region_includes_both_fences() -> None:
    lines = ["---", "title: x", "---", "# Heading"]
    assert frontmatter_length(lines) == 3
    assert _kinds(lines) == [LineKind.FRONTMATTER, LineKind.FRONTMATTER, LineKind.FRONTMATTER, LineKind.HEADING]


def test_unclosed_frontmatter_fence_is_ordinary_content() -> None:
    lines = ["---", "title: x", "body"]
    assert frontmatter_length(lines) == 0
    assert _kinds(lines) == [LineKind.PARAGRAPH, LineKind.PARAGRAPH, LineKind.PARAGRAPH]


def test_frontmatter_must_open_on_first_line() -> None:
    assert frontmatter_length(["", "---", "a: 1", "---"]) == 0


def test_classification_precedence() -> None:
    assert classify_line("> | a | b |", 1).kind is LineKind.CALLOUT
    assert classify_line("| # not a heading |", 1).kind is LineKind.TABLE
    assert classify_line("# - not a list", 1).kind is LineKind.HEADING
    assert classify_line("#nospace", 1).kind is LineKind.PARAGRAPH
    assert classify_line("12. twelve", 1).kind is LineKind.LIST
    assert classify_line("    indented", 1).kind is LineKind.INDENTED
    assert classify_line("plain", 1).kind is LineKind.PARAGRAPH


def test_list_and_indent_parts() -> None:
    item = classify_line("\t- nested item", 4)
    assert item.kind is LineKind.LIST
    assert item.parts == ("\t", "-", "nested item")
    assert item.line_no == 4

    indented = classify_line("   text", 1)
    assert indented.parts == ("   ", "text")


def test_table_row_cells_are_trimmed() -> None:
    row = classify_line("| a |  b  |", 1)
    assert row.parts == ("a", "b")


def test_block_id_is_stripped_before_classification() -> None:
    assert strip_block_id("some text ^abc-123") == "some text"
    line = classify_line("## Title ^ref", 1)
    assert line.kind is LineKind.HEADING
    assert line.parts == ("##", "Title")
    # A caret without leading whitespace is content.
    assert strip_block_id("x^2") == "x^2"


def test_forced_break_flags_follow_line_numbers() -> None:
    lines = classify_lines(["a", "b", "c"], {2, 9})
    assert [line.forced_break for line in lines] == [False, True, False]


def test_forced_break_never_lands_inside_frontmatter() -> None:
    lines = classify_lines(["---", "a: 1", "---", "body"], {2, 4})
    assert [line.forced_break for line in lines] == [False, False, False, True]
