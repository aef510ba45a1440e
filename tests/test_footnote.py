from __future__ import annotations

from datetime import datetime

import pytest

from notepdf.footnote import DEFAULT_TEMPLATE, _ordinal, expand_template, format_moment


def test_moment_tokens(now) -> None:
    assert format_moment(now, "dddd, MMMM Do YYYY HH:mm:ss") == "Tuesday, March 5th 2024 14:07:09"
    assert format_moment(now, "YYYY-MM-DD") == "2024-03-05"
    assert format_moment(now, "ddd D MMM YY") == "Tue 5 Mar 24"
    assert format_moment(now, "h:mm A") == "2:07 PM"
    assert format_moment(now, "hh a") == "02 pm"


def test_bracketed_text_is_literal(now) -> None:
    assert format_moment(now, "[Week] YY") == "Week 24"
    assert format_moment(now, "[Today is] dddd") == "Today is Tuesday"


def test_midnight_is_twelve_am() -> None:
    assert format_moment(datetime(2024, 1, 1, 0, 5), "h:mm A") == "12:05 AM"


@pytest.mark.parametrize(
    "day, expected",
    [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (12, "12th"), (13, "13th"), (21, "21st"), (22, "22nd"), (31, "31st")],
)
def test_ordinals(day, expected) -> None:
    assert _ordinal(day) == expected


def test_expand_template(now) -> None:
    text = expand_template("{title} {date} {time} {date:DD/MM} p{page}/{total}", now=now, title="T", page=2, total=5)
    assert text == "T 2024-03-05 14:07 05/03 p2/5"


def test_default_template(now) -> None:
    assert expand_template(DEFAULT_TEMPLATE, now=now, title="Note", page=1, total=1) == "Note - 2024-03-05 14:07"


def test_default_template_in_generated_pdf(render) -> None:
    result = render("body", show_footnote=True)
    assert result.pages[0].footer == "Note - 2024-03-05 14:07"
