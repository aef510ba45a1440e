from __future__ import annotations

import re

from .model import (
    RGB,
    Code,
    ColoredText,
    EmbeddedImage,
    Emphasis,
    Highlight,
    InlineRun,
    Math,
    PlainText,
    Strike,
    StyleState,
    Underline,
)

_EMBED_SPLIT_RE = re.compile(r"(!\[\[.*?\]\])")
_EMBED_RE = re.compile(r"^!\[\[(.*?)\]\]$")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

# Alternation order is precedence: an earlier group wins when two can start
# at the same position.
_TOKEN_SPLIT_RE = re.compile(
    r"(\$\$[\s\S]*?\$\$)"
    r"|(\$[^$\n]+\$)"
    r"|(<span style=\"color:\s*(?:rgb[^>]*|#[0-9a-fA-F]{6})\">.*?</span>)"
    r"|(<u>.*?</u>)"
    r"|(<s>.*?</s>|~~.*?~~)"
    r"|(<mark>.*?</mark>|==.*?==)"
    r"|(<code>.*?</code>|`.*?`)"
    r"|(\*\*\*|\*\*|\*|_)"
)
_COLOR_SPAN_RE = re.compile(r"<span style=\"color:\s*(rgb\(([^)]+)\)|#([0-9a-fA-F]{6}))\">(.*?)</span>")
_BLOCK_MATH_RE = re.compile(r"^\$\$([\s\S]*?)\$\$$")
_INLINE_MATH_RE = re.compile(r"^\$([^$\n]+)\$$")

_LAYERS: tuple[tuple[str, str, type], ...] = (
    ("<u>", "</u>", Underline),
    ("<s>", "</s>", Strike),
    ("~~", "~~", Strike),
    ("<mark>", "</mark>", Highlight),
    ("==", "==", Highlight),
    ("<code>", "</code>", Code),
    ("`", "`", Code),
)

_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_MARKUP_RE = re.compile(r"\*\*\*|\*\*|~~|==|</?(?:u|s|mark|code)>|`")


def rewrite_wikilinks(text: str) -> str:
    """Replace ``[[target|alias]]`` with ``alias`` and ``[[target]]`` with ``target``."""
    out = text
    while "[[" in out:
        start = out.find("[[")
        end = out.find("]]", start)
        if end == -1:
            break
        inner = out[start + 2 : end]
        display = inner.split("|")[1] if "|" in inner else inner
        out = out[:start] + display + out[end + 2 :]
    return out


def plain_text(text: str) -> str:
    """Markup-free rendition used for headings and table cells."""
    out = rewrite_wikilinks(text)
    out = _LINK_RE.sub(lambda m: m.group(1), out)
    out = _COLOR_SPAN_RE.sub(lambda m: m.group(4), out)
    return _MARKUP_RE.sub("", out)


def _parse_color(m: re.Match[str]) -> RGB | None:
    if m.group(3):
        hex_value = m.group(3)
        return (int(hex_value[0:2], 16), int(hex_value[2:4], 16), int(hex_value[4:6], 16))
    try:
        parts = [int(c.strip()) for c in m.group(2).split(",")]
    except ValueError:
        return None
    if len(parts) != 3:
        return None
    return (parts[0], parts[1], parts[2])


def parse_embed(token: str) -> EmbeddedImage | None:
    m = _EMBED_RE.match(token)
    if not m:
        return None
    target, *attrs = m.group(1).split("|")
    width_px: int | None = None
    caption: str | None = None
    for attr in attrs:
        num = _LEADING_INT_RE.match(attr)
        if num:
            width_px = int(num.group(1))
        else:
            # Last non-numeric attribute wins.
            caption = attr
    return EmbeddedImage(target.strip(), width_px, caption or None)


def _resolve_token(token: str, state: StyleState) -> InlineRun:
    text = token
    layer: type | None = None
    for opener, closer, cls in _LAYERS:
        if len(token) >= len(opener) + len(closer) and token.startswith(opener) and token.endswith(closer):
            layer = cls
            text = token[len(opener) : len(token) - len(closer)]
            break

    color: RGB | None = None
    color_match = _COLOR_SPAN_RE.search(text)
    if color_match:
        color = _parse_color(color_match)
        text = color_match.group(4)
    else:
        block_math = _BLOCK_MATH_RE.match(text)
        if block_math:
            return Math(block_math.group(1), is_block=True)
        inline_math = _INLINE_MATH_RE.match(text)
        if inline_math:
            return Math(inline_math.group(1), is_block=False)

    if layer is not None:
        return layer(text, state.bold, state.italic, color)
    if color is not None:
        return ColoredText(text, state.bold, state.italic, color)
    if state.bold or state.italic:
        return Emphasis(text, state.bold, state.italic)
    return PlainText(text)


def tokenize_text(text: str) -> list[InlineRun]:
    """Tokenize one text run (no embeds) with a fresh style state."""
    state = StyleState()
    runs: list[InlineRun] = []
    for token in _TOKEN_SPLIT_RE.split(rewrite_wikilinks(text)):
        if not token:
            continue
        if state.toggle(token):
            continue
        runs.append(_resolve_token(token, state))
    return runs


def tokenize_line(text: str) -> list[InlineRun]:
    """Split a line into embedded images and styled text runs.

    Each stretch of text between embeds is its own run: emphasis toggles
    left open before an image do not leak past it.
    """
    runs: list[InlineRun] = []
    for part in _EMBED_SPLIT_RE.split(text):
        if not part:
            continue
        if part.startswith("![["):
            embed = parse_embed(part)
            if embed is not None:
                runs.append(embed)
            continue
        runs.extend(tokenize_text(part))
    return runs
