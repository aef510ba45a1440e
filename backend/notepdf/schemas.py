from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .model import COLOR_ROLES, RGB
from .theme import parse_color

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def normalize_settings_keys(data: dict[str, Any]) -> dict[str, Any]:
    """snake_case the keys of a settings mapping and migrate legacy ones."""
    out = {_CAMEL_RE.sub("_", str(k)).lower(): v for k, v in data.items()}
    if "dark_mode" in out and "pdf_theme" not in out:
        out["pdf_theme"] = "dark" if out["dark_mode"] else "light"
    if "show_line_numbers_in_preview" in out and "show_line_numbers" not in out:
        out["show_line_numbers"] = out["show_line_numbers_in_preview"]
    # "css" is the older name for following the host theme.
    if out.get("pdf_theme") == "css":
        out["pdf_theme"] = "host"
    return out


class PdfSettings(BaseModel):
    """Export settings; camelCase keys from plugin-style data files are accepted."""

    model_config = ConfigDict(extra="ignore")

    pdf_theme: Literal["light", "dark", "host"] = "light"
    host_dark: bool = False
    page_breaks: str = ""
    show_line_numbers: bool = False
    font_family: str = "helvetica"
    custom_font_path: str = ""
    show_title: bool = True
    show_footnote: bool = False
    footnote_template: str = "{title} - {date} {time}"
    default_export_path: str = ""
    colors: dict[str, RGB] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _migrate(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return normalize_settings_keys(data)
        return data

    @field_validator("page_breaks", mode="before")
    @classmethod
    def _page_breaks(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set)):
            return ", ".join(str(v) for v in value)
        return "" if value is None else value

    @field_validator("colors", mode="before")
    @classmethod
    def _colors(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("colors must be a mapping of role to color")
        out: dict[str, RGB] = {}
        for role, raw in value.items():
            if role not in COLOR_ROLES:
                raise ValueError(f"unknown color role {role!r}")
            rgb = parse_color(raw)
            if rgb is None:
                raise ValueError(f"invalid color for {role!r}: {raw!r}")
            out[role] = rgb
        return out


class RenderRequest(BaseModel):
    text: str
    title: str = Field(default="Untitled", min_length=1)
    document_id: str | None = None
    settings: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    ok: bool
    rasterizer: Literal["http", "local"]
    assets_dir: str
