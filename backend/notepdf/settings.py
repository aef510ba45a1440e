from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .config import DEFAULT_SETTINGS_PATH
from .logging_utils import get_logger
from .schemas import PdfSettings, normalize_settings_keys

log = get_logger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


class SettingsError(RuntimeError):
    pass


def _read_json(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except Exception as e:
        raise SettingsError(f"Failed to read settings file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise SettingsError(f"Settings file {path} must contain a JSON object")
    return raw


def load_defaults(path: Path | None = None) -> dict[str, Any]:
    path = path or DEFAULT_SETTINGS_PATH
    if not path.exists():
        raise SettingsError(f"Default settings file not found: {path}")
    return _read_json(path)


def read_settings_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise SettingsError(f"Settings file not found: {path}")
    return _read_json(path)


def load_settings(path: Path | None = None, overrides: dict[str, Any] | None = None) -> PdfSettings:
    """Defaults from ``default_settings.json`` with ``overrides`` on top."""
    effective: dict[str, Any] = {}
    for k, v in normalize_settings_keys(load_defaults(path)).items():
        effective[k] = v
    for k, v in normalize_settings_keys(overrides or {}).items():
        if v is not None:
            effective[k] = v
    try:
        return PdfSettings.model_validate(effective)
    except ValidationError as e:
        raise SettingsError(f"Invalid PDF settings: {e}") from e


def parse_page_breaks(raw: str | None) -> frozenset[int]:
    """``"10, 25"`` -> ``{10, 25}``; entries without a leading integer are ignored."""
    out: set[int] = set()
    for part in str(raw or "").split(","):
        m = _LEADING_INT_RE.match(part)
        if not m:
            continue
        value = int(m.group(1))
        if value > 0:
            out.add(value)
        else:
            log.debug("Ignoring page break at line %s", value)
    return frozenset(out)
