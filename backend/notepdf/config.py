from __future__ import annotations

import os
from pathlib import Path


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


REPO_ROOT = _repo_root()

ASSETS_DIR = Path(os.getenv("NOTEPDF_ASSETS_DIR", str(REPO_ROOT / "notes")))
FONT_DIR = Path(os.getenv("NOTEPDF_FONT_DIR", str(REPO_ROOT / "backend" / "assets" / "fonts")))
DEFAULT_SETTINGS_PATH = Path(
    os.getenv("NOTEPDF_SETTINGS_PATH", str(REPO_ROOT / "backend" / "default_settings.json"))
)

RASTERIZER_URL = (os.getenv("NOTEPDF_RASTERIZER_URL") or "").rstrip("/") or None
RASTER_TIMEOUT_S = _env_float("NOTEPDF_RASTER_TIMEOUT_S", 10.0)
ASSET_TIMEOUT_S = _env_float("NOTEPDF_ASSET_TIMEOUT_S", 5.0)

LOG_LEVEL = os.getenv("NOTEPDF_LOG_LEVEL", "INFO").upper()
