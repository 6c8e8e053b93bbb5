# -*- coding: utf-8 -*-
"""Configuration and user preferences (JSON on disk).

All side effects (config file I/O) are explicit and local to this module.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple
import json
import os

from .storage import STORE_FILENAME

# ---------------------------------------------------------------------
# Config management (JSON on disk)
# ---------------------------------------------------------------------

APP_NAME = "storybook"

DEFAULT_BOOK_TITLE = "Dreams"

DEFAULT_CONFIG: Dict[str, object] = {
    "book_title": DEFAULT_BOOK_TITLE,
    "selected_cover_index": 0,
    "has_completed_onboarding": False,
    # Empty means the platform data directory
    "data_dir": "",
}

def _config_dir() -> Path:
    """Return the config directory path for this platform."""
    if os.name == "nt":
        base = os.environ.get("APPDATA", os.path.expanduser("~\\AppData\\Roaming"))
        return Path(base) / APP_NAME
    base = os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config"))
    return Path(base) / APP_NAME

def _config_path() -> Path:
    return _config_dir() / "config.json"

def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA", os.path.expanduser("~\\AppData\\Local"))
        return Path(base) / APP_NAME
    base = os.environ.get("XDG_DATA_HOME", os.path.expanduser("~/.local/share"))
    return Path(base) / APP_NAME

def load_config() -> Dict[str, object]:
    """Load the merged configuration (defaults + file)."""
    path = _config_path()
    if not path.exists():
        save_config(DEFAULT_CONFIG)
        return json.loads(json.dumps(DEFAULT_CONFIG))
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    merged = json.loads(json.dumps(DEFAULT_CONFIG))
    merged.update(data)
    return merged

def save_config(cfg: Dict[str, object]) -> None:
    """Persist *cfg* to the JSON config file."""
    _config_dir().mkdir(parents=True, exist_ok=True)
    with _config_path().open("w", encoding="utf-8") as f:
        json.dump(cfg, f, indent=2)

def data_dir(cfg: Optional[Dict[str, object]] = None) -> Path:
    """Directory holding the story store."""
    cfg = cfg if cfg is not None else load_config()
    configured = str(cfg.get("data_dir") or "").strip()
    return Path(configured).expanduser() if configured else _default_data_dir()

def stories_path(cfg: Optional[Dict[str, object]] = None) -> Path:
    """Story store path; ``STORYBOOK_STORE`` overrides the configured location."""
    override = os.environ.get("STORYBOOK_STORE")
    if override:
        return Path(override).expanduser()
    return data_dir(cfg) / STORE_FILENAME


# ---------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------

# (start, end) colours of each book cover gradient, default first.
COVER_GRADIENTS: Tuple[Tuple[str, str], ...] = (
    ("#1A1628", "#2C2445"),  # dreamy purple
    ("#0D1421", "#1E3A8A"),  # midnight blue
    ("#0F2B0F", "#1B4332"),  # deep forest
    ("#2D0A0A", "#7F1D1D"),  # wine red
    ("#1F1F23", "#343439"),  # charcoal
    ("#1E1B4B", "#4C1D95"),  # indigo
)


class Preferences:
    """Book title, cover choice and onboarding state; each assignment is saved."""

    def __init__(self, cfg: Optional[Dict[str, object]] = None) -> None:
        self._cfg = cfg if cfg is not None else load_config()

    def _set(self, key: str, value: object) -> None:
        self._cfg[key] = value
        save_config(self._cfg)

    @property
    def has_completed_onboarding(self) -> bool:
        return bool(self._cfg.get("has_completed_onboarding", False))

    @has_completed_onboarding.setter
    def has_completed_onboarding(self, value: bool) -> None:
        self._set("has_completed_onboarding", bool(value))

    @property
    def book_title(self) -> str:
        return str(self._cfg.get("book_title") or DEFAULT_BOOK_TITLE)

    @book_title.setter
    def book_title(self, value: str) -> None:
        if not value.strip():
            raise ValueError("Book title required")
        self._set("book_title", value.strip())

    @property
    def selected_cover_index(self) -> int:
        try:
            return int(self._cfg.get("selected_cover_index", 0))
        except (TypeError, ValueError):
            return 0

    @selected_cover_index.setter
    def selected_cover_index(self, value: int) -> None:
        self._set("selected_cover_index", int(value))

    @property
    def current_cover(self) -> Tuple[str, str]:
        """Selected cover gradient; an out-of-range index falls back to the default."""
        idx = self.selected_cover_index
        if not 0 <= idx < len(COVER_GRADIENTS):
            return COVER_GRADIENTS[0]
        return COVER_GRADIENTS[idx]

    def reset_onboarding(self) -> None:
        self._cfg["has_completed_onboarding"] = False
        self._cfg["book_title"] = DEFAULT_BOOK_TITLE
        self._cfg["selected_cover_index"] = 0
        save_config(self._cfg)
