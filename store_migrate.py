from __future__ import annotations

"""Manual story store migration helper."""

from pathlib import Path
from typing import Optional

from storybook.config import stories_path
from storybook.storage import LEGACY_VERSION, JsonStoryStore


def migrate(path: Optional[Path] = None) -> bool:
    """Rewrite a legacy store in the current layout; return True if it changed."""
    store = JsonStoryStore(path or stories_path())
    if not store.exists():
        return False
    stories = store.load()
    if store.loaded_version != LEGACY_VERSION:
        return False
    store.backup()
    store.save(stories)
    return True


if __name__ == "__main__":
    migrate()
