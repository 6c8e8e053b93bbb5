"""Shared fixtures for Storybook tests."""

from datetime import datetime, timezone

import pytest

from storybook.repository import StoryRepository
from storybook.storage import JsonStoryStore, StoreIOFailure


TODAY = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def at(day, hour=12, minute=0, month=3, year=2024):
    """Aware UTC datetime helper for building story dates."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class FailingStore:
    """Store fake whose save() fails while ``failing`` is set."""

    def __init__(self, stories=None):
        self.stories = list(stories or [])
        self.failing = False
        self.saves = 0

    def load(self):
        return list(self.stories)

    def save(self, stories):
        self.saves += 1
        if self.failing:
            raise StoreIOFailure("disk full")
        self.stories = list(stories)


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "stories.json"


@pytest.fixture
def store(store_path):
    return JsonStoryStore(store_path)


@pytest.fixture
def repo(store):
    """UTC repository whose 'today' is TODAY."""
    return StoryRepository(store, tz=timezone.utc, now=lambda: TODAY)


@pytest.fixture
def fake_store():
    return FailingStore()


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    """Point config and data directories at a temp dir."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("STORYBOOK_STORE", raising=False)
    return tmp_path
