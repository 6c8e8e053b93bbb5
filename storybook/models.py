# -*- coding: utf-8 -*-
"""Data model for Storybook journal entries."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
import uuid


def new_story_id() -> str:
    """Return a fresh, globally unique story id."""
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True)
class Story:
    """A single dated journal entry.

    ``date`` is always timezone-aware; naive values are taken as local time.
    ``images`` holds raw photo bytes in display order.
    """

    title: str = ""
    body: str = ""
    date: datetime = field(default_factory=_now)
    images: Tuple[bytes, ...] = ()
    id: str = field(default_factory=new_story_id)

    def __post_init__(self) -> None:
        if self.date.tzinfo is None:
            object.__setattr__(self, "date", self.date.astimezone())
        if not isinstance(self.images, tuple):
            object.__setattr__(self, "images", tuple(self.images))

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match on title or body."""
        return needle in self.title.casefold() or needle in self.body.casefold()


def sample_stories(now: Optional[datetime] = None) -> List[Story]:
    """Preview stories relative to *now* (defaults to the current time)."""
    now = now or _now()
    return [
        Story(
            title="Morning Coffee",
            body="Started my day with a perfect cup of coffee. Sometimes it's the little things.",
            date=now - timedelta(days=1),
        ),
        Story(
            title="A Great Day",
            body="Today was wonderful! I went for a walk in the park and saw the most beautiful sunset.",
            date=now,
        ),
        Story(
            title="Productive Work Session",
            body="Finally finished that project I've been working on. Feels good to check it off the list.",
            date=now - timedelta(days=2),
        ),
    ]
