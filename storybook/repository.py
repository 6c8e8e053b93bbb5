# -*- coding: utf-8 -*-
"""Story repository: the single owner of the in-memory collection.

Every mutation runs mutate -> re-sort -> persist -> notify. Persistence
failures never roll back memory; they are kept in ``last_error`` so the UI
can show a banner while the session carries on unsynced. The repository
holds no locks: call it from one thread (or serialize calls yourself).
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple, Union
import dataclasses
import logging

from .dates import day_of, month_label
from .config import stories_path
from .models import Story, new_story_id
from .storage import EncryptedStoryStore, JsonStoryStore, PathLike, StorageError

log = logging.getLogger(__name__)

Listener = Callable[[], None]


class StoryRepository:
    """Sorted (newest first) collection of stories backed by a store.

    *store* needs ``load()`` and ``save(stories)``. *tz* is the zone used
    for calendar-day logic (system local when None) and *now* returns the
    current aware datetime, which defines "today" for streaks.
    """

    def __init__(
        self,
        store,
        *,
        tz: Optional[tzinfo] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._tz = tz
        self._now = now or (lambda: datetime.now().astimezone())
        self._stories: List[Story] = []
        self._listeners: List[Listener] = []
        self.last_error: Optional[StorageError] = None
        self._last_action = ""
        self._load()

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Call *callback* after every change; returns an unsubscribe function."""
        self._listeners.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    @property
    def error_message(self) -> Optional[str]:
        """Display text for ``last_error``, or None."""
        if self.last_error is None:
            return None
        return f"Failed to {self._last_action} stories: {self.last_error}"

    def clear_error(self) -> None:
        self.last_error = None

    # ------------------------------------------------------------------
    # Loading / persisting
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            self._stories = list(self._store.load())
        except StorageError as exc:
            log.warning("Could not load stories: %s", exc)
            self._record(exc, "load")
            self._stories = []
        self._sort()

    def reload(self) -> None:
        """Re-read the store, replacing the in-memory collection."""
        self._load()
        self._notify()

    def _save(self) -> bool:
        try:
            self._store.save(list(self._stories))
        except StorageError as exc:
            log.warning("Could not save stories: %s", exc)
            self._record(exc, "save")
            return False
        self.last_error = None
        return True

    def _record(self, exc: StorageError, action: str) -> None:
        self.last_error = exc
        self._last_action = action

    def _commit(self) -> bool:
        self._sort()
        ok = self._save()
        self._notify()
        return ok

    def _sort(self) -> None:
        # Stable, so equal dates keep their insertion order.
        self._stories.sort(key=lambda s: s.date, reverse=True)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add(self, story: Story) -> bool:
        """Insert *story*, giving it a fresh id if its id is blank or taken."""
        if not story.id.strip() or self._index_of(story.id) is not None:
            story = dataclasses.replace(story, id=new_story_id())
        self._stories.append(story)
        return self._commit()

    def update(self, story: Story) -> bool:
        """Replace the story with the same id; unknown ids are ignored."""
        idx = self._index_of(story.id)
        if idx is None:
            return True
        self._stories[idx] = story
        return self._commit()

    def delete(self, story_id: str) -> bool:
        """Remove the story with *story_id*; unknown ids are ignored."""
        idx = self._index_of(story_id)
        if idx is None:
            return True
        del self._stories[idx]
        return self._commit()

    def delete_at(self, indices: Iterable[int]) -> bool:
        """Remove stories by position in :meth:`all`; out-of-range positions are skipped."""
        doomed = {i for i in indices if 0 <= i < len(self._stories)}
        if not doomed:
            return True
        self._stories = [s for i, s in enumerate(self._stories) if i not in doomed]
        return self._commit()

    def _index_of(self, story_id: str) -> Optional[int]:
        for i, s in enumerate(self._stories):
            if s.id == story_id:
                return i
        return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._stories)

    def __iter__(self) -> Iterator[Story]:
        return iter(self.all())

    def all(self) -> List[Story]:
        """Snapshot of every story, newest first."""
        return list(self._stories)

    def get(self, story_id: str) -> Optional[Story]:
        idx = self._index_of(story_id)
        return None if idx is None else self._stories[idx]

    def search(self, query: str) -> List[Story]:
        """Stories whose title or body contains *query*, ignoring case.

        A blank query returns everything.
        """
        if not query.strip():
            return self.all()
        needle = query.casefold()
        return [s for s in self._stories if s.matches(needle)]

    def entries_on(self, day: Union[date, datetime]) -> List[Story]:
        """Stories dated on the same calendar day as *day*."""
        target = day_of(day, self._tz)
        return [s for s in self._stories if self._day(s) == target]

    def days_with_entries(self, year: int, month: int) -> Set[int]:
        """Day numbers in the given month that have at least one story."""
        return {
            d.day
            for d in map(self._day, self._stories)
            if d.year == year and d.month == month
        }

    def grouped_by_month(
        self, stories: Optional[Sequence[Story]] = None
    ) -> List[Tuple[str, List[Story]]]:
        """Group *stories* (default: all) under 'Month YYYY' headings, newest month first."""
        if stories is None:
            stories = self._stories
        groups: Dict[Tuple[int, int], List[Story]] = {}
        for story in stories:
            d = self._day(story)
            groups.setdefault((d.year, d.month), []).append(story)
        return [
            (month_label(date(year, month, 1)), groups[(year, month)])
            for year, month in sorted(groups, reverse=True)
        ]

    # ------------------------------------------------------------------
    # Streaks
    # ------------------------------------------------------------------

    def current_streak(self) -> int:
        """Consecutive days with a story, counting back from today.

        No story today means 0, however long the run that ended yesterday.
        """
        days = self._story_days()
        day = day_of(self._now(), self._tz)
        streak = 0
        while day in days:
            streak += 1
            day -= timedelta(days=1)
        return streak

    def longest_streak(self) -> int:
        """Longest run of consecutive days with a story anywhere in the history."""
        longest = run = 0
        prev: Optional[date] = None
        for day in sorted(self._story_days()):
            if prev is not None and day - prev == timedelta(days=1):
                run += 1
            else:
                run = 1
            longest = max(longest, run)
            prev = day
        return longest

    def _story_days(self) -> Set[date]:
        return {self._day(s) for s in self._stories}

    def _day(self, story: Story) -> date:
        return day_of(story.date, self._tz)


def open_repository(
    path: Optional[PathLike] = None,
    passphrase: Optional[str] = None,
    **kwargs,
) -> StoryRepository:
    """Build the configured store (encrypted with *passphrase*) and its repository."""
    path = path or stories_path()
    store = EncryptedStoryStore(path, passphrase) if passphrase else JsonStoryStore(path)
    return StoryRepository(store, **kwargs)
