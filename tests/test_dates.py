"""Tests for storybook.dates."""

from datetime import date, datetime, timedelta, timezone

from storybook.dates import day_of, month_grid, month_label


class TestDayOf:
    def test_uses_given_zone(self):
        late = datetime(2024, 3, 1, 23, 30, tzinfo=timezone.utc)
        plus_two = timezone(timedelta(hours=2))
        assert day_of(late, timezone.utc) == date(2024, 3, 1)
        assert day_of(late, plus_two) == date(2024, 3, 2)

    def test_plain_date_passes_through(self):
        assert day_of(date(2024, 3, 1), timezone.utc) == date(2024, 3, 1)


class TestMonthLabel:
    def test_format(self):
        assert month_label(date(2024, 3, 1)).endswith("2024")


class TestMonthGrid:
    def test_weeks_are_full(self):
        grid = month_grid(2024, 3)
        assert all(len(week) == 7 for week in grid)

    def test_sunday_first_padding(self):
        # 1 March 2024 was a Friday.
        grid = month_grid(2024, 3)
        assert grid[0][:5] == [None] * 5
        assert grid[0][5] == date(2024, 3, 1)

    def test_every_day_once(self):
        cells = [d for week in month_grid(2024, 2) for d in week if d is not None]
        assert cells == [date(2024, 2, n) for n in range(1, 30)]

    def test_monday_first(self):
        grid = month_grid(2024, 3, firstweekday=0)
        assert grid[0][4] == date(2024, 3, 1)
