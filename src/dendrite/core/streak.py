"""Activity streak calculation over calendar dates."""

from datetime import date
from typing import Iterable, Tuple


def calculate_streaks(active_dates: Iterable[date], today: date) -> Tuple[int, int]:
    """Return ``(current_streak, longest_streak)`` for a set of active days.

    The current streak only counts if the latest active day is ``today`` or
    the day before; it then extends backwards over consecutive days. The
    longest streak is the longest run of consecutive days anywhere.
    """
    sorted_dates = sorted(set(active_dates))
    if not sorted_dates:
        return 0, 0

    current_streak = 0
    days_since = (today - sorted_dates[-1]).days
    if days_since <= 1:
        current_streak = 1
        for earlier, later in zip(reversed(sorted_dates[:-1]), reversed(sorted_dates[1:])):
            if (later - earlier).days != 1:
                break
            current_streak += 1

    longest_streak = 1
    run = 1
    for previous, current in zip(sorted_dates, sorted_dates[1:]):
        if (current - previous).days == 1:
            run += 1
        else:
            run = 1
        longest_streak = max(longest_streak, run)

    return current_streak, longest_streak
