"""Read-only views over a profile for heatmaps and language charts."""

import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel

from dendrite.models.profile import DailyAggregate, GrowthProfile, utc_today

LANGUAGE_COLORS = {
    "typescript": "#3178c6",
    "javascript": "#f7df1e",
    "python": "#3776ab",
    "rust": "#dea584",
    "go": "#00add8",
    "java": "#b07219",
    "csharp": "#239120",
    "c#": "#239120",
    "cpp": "#f34b7d",
    "c++": "#f34b7d",
    "ruby": "#cc342d",
    "swift": "#fa7343",
    "kotlin": "#a97bff",
}
DEFAULT_LANGUAGE_COLOR = "#6e7681"


class HeatmapCell(BaseModel):
    """One day in the activity heatmap."""

    day: int
    week: int
    hour: int = 0  # unused by the daily heatmap
    intensity: float
    raw_minutes: int


class HeatmapData(BaseModel):
    cells: List[HeatmapCell]
    max_minutes: int
    weeks: int
    total_minutes: int


class LanguageStat(BaseModel):
    language: str
    time_ms: int
    sessions_count: int
    percentage: float
    color: str


def get_language_color(language: str) -> str:
    return LANGUAGE_COLORS.get(language.lower(), DEFAULT_LANGUAGE_COLOR)


def generate_heatmap(
    profile: GrowthProfile, weeks: int, today: Optional[dt.date] = None
) -> HeatmapData:
    """Minutes of active time per day over the last ``weeks`` weeks."""
    today = today or utc_today()
    start_date = today - dt.timedelta(weeks=weeks)

    date_minutes: Dict[dt.date, int] = {}
    for daily in profile.daily_aggregates:
        if start_date <= daily.date <= today:
            date_minutes[daily.date] = daily.total_time_ms // 60000

    max_minutes = max(date_minutes.values(), default=0)
    total_minutes = sum(date_minutes.values())

    cells = []
    for week in range(weeks):
        for day in range(7):
            offset_days = (weeks - week - 1) * 7 + day
            date = today - dt.timedelta(days=offset_days)
            raw_minutes = date_minutes.get(date, 0)
            intensity = raw_minutes / max_minutes if max_minutes else 0.0
            cells.append(
                HeatmapCell(day=day, week=week, intensity=intensity, raw_minutes=raw_minutes)
            )

    return HeatmapData(
        cells=cells,
        max_minutes=max_minutes,
        weeks=weeks,
        total_minutes=total_minutes,
    )


def generate_hourly_distribution(profile: GrowthProfile) -> Dict[int, int]:
    """Active milliseconds keyed by the UTC hour each session started in."""
    hourly: Dict[int, int] = {}
    for stored in profile.sessions:
        hour = stored.session.started_at.hour
        hourly[hour] = hourly.get(hour, 0) + stored.session.active_time_ms
    return dict(sorted(hourly.items()))


def generate_language_breakdown(profile: GrowthProfile) -> List[LanguageStat]:
    languages = profile.lifetime_stats.languages
    total_time = sum(languages.values())
    if total_time == 0:
        return []

    sessions_per_language: Dict[str, int] = {}
    for stored in profile.sessions:
        for language in stored.session.languages:
            sessions_per_language[language] = sessions_per_language.get(language, 0) + 1

    stats = [
        LanguageStat(
            language=language,
            time_ms=time_ms,
            sessions_count=sessions_per_language.get(language, 0),
            percentage=time_ms / total_time * 100.0,
            color=get_language_color(language),
        )
        for language, time_ms in languages.items()
    ]
    stats.sort(key=lambda s: (-s.time_ms, s.language))
    return stats


def get_daily_aggregates(
    profile: GrowthProfile, days: int, today: Optional[dt.date] = None
) -> List[DailyAggregate]:
    """Aggregates from the last ``days`` days (inclusive of today), oldest first."""
    today = today or utc_today()
    start_date = today - dt.timedelta(days=days)
    window = [d for d in profile.daily_aggregates if start_date <= d.date <= today]
    return sorted(window, key=lambda d: d.date)
