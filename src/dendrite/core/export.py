"""Portfolio exports of a growth profile."""

import datetime as dt
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, field_validator

from dendrite.core.clock import ensure_utc
from dendrite.core.visualization import generate_heatmap, generate_language_breakdown
from dendrite.models.profile import GrowthProfile, StoredSession

SVG_CELL_SIZE = 12
SVG_CELL_GAP = 2
SVG_MARGIN = 20


class ExportFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"
    SVG_HEATMAP = "svg_heatmap"
    BADGE_SVG = "badge_svg"
    BADGE_URL = "badge_url"


class ExportOptions(BaseModel):
    """What to export and how much of the session log to include."""

    format: ExportFormat = ExportFormat.JSON
    date_range: Optional[Tuple[dt.datetime, dt.datetime]] = None
    include_commits: bool = True
    include_files: bool = True

    @field_validator("date_range")
    @classmethod
    def _utc_range(cls, value):
        if value is None:
            return None
        start, end = (ensure_utc(v) for v in value)
        if start > end:
            raise ValueError("date_range start is after its end")
        return start, end


def _sessions_in_range(
    sessions: List[StoredSession], date_range: Optional[Tuple[dt.datetime, dt.datetime]]
) -> List[StoredSession]:
    if date_range is None:
        return sessions
    start, end = date_range
    return [s for s in sessions if start <= s.session.started_at <= end]


def export_json(profile: GrowthProfile, options: ExportOptions) -> str:
    """Pretty JSON of the profile, with the session log filtered per ``options``.

    Aggregates and lifetime stats are exported as they are; only the
    session log is filtered or redacted.
    """
    if options.date_range is None and options.include_commits and options.include_files:
        return profile.to_json(indent=2)

    filtered = profile.model_copy(deep=True)
    filtered.sessions = _sessions_in_range(filtered.sessions, options.date_range)

    for stored in filtered.sessions:
        if not options.include_commits:
            stored.session.commits = []
        if not options.include_files:
            stored.session.files_edited = []

    return filtered.to_json(indent=2)


def _format_hours_minutes(time_ms: int) -> str:
    hours = time_ms // 1000 // 3600
    minutes = (time_ms // 1000 // 60) % 60
    return f"{hours}h {minutes}m"


def export_markdown(profile: GrowthProfile, options: Optional[ExportOptions] = None) -> str:
    """Human readable report of the profile.

    Lifetime figures always cover the whole profile; the recent activity
    section only counts sessions inside ``options.date_range`` when one is set.
    """
    date_range = options.date_range if options is not None else None
    sessions = _sessions_in_range(profile.sessions, date_range)
    stats = profile.lifetime_stats
    lines = [
        "# Learning Growth Report",
        "",
        f"**Profile ID:** `{profile.id}`",
        f"**Created:** {profile.created_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        "",
        "## Lifetime Statistics",
        "",
        f"- **Total Active Time:** {_format_hours_minutes(stats.total_time_ms)}",
        f"- **Total Sessions:** {stats.total_sessions}",
        f"- **Total Keystrokes:** {stats.total_keystrokes}",
        f"- **Total Commits:** {stats.total_commits}",
        f"- **Current Streak:** {stats.current_streak} days",
        f"- **Longest Streak:** {stats.longest_streak} days",
        "",
        "## Language Breakdown",
        "",
    ]

    for language in generate_language_breakdown(profile):
        hours = language.time_ms // 1000 // 3600
        lines.append(f"- **{language.language}**: {hours}h ({language.percentage:.1f}%)")

    lines += ["", "## Recent Activity", ""]
    if date_range is not None:
        start, end = date_range
        lines += [f"Period: {start.strftime('%Y-%m-%d')} to {end.strftime('%Y-%m-%d')}", ""]
    lines.append(f"Total sessions recorded: {len(sessions)}")
    if sessions:
        last_started = sessions[-1].session.started_at
        lines += ["", f"Last session: {last_started.strftime('%Y-%m-%d %H:%M:%S UTC')}"]

    return "\n".join(lines) + "\n"


def intensity_to_color(intensity: float) -> str:
    """GitHub-style five step green scale."""
    if intensity == 0.0:
        return "#ebedf0"
    if intensity < 0.25:
        return "#9be9a8"
    if intensity < 0.5:
        return "#40c463"
    if intensity < 0.75:
        return "#30a14e"
    return "#216e39"


def export_heatmap_svg(
    profile: GrowthProfile, weeks: int, today: Optional[dt.date] = None
) -> str:
    heatmap = generate_heatmap(profile, weeks, today=today)
    step = SVG_CELL_SIZE + SVG_CELL_GAP
    width = weeks * step + 2 * SVG_MARGIN
    height = 7 * step + 2 * SVG_MARGIN

    parts = [
        f'<svg width="{width}" height="{height}" xmlns="http://www.w3.org/2000/svg">',
        '<rect width="100%" height="100%" fill="#ffffff"/>',
    ]
    for cell in heatmap.cells:
        x = SVG_MARGIN + cell.week * step
        y = SVG_MARGIN + cell.day * step
        parts.append(
            f'<rect x="{x}" y="{y}" width="{SVG_CELL_SIZE}" height="{SVG_CELL_SIZE}" '
            f'fill="{intensity_to_color(cell.intensity)}" rx="2"/>'
        )
    parts.append("</svg>")
    return "".join(parts)


BADGE_TEMPLATE = """<svg xmlns="http://www.w3.org/2000/svg" width="120" height="20">
  <linearGradient id="b" x2="0" y2="100%">
    <stop offset="0" stop-color="#bbb" stop-opacity=".1"/>
    <stop offset="1" stop-opacity=".1"/>
  </linearGradient>
  <rect rx="3" width="120" height="20" fill="#555"/>
  <rect rx="3" x="50" width="70" height="20" fill="#4c1"/>
  <path fill="#4c1" d="M50 0h4v20h-4z"/>
  <rect rx="3" width="120" height="20" fill="url(#b)"/>
  <g fill="#fff" text-anchor="middle" font-family="DejaVu Sans,Verdana,Geneva,sans-serif" font-size="11">
    <text x="25" y="15" fill="#010101" fill-opacity=".3">{label}</text>
    <text x="25" y="14">{label}</text>
    <text x="85" y="15" fill="#010101" fill-opacity=".3">{value}</text>
    <text x="85" y="14">{value}</text>
  </g>
</svg>"""


def generate_badge_svg(profile: GrowthProfile) -> str:
    """Shields-style badge showing the current streak."""
    value = f"{profile.lifetime_stats.current_streak} days"
    return BADGE_TEMPLATE.format(label="streak", value=value)


def generate_badge_url(profile: GrowthProfile) -> str:
    streak = profile.lifetime_stats.current_streak
    return f"https://img.shields.io/badge/streak-{streak}_days-brightgreen"


def export_profile(
    profile: GrowthProfile,
    options: ExportOptions,
    weeks: int = 12,
    today: Optional[dt.date] = None,
) -> str:
    """Render ``profile`` in the format named by ``options``."""
    if options.format == ExportFormat.JSON:
        return export_json(profile, options)
    if options.format == ExportFormat.MARKDOWN:
        return export_markdown(profile, options)
    if options.format == ExportFormat.SVG_HEATMAP:
        return export_heatmap_svg(profile, weeks, today=today)
    if options.format == ExportFormat.BADGE_SVG:
        return generate_badge_svg(profile)
    return generate_badge_url(profile)
