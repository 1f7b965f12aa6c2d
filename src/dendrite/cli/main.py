"""Command line interface for Dendrite."""

import datetime as dt
import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from dendrite.core.commits import commit_ref_from_git, get_commit_correlations
from dendrite.core.config import DATA_DIR_ENV, default_data_dir
from dendrite.core.errors import DendriteError
from dendrite.core.export import ExportFormat, ExportOptions, export_profile
from dendrite.core.serialization import load_session
from dendrite.core.store import ProfileStore
from dendrite.core.visualization import (
    generate_heatmap,
    generate_language_breakdown,
    get_daily_aggregates,
)
from dendrite.hooks.events import replay_events
from dendrite.models.profile import GrowthProfile

console = Console()

HEATMAP_GLYPHS = " ░▒▓█"


def _format_duration(time_ms: int) -> str:
    minutes = time_ms // 60000
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes // 60}h {minutes % 60}m"


def print_error(error: Exception) -> None:
    console.print(f"[red]Error: {escape(str(error))}[/red]")


def _configure_logging(verbose: bool, level_name: str) -> None:
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def get_store_or_exit(ctx: click.Context) -> ProfileStore:
    """Get the initialized profile store or exit with an error message."""
    store: ProfileStore = ctx.obj["store"]
    if not store.exists():
        console.print("[red]Dendrite not initialized. Run 'dendrite init' first.[/red]")
        raise click.Abort()
    return store


def load_profile_or_exit(ctx: click.Context) -> GrowthProfile:
    store = get_store_or_exit(ctx)
    try:
        profile = store.load()
    except DendriteError as e:
        print_error(e)
        raise click.Abort() from e
    profile.refresh_streaks(ctx.obj["today"])
    return profile


@click.group()
@click.version_option(package_name="dendrite-growth")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    envvar=DATA_DIR_ENV,
    default=None,
    help="Directory holding config.json and the profile",
)
@click.option(
    "--today",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Reference UTC date for streaks (defaults to the current date)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, data_dir: Optional[str], today, verbose: bool):
    """Dendrite - track coding sessions and your growth over time."""
    store = ProfileStore(Path(data_dir) if data_dir else default_data_dir())
    try:
        level_name = store.config.log_level
    except DendriteError as e:
        print_error(e)
        raise click.Abort() from e
    _configure_logging(verbose, level_name)
    ctx.obj = {"store": store, "today": today.date() if today else None}


@main.command()
@click.pass_context
def init(ctx: click.Context):
    """Create the data directory and an empty profile."""
    store: ProfileStore = ctx.obj["store"]
    try:
        profile = store.init()
    except ValueError as e:
        print_error(e)
        raise click.Abort() from e
    console.print(f"[green]✅ Initialized profile {profile.id} in {store.data_dir}[/green]")


@main.command()
@click.pass_context
def stats(ctx: click.Context):
    """Show lifetime statistics."""
    profile = load_profile_or_exit(ctx)
    lifetime = profile.lifetime_stats

    body = "\n".join(
        [
            f"[bold]Active time:[/bold] {_format_duration(lifetime.total_time_ms)}",
            f"[bold]Sessions:[/bold] {lifetime.total_sessions}",
            f"[bold]Keystrokes:[/bold] {lifetime.total_keystrokes}",
            f"[bold]Commits:[/bold] {lifetime.total_commits}",
            f"[bold]Current streak:[/bold] {lifetime.current_streak} days",
            f"[bold]Longest streak:[/bold] {lifetime.longest_streak} days",
        ]
    )
    console.print(Panel(body, title=f"Profile {profile.id[:8]}"))


@main.command()
@click.pass_context
def streak(ctx: click.Context):
    """Show the current and longest streak."""
    profile = load_profile_or_exit(ctx)
    console.print(f"🔥 Current streak: {profile.current_streak} days")
    console.print(f"🏆 Longest streak: {profile.longest_streak} days")


@main.command()
@click.argument("session_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def merge(ctx: click.Context, session_file: str):
    """Merge a serialized session into the profile."""
    store = get_store_or_exit(ctx)
    profile = load_profile_or_exit(ctx)
    try:
        session = load_session(Path(session_file).read_text())
        stored = profile.add_session(session, today=ctx.obj["today"])
        store.save(profile)
    except DendriteError as e:
        print_error(e)
        raise click.Abort() from e

    stats = stored.computed_stats
    console.print(
        f"[green]Merged session {session.id}[/green] "
        f"({_format_duration(stats.total_duration_ms)}, "
        f"primary language: {stats.primary_language or 'none'})"
    )


@main.command()
@click.argument("events_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def replay(ctx: click.Context, events_file: str):
    """Replay a JSON-lines editor event log into the profile."""
    store = get_store_or_exit(ctx)
    profile = load_profile_or_exit(ctx)
    try:
        with open(events_file) as f:
            result = replay_events(f, profile, today=ctx.obj["today"])
        store.save(profile)
    except DendriteError as e:
        print_error(e)
        raise click.Abort() from e

    if not result.merged:
        console.print("[yellow]No sessions ended in this log[/yellow]")
    else:
        table = Table(title="Merged Sessions")
        table.add_column("Session", style="cyan", no_wrap=True)
        table.add_column("Duration", style="blue")
        table.add_column("Active", style="green")
        table.add_column("Language", style="magenta")
        table.add_column("Commits", style="yellow")
        for label, stats in result.merged.items():
            table.add_row(
                label,
                _format_duration(stats.total_duration_ms),
                f"{stats.active_percentage:.0%}",
                stats.primary_language or "-",
                str(stats.commit_count),
            )
        console.print(table)

    if result.open_sessions:
        labels = ", ".join(result.open_sessions)
        console.print(f"[yellow]Still open (not merged): {labels}[/yellow]")


@main.command()
@click.pass_context
def languages(ctx: click.Context):
    """Show time per language."""
    profile = load_profile_or_exit(ctx)
    breakdown = generate_language_breakdown(profile)
    if not breakdown:
        console.print("[yellow]No language activity recorded[/yellow]")
        return

    table = Table(title="Languages")
    table.add_column("Language", no_wrap=True)
    table.add_column("Time", style="blue")
    table.add_column("Share", style="green")
    table.add_column("Sessions", style="yellow")
    for stat in breakdown:
        table.add_row(
            f"[{stat.color}]{stat.language}[/]",
            _format_duration(stat.time_ms),
            f"{stat.percentage:.1f}%",
            str(stat.sessions_count),
        )
    console.print(table)


@main.command()
@click.option("--weeks", type=click.IntRange(1, 53), default=None, help="Weeks to show")
@click.pass_context
def heatmap(ctx: click.Context, weeks: Optional[int]):
    """Show an activity heatmap in the terminal."""
    profile = load_profile_or_exit(ctx)
    weeks = weeks or ctx.obj["store"].config.heatmap_weeks
    data = generate_heatmap(profile, weeks, today=ctx.obj["today"])

    rows = [[" "] * weeks for _ in range(7)]
    for cell in data.cells:
        level = min(int(cell.intensity * (len(HEATMAP_GLYPHS) - 1)), len(HEATMAP_GLYPHS) - 1)
        if cell.raw_minutes and level == 0:
            level = 1
        rows[cell.day][cell.week] = HEATMAP_GLYPHS[level]

    console.print("\n".join("".join(row) for row in rows))
    console.print(
        f"[bold]Total:[/bold] {data.total_minutes} minutes, "
        f"[bold]best day:[/bold] {data.max_minutes} minutes"
    )


@main.command()
@click.option("--days", type=click.IntRange(min=1), default=None, help="Days to show")
@click.pass_context
def days(ctx: click.Context, days: Optional[int]):
    """Show daily rollups for recent days."""
    profile = load_profile_or_exit(ctx)
    days = days or ctx.obj["store"].config.daily_window_days
    aggregates = get_daily_aggregates(profile, days, today=ctx.obj["today"])
    if not aggregates:
        console.print("[yellow]No activity in this window[/yellow]")
        return

    table = Table(title=f"Last {days} days")
    table.add_column("Date", style="cyan", no_wrap=True)
    table.add_column("Active", style="blue")
    table.add_column("Sessions", style="magenta")
    table.add_column("Keystrokes", style="green")
    table.add_column("Files", style="yellow")
    table.add_column("Commits", style="red")
    for daily in aggregates:
        table.add_row(
            daily.date.isoformat(),
            _format_duration(daily.total_time_ms),
            str(daily.sessions_count),
            str(daily.total_keystrokes),
            str(daily.files_count),
            str(daily.commits_count),
        )
    console.print(table)


@main.command()
@click.pass_context
def commits(ctx: click.Context):
    """Show commits made during recorded sessions."""
    profile = load_profile_or_exit(ctx)
    correlations = get_commit_correlations(profile)
    if not correlations:
        console.print("[yellow]No commits recorded[/yellow]")
        return

    table = Table(title="Commits by Session")
    table.add_column("Commit", style="cyan", no_wrap=True)
    table.add_column("Message")
    table.add_column("Session", style="magenta")
    table.add_column("Session Length", style="blue")
    table.add_column("Files In Common", style="green")
    for correlation in correlations:
        table.add_row(
            correlation.commit.short_hash,
            correlation.commit.message.splitlines()[0] if correlation.commit.message else "",
            str(correlation.session_id),
            _format_duration(correlation.session_duration_ms),
            ", ".join(correlation.files_in_common) or "-",
        )
    console.print(table)


@main.command("commit-ref")
@click.option(
    "--repo",
    "repo_path",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Path inside the git repository",
)
@click.option("--rev", default="HEAD", help="Revision to describe")
def commit_ref(repo_path: str, rev: str):
    """Print a commit reference as JSON, ready to attach to a session."""
    try:
        ref = commit_ref_from_git(Path(repo_path), rev)
    except Exception as e:
        print_error(e)
        raise click.Abort() from e
    click.echo(ref.model_dump_json())


@main.command()
@click.option(
    "--format",
    "export_format",
    type=click.Choice([f.value for f in ExportFormat]),
    default=ExportFormat.JSON.value,
    help="Export format",
)
@click.option("--since", type=click.DateTime(), default=None, help="Only sessions started after")
@click.option("--until", type=click.DateTime(), default=None, help="Only sessions started before")
@click.option("--no-commits", is_flag=True, help="Leave commits out of the JSON export")
@click.option("--no-files", is_flag=True, help="Leave edited files out of the JSON export")
@click.option("--weeks", type=click.IntRange(1, 53), default=None, help="Heatmap weeks")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None)
@click.pass_context
def export(
    ctx: click.Context,
    export_format: str,
    since: Optional[dt.datetime],
    until: Optional[dt.datetime],
    no_commits: bool,
    no_files: bool,
    weeks: Optional[int],
    output: Optional[str],
):
    """Export the profile as JSON, Markdown, an SVG heatmap or a streak badge."""
    profile = load_profile_or_exit(ctx)

    date_range = None
    if since or until:
        date_range = (since or dt.datetime.min, until or dt.datetime.max)

    try:
        options = ExportOptions(
            format=ExportFormat(export_format),
            date_range=date_range,
            include_commits=not no_commits,
            include_files=not no_files,
        )
    except ValueError as e:
        print_error(e)
        raise click.Abort() from e

    rendered = export_profile(
        profile,
        options,
        weeks=weeks or ctx.obj["store"].config.heatmap_weeks,
        today=ctx.obj["today"],
    )

    if output:
        Path(output).write_text(rendered)
        console.print(f"[green]Wrote {options.format.value} export to {output}[/green]")
    else:
        click.echo(rendered)


if __name__ == "__main__":
    main()
