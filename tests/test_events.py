"""Tests for replaying editor event streams."""

import json
from datetime import date, datetime, timezone

import pytest

from dendrite.core.clock import ManualClock, SystemClock
from dendrite.core.errors import DeserializationError
from dendrite.core.registry import SessionRegistry
from dendrite.hooks.events import replay_events
from dendrite.models.profile import GrowthProfile

TODAY = date(2024, 6, 10)


def event(kind, session="s1", timestamp="2024-06-10T09:00:00Z", **extra):
    return json.dumps({"event": kind, "session": session, "timestamp": timestamp, **extra})


@pytest.fixture
def work_log():
    """A morning session with an idle break and a commit."""
    return [
        event("start", timestamp="2024-06-10T09:00:00Z"),
        event("keystroke", timestamp="2024-06-10T09:00:01Z"),
        event(
            "file_edit",
            timestamp="2024-06-10T09:00:03Z",
            file_path="src/main.rs",
            language="rust",
        ),
        "",
        event("idle", timestamp="2024-06-10T09:00:04Z"),
        event("resume_from_idle", timestamp="2024-06-10T09:01:00Z"),
        event("keystroke", timestamp="2024-06-10T09:01:02Z"),
        event(
            "commit",
            timestamp="2024-06-10T09:01:05Z",
            commit={
                "hash": "0123456789abcdef",
                "message": "Wire up main",
                "timestamp": "2024-06-10T09:01:05Z",
                "files_changed": ["src/main.rs"],
            },
        ),
        event("end", timestamp="2024-06-10T09:01:10Z"),
    ]


def test_replay_merges_ended_session(work_log):
    """Test a full session replayed into a profile."""
    profile = GrowthProfile.new()

    result = replay_events(work_log, profile, today=TODAY)

    assert result.events_processed == 8
    assert result.open_sessions == {}
    stats = result.merged["s1"]
    assert stats.total_duration_ms == 70_000
    assert stats.primary_language == "rust"
    assert stats.commit_count == 1

    session = profile.sessions[0].session
    assert session.active_time_ms == 5000
    assert session.keystroke_count == 2
    assert [p.duration_ms for p in session.idle_periods] == [56_000]
    assert profile.lifetime_stats.total_sessions == 1
    assert profile.current_streak == 1


def test_replay_leaves_open_sessions(work_log):
    """Test that sessions without an end event stay in the registry."""
    registry = SessionRegistry(clock=ManualClock(datetime(2024, 1, 1, tzinfo=timezone.utc)))
    profile = GrowthProfile.new()
    lines = work_log[:-1] + [event("start", session="s2", timestamp="2024-06-10T09:02:00Z")]

    result = replay_events(lines, profile, registry=registry, today=TODAY)

    assert result.merged == {}
    assert set(result.open_sessions) == {"s1", "s2"}
    assert len(registry) == 2
    assert set(result.open_sessions.values()) == set(registry.handles())
    assert registry.clock.now() == datetime(2024, 6, 10, 9, 2, tzinfo=timezone.utc)
    assert profile.sessions == []


def test_replay_interleaved_sessions():
    """Test two sessions running side by side."""
    profile = GrowthProfile.new()
    lines = [
        event("start", session="a", timestamp="2024-06-10T09:00:00Z"),
        event("start", session="b", timestamp="2024-06-10T09:00:01Z"),
        event("keystroke", session="a", timestamp="2024-06-10T09:00:02Z"),
        event("keystroke", session="b", timestamp="2024-06-10T09:00:03Z"),
        event("end", session="b", timestamp="2024-06-10T09:00:04Z"),
        event("end", session="a", timestamp="2024-06-10T09:00:05Z"),
    ]

    result = replay_events(lines, profile, today=TODAY)

    assert list(result.merged) == ["b", "a"]
    assert [s.session.id for s in profile.sessions] == [2, 1]
    assert profile.lifetime_stats.total_keystrokes == 2


@pytest.mark.parametrize(
    "lines,line_number",
    [
        (["{not json"], 1),
        ([event("start"), event("explode")], 2),
        ([event("keystroke")], 1),
        ([event("start"), event("start")], 2),
        (
            [
                event("start", timestamp="2024-06-10T09:00:05Z"),
                event("keystroke", timestamp="2024-06-10T09:00:01Z"),
            ],
            2,
        ),
        ([event("start"), event("file_edit", file_path="a.py")], 2),
        ([event("start"), event("commit")], 2),
        ([event("start"), event("end"), event("keystroke")], 3),
    ],
)
def test_replay_rejects_bad_lines(lines, line_number):
    """Test that bad input stops the replay with the offending line number."""
    with pytest.raises(DeserializationError) as excinfo:
        replay_events(lines, GrowthProfile.new(), today=TODAY)

    assert excinfo.value.line == line_number


def test_replay_needs_manual_clock():
    """Test that a wall-clock registry cannot replay recorded timestamps."""
    with pytest.raises(TypeError):
        replay_events([], GrowthProfile.new(), registry=SessionRegistry(clock=SystemClock()))
