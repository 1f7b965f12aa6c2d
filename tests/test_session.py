"""Tests for the session state machine."""

from datetime import datetime, timedelta, timezone

import pytest

from dendrite.core.clock import ManualClock
from dendrite.core.errors import InvalidTransitionError
from dendrite.models.commit import CommitRef
from dendrite.models.profile import SessionStats
from dendrite.models.session import Session, SessionState

START = datetime(2024, 6, 10, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def session(clock):
    return Session.start(1, clock=clock)


def make_commit(hash_value="abcdef1234567890", files=("src/main.rs",)):
    return CommitRef(
        hash=hash_value,
        message="Initial commit",
        timestamp=START,
        files_changed=files,
    )


def test_new_session(session):
    """Test a freshly started session."""
    assert session.id == 1
    assert session.state == SessionState.ACTIVE
    assert session.started_at == START
    assert session.ended_at is None
    assert session.keystroke_count == 0
    assert session.active_time_ms == 0
    assert session.files_edited == []
    assert session.languages == {}


def test_keystroke_accrues_short_gaps(session, clock):
    """Test that gaps under the threshold count as active time."""
    clock.advance(1000)
    session.record_keystroke()
    clock.advance(4999)
    session.record_keystroke()

    assert session.keystroke_count == 2
    assert session.active_time_ms == 5999


def test_long_gaps_are_not_active_time(session, clock):
    """Test that gaps at or over 5 seconds are dropped."""
    clock.advance(5000)
    session.record_keystroke()
    clock.advance(60_000)
    session.record_keystroke()
    clock.advance(200)
    session.record_keystroke()

    assert session.keystroke_count == 3
    assert session.active_time_ms == 200


def test_file_edit_tracks_files_and_languages(session, clock):
    """Test file edits dedupe paths and credit language time."""
    clock.advance(500)
    session.record_file_edit("src/main.rs", "rust")
    clock.advance(500)
    session.record_file_edit("src/main.rs", "rust")
    session.record_file_edit("web/app.ts", "typescript")

    assert session.files_edited == ["src/main.rs", "web/app.ts"]
    assert session.languages == {"rust": 2000, "typescript": 1000}
    assert session.active_time_ms == 1000


def test_primary_language_and_stats(session, clock):
    """Test stats for a session with mostly rust edits."""
    for _ in range(10):
        clock.advance(100)
        session.record_keystroke()
    session.record_file_edit("src/lib.rs", "rust")
    session.record_file_edit("src/main.rs", "rust")
    session.record_file_edit("web/app.ts", "typescript")
    session.end()

    stats = SessionStats.from_session(session)
    assert session.keystroke_count == 10
    assert stats.primary_language == "rust"
    assert stats.commit_count == 0


def test_primary_language_tie_break(session):
    """Test that equal language times resolve to the alphabetically first name."""
    session.record_file_edit("main.py", "python")
    session.record_file_edit("main.go", "go")
    session.record_file_edit("lib.rs", "rust")

    assert session.primary_language() == "go"


def test_primary_language_none(session):
    """Test that a session without edits has no primary language."""
    assert session.primary_language() is None


def test_idle_then_resume(session, clock):
    """Test that an idle window is recorded and not counted as active."""
    clock.advance(1000)
    session.record_keystroke()
    session.mark_idle()
    assert session.state == SessionState.IDLE
    assert session.current_idle is not None

    clock.advance(2000)
    session.resume_from_idle()

    assert session.state == SessionState.ACTIVE
    assert len(session.idle_periods) == 1
    assert session.idle_periods[0].duration_ms == 2000
    assert session.idle_periods[0].ended_at == START + timedelta(milliseconds=3000)
    assert session.active_time_ms == 1000
    assert session.current_idle is None


def test_resume_resets_activity_clock(session, clock):
    """Test that activity right after resuming counts from the resume instant."""
    session.mark_idle()
    clock.advance(3000)
    session.resume_from_idle()
    clock.advance(300)
    session.record_keystroke()

    assert session.active_time_ms == 300


def test_activity_while_idle_counts_without_time(session, clock):
    """Test that keystrokes while idle are counted but add no active time."""
    session.mark_idle()
    clock.advance(100)
    session.record_keystroke()
    session.record_file_edit("main.py", "python")

    assert session.keystroke_count == 1
    assert session.files_edited == ["main.py"]
    assert session.active_time_ms == 0


def test_idle_transitions_are_noops_in_wrong_state(session):
    """Test that idle calls outside their source state change nothing."""
    session.resume_from_idle()
    assert session.state == SessionState.ACTIVE
    assert session.idle_periods == []

    session.pause()
    session.mark_idle()
    assert session.state == SessionState.PAUSED
    assert session.current_idle is None


def test_pause_and_resume(session, clock):
    """Test pausing records no idle interval."""
    session.pause()
    assert session.state == SessionState.PAUSED

    clock.advance(10_000)
    session.resume()
    clock.advance(100)
    session.record_keystroke()

    assert session.state == SessionState.ACTIVE
    assert session.idle_periods == []
    assert session.active_time_ms == 100


def test_end_closes_open_idle(session, clock):
    """Test that ending while idle closes the idle interval."""
    session.mark_idle()
    clock.advance(3000)
    session.end()

    assert session.state == SessionState.ENDED
    assert session.ended_at == START + timedelta(milliseconds=3000)
    assert len(session.idle_periods) == 1
    assert session.idle_periods[0].duration_ms == 3000


class SteppedClock:
    """A clock that can be set to any instant, including an earlier one."""

    def __init__(self, current):
        self.current = current

    def now(self):
        return self.current


def test_idle_duration_never_negative():
    """Test an idle interval closed after the clock stepped backwards."""
    clock = SteppedClock(START)
    session = Session.start(1, clock=clock)
    clock.current = START + timedelta(seconds=5)
    session.mark_idle()
    clock.current = START + timedelta(seconds=4)
    session.end()

    assert session.idle_periods[0].duration_ms == 0

    reloaded = Session.model_validate_json(session.model_dump_json())
    assert reloaded.idle_periods[0].duration_ms == 0
    assert reloaded.is_ended


def test_terminal_duration_is_exact(session, clock):
    """Test total duration of an ended session."""
    clock.advance(123_456)
    session.end()
    clock.advance(99_999)

    assert session.total_duration_ms() == 123_456


def test_live_duration_follows_clock(session, clock):
    """Test total duration of a running session is re-read each time."""
    clock.advance(1000)
    assert session.total_duration_ms() == 1000
    clock.advance(1000)
    assert session.total_duration_ms() == 2000


def test_active_percentage(session, clock):
    """Test the active share of the duration."""
    assert session.active_percentage() == 0.0

    clock.advance(1000)
    session.record_keystroke()
    clock.advance(3000)
    session.end()

    assert session.active_percentage() == pytest.approx(0.25)


def test_commits(session):
    """Test attaching commits."""
    commit = make_commit()
    session.add_commit(commit)

    assert session.commits == [commit]
    assert session.commits[0].short_hash == "abcdef1"


@pytest.mark.parametrize(
    "operation",
    [
        lambda s: s.record_keystroke(),
        lambda s: s.record_file_edit("a.py", "python"),
        lambda s: s.mark_idle(),
        lambda s: s.resume_from_idle(),
        lambda s: s.pause(),
        lambda s: s.resume(),
        lambda s: s.end(),
        lambda s: s.add_commit(make_commit()),
    ],
)
def test_ended_session_rejects_mutation(session, operation):
    """Test that nothing may change a session once it has ended."""
    session.record_keystroke()
    session.end()
    ended_at = session.ended_at

    with pytest.raises(InvalidTransitionError):
        operation(session)

    assert session.ended_at == ended_at
    assert session.keystroke_count == 1


def test_transient_state_not_serialized(session):
    """Test that lifecycle state stays out of the JSON form."""
    session.mark_idle()
    data = session.model_dump()

    assert set(data) == {
        "id",
        "started_at",
        "ended_at",
        "active_time_ms",
        "keystroke_count",
        "files_edited",
        "languages",
        "idle_periods",
        "commits",
    }


def test_reload_ended_session_is_ended(session, clock):
    """Test that a reloaded session with an end time is terminal."""
    clock.advance(1000)
    session.end()

    reloaded = Session.model_validate_json(session.model_dump_json())

    assert reloaded.state == SessionState.ENDED
    with pytest.raises(InvalidTransitionError):
        reloaded.record_keystroke()


def test_reload_open_session_is_active(session, clock):
    """Test that a reloaded running session restarts its activity clock."""
    session.mark_idle()
    clock.advance(2000)
    session.resume_from_idle()

    reloaded = Session.model_validate_json(session.model_dump_json())
    assert reloaded.state == SessionState.ACTIVE

    reload_clock = ManualClock(START + timedelta(milliseconds=2500))
    reloaded.attach_clock(reload_clock)
    reloaded.record_keystroke()

    assert reloaded.active_time_ms == 500


def test_duplicate_files_rejected_on_load():
    """Test that persisted duplicate file paths are a schema error."""
    with pytest.raises(ValueError):
        Session(id=1, started_at=START, files_edited=["a.py", "a.py"])


def test_naive_timestamps_are_utc():
    """Test that naive timestamps are taken as UTC."""
    session = Session(id=7, started_at=datetime(2024, 6, 10, 9, 0))
    assert session.started_at == START
    assert session.started_at.tzinfo is not None
