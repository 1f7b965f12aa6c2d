"""Growth profile: the session log plus daily and lifetime rollups."""

import datetime as dt
import logging
import uuid
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from dendrite.core.clock import Clock, SystemClock, ensure_utc
from dendrite.core.errors import DeserializationError
from dendrite.core.streak import calculate_streaks
from dendrite.models.session import Session

logger = logging.getLogger(__name__)


def _merge_languages(target: Dict[str, int], source: Dict[str, int]) -> None:
    for language, time_ms in source.items():
        target[language] = target.get(language, 0) + time_ms


def utc_today() -> dt.date:
    return SystemClock().now().date()


class SessionStats(BaseModel):
    """Computed statistics for a session."""

    total_duration_ms: int
    active_percentage: float
    primary_language: Optional[str] = None
    commit_count: int

    @classmethod
    def from_session(cls, session: Session) -> "SessionStats":
        return cls(
            total_duration_ms=session.total_duration_ms(),
            active_percentage=session.active_percentage(),
            primary_language=session.primary_language(),
            commit_count=len(session.commits),
        )


class StoredSession(BaseModel):
    """A merged session together with the stats frozen at merge time."""

    session: Session
    computed_stats: SessionStats

    @classmethod
    def snapshot(cls, session: Session) -> "StoredSession":
        # Re-validate from the dump so the stored copy shares nothing with
        # the live session and carries the same state a reload would.
        detached = Session.model_validate(session.model_dump())
        return cls(session=detached, computed_stats=SessionStats.from_session(session))


class DailyAggregate(BaseModel):
    """Aggregated statistics for one UTC calendar day."""

    date: dt.date
    total_time_ms: int = Field(ge=0)
    total_keystrokes: int = Field(ge=0)
    files_count: int = Field(ge=0)
    sessions_count: int = Field(ge=0)
    commits_count: int = Field(ge=0)
    languages: Dict[str, int]

    @classmethod
    def empty(cls, day: dt.date) -> "DailyAggregate":
        return cls(
            date=day,
            total_time_ms=0,
            total_keystrokes=0,
            files_count=0,
            sessions_count=0,
            commits_count=0,
            languages={},
        )

    def add_session(self, session: Session) -> None:
        """Fold one session in. Additive: merging the same session twice counts it twice."""
        self.sessions_count += 1
        self.total_time_ms += session.active_time_ms
        self.total_keystrokes += session.keystroke_count
        self.commits_count += len(session.commits)
        # Distinct within this session only; files already counted today by
        # another session are counted again.
        self.files_count += len(set(session.files_edited))
        _merge_languages(self.languages, session.languages)


class LifetimeStats(BaseModel):
    """All-time statistics, including the activity streak."""

    total_time_ms: int = Field(ge=0)
    total_keystrokes: int = Field(ge=0)
    total_sessions: int = Field(ge=0)
    total_commits: int = Field(ge=0)
    current_streak: int = Field(ge=0)
    longest_streak: int = Field(ge=0)
    languages: Dict[str, int]

    @classmethod
    def empty(cls) -> "LifetimeStats":
        return cls(
            total_time_ms=0,
            total_keystrokes=0,
            total_sessions=0,
            total_commits=0,
            current_streak=0,
            longest_streak=0,
            languages={},
        )

    def update_from_session(self, session: Session) -> None:
        self.total_time_ms += session.active_time_ms
        self.total_keystrokes += session.keystroke_count
        self.total_sessions += 1
        self.total_commits += len(session.commits)
        _merge_languages(self.languages, session.languages)

    def recalculate_streaks(self, dates: Iterable[dt.date], today: dt.date) -> None:
        self.current_streak, self.longest_streak = calculate_streaks(dates, today)

    @classmethod
    def from_history(
        cls,
        sessions: Iterable[Session],
        daily_aggregates: Iterable[DailyAggregate],
        today: dt.date,
    ) -> "LifetimeStats":
        """Recompute the stats from scratch over a full history."""
        stats = cls.empty()
        for session in sessions:
            stats.update_from_session(session)
        stats.recalculate_streaks((daily.date for daily in daily_aggregates), today)
        return stats


class GrowthProfile(BaseModel):
    """Complete activity profile for one user.

    Every field is required when parsing, so an incomplete document is a
    validation error rather than an empty profile. Use ``new()`` to start
    a profile from scratch.
    """

    id: str = Field(min_length=1)
    created_at: dt.datetime
    sessions: List[StoredSession]
    daily_aggregates: List[DailyAggregate]
    lifetime_stats: LifetimeStats

    @classmethod
    def new(cls, clock: Optional[Clock] = None) -> "GrowthProfile":
        clock = clock or SystemClock()
        return cls(
            id=str(uuid.uuid4()),
            created_at=clock.now(),
            sessions=[],
            daily_aggregates=[],
            lifetime_stats=LifetimeStats.empty(),
        )

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: dt.datetime) -> dt.datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _distinct_dates(self) -> "GrowthProfile":
        dates = [daily.date for daily in self.daily_aggregates]
        if len(set(dates)) != len(dates):
            raise ValueError("daily_aggregates contains duplicate dates")
        return self

    @property
    def current_streak(self) -> int:
        return self.lifetime_stats.current_streak

    @property
    def longest_streak(self) -> int:
        return self.lifetime_stats.longest_streak

    def add_session(
        self, session: Session, today: Optional[dt.date] = None
    ) -> StoredSession:
        """Merge a finished session into the profile.

        Lifetime totals, the day's aggregate, the streak and the session log
        are updated together: all work happens on copies that replace the
        profile's state only once every step has succeeded. The profile does
        not deduplicate, so submitting the same session twice counts it twice.
        """
        today = today or utc_today()
        if not session.is_ended:
            logger.warning("Merging session %s before it has ended", session.id)

        stored = StoredSession.snapshot(session)

        lifetime_stats = self.lifetime_stats.model_copy(deep=True)
        lifetime_stats.update_from_session(session)

        daily_aggregates = [daily.model_copy(deep=True) for daily in self.daily_aggregates]
        session_date = session.started_at.date()
        daily = next((d for d in daily_aggregates if d.date == session_date), None)
        if daily is None:
            daily = DailyAggregate.empty(session_date)
            daily_aggregates.append(daily)
        daily.add_session(session)

        lifetime_stats.recalculate_streaks((d.date for d in daily_aggregates), today)

        self.lifetime_stats = lifetime_stats
        self.daily_aggregates = daily_aggregates
        self.sessions = self.sessions + [stored]

        logger.info(
            "Merged session %s into profile %s (%s sessions, streak %s)",
            session.id,
            self.id,
            lifetime_stats.total_sessions,
            lifetime_stats.current_streak,
        )
        return stored

    def refresh_streaks(self, today: Optional[dt.date] = None) -> None:
        """Re-anchor the current streak at ``today`` without adding a session."""
        self.lifetime_stats.recalculate_streaks(self.active_dates(), today or utc_today())

    def active_dates(self) -> List[dt.date]:
        return sorted(daily.date for daily in self.daily_aggregates)

    def aggregate_for(self, day: dt.date) -> Optional[DailyAggregate]:
        return next((d for d in self.daily_aggregates if d.date == day), None)

    def language_totals(self) -> Dict[str, int]:
        """Lifetime time per language, largest first."""
        ordered = sorted(
            self.lifetime_stats.languages.items(), key=lambda item: (-item[1], item[0])
        )
        return dict(ordered)

    def to_json(self, indent: Optional[int] = None) -> str:
        return self.model_dump_json(indent=indent)

    @classmethod
    def from_json(cls, data: str) -> "GrowthProfile":
        try:
            return cls.model_validate_json(data)
        except ValidationError as e:
            raise DeserializationError("profile", str(e)) from e
